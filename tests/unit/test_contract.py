"""Unit tests for the fixed deployment interface."""

import pytest

from host_deployer.contract.contract import (REMOTE_COMMANDS, REQUIRED_SECRETS, UPLOAD_EXCLUSIONS, is_excluded,
                                             remote_command_line)


class TestContract:

    def test_required_secrets_order(self):
        assert REQUIRED_SECRETS == (
            "FTP_SERVER", "FTP_USERNAME", "FTP_PASSWORD", "SSH_HOST",
            "SSH_USER", "SSH_PRIVATE_KEY", "SSH_PASSPHRASE", "DEPLOY_PATH",
        )

    def test_migrations_run_before_caches(self):
        assert REMOTE_COMMANDS[0] == "php artisan migrate --force"
        assert REMOTE_COMMANDS[1:] == ("php artisan config:cache", "php artisan route:cache", "php artisan view:cache")


class TestIsExcluded:

    @pytest.mark.parametrize("path", [
        ".git/", ".git/HEAD", ".gitignore", ".gitattributes", "public/.gitignore",
        ".github/", ".github/workflows/deploy.yml",
        "composer.json", "composer.lock", "package.json", "package-lock.json",
        "README.md", ".env", "tests/", "tests/Feature/ExampleTest.php",
    ])
    def test_excluded(self, path):
        assert is_excluded(path)

    @pytest.mark.parametrize("path", [
        "artisan", "app/Http/Kernel.php", "public/index.php", ".env.example",
        "vendor/autoload.php", "vendor/laravel/framework/README.md", "app/tests.php",
    ])
    def test_uploaded(self, path):
        assert not is_excluded(path)

    def test_leading_dot_slash(self):
        assert is_excluded("./composer.lock")

    def test_windows_separators(self):
        assert is_excluded("tests\\Unit\\ExampleTest.php")

    def test_custom_patterns(self):
        assert is_excluded("storage/logs/laravel.log", UPLOAD_EXCLUSIONS + ("storage/logs/**",))
        assert not is_excluded("storage/logs/laravel.log")


class TestRemoteCommandLine:

    def test_default_commands_chained(self):
        line = remote_command_line("/home/user/app")
        assert line == ("cd /home/user/app && php artisan migrate --force && php artisan config:cache"
                        " && php artisan route:cache && php artisan view:cache")

    def test_path_quoted(self):
        assert remote_command_line("/home/user/my app", ["ls"]) == "cd '/home/user/my app' && ls"
