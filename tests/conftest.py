"""Shared fixtures for the host_deployer test suite."""

import json
from pathlib import Path

import pytest

from host_deployer.contract.contract import REQUIRED_SECRETS


@pytest.fixture(scope="session")
def project_root():
    return Path(__file__).parent.parent


@pytest.fixture
def secrets_env():
    env = {name: "value-{}".format(name.lower()) for name in REQUIRED_SECRETS}
    env["DEPLOY_PATH"] = "/home/user/app"
    env["SSH_PASSPHRASE"] = ""
    return env


@pytest.fixture
def app_repo(tmp_path):
    """A small application repo with files that must and must not be uploaded."""
    repo = tmp_path / "app"
    files = {
        "artisan": "#!/usr/bin/env php",
        "composer.json": "{}",
        "composer.lock": "{}",
        "README.md": "# app",
        ".env": "APP_KEY=secret",
        ".env.example": "APP_KEY=",
        ".gitignore": "/vendor",
        ".git/HEAD": "ref: refs/heads/main",
        ".github/workflows/deploy.yml": "name: deploy",
        "tests/Feature/ExampleTest.php": "<?php",
        "app/Http/Kernel.php": "<?php // kernel",
        "public/index.php": "<?php // index",
        "public/.gitignore": "*",
        "vendor/autoload.php": "<?php // autoload",
    }
    for relative, content in files.items():
        path = repo / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return repo


@pytest.fixture
def write_init_file(tmp_path):

    def _write(content, name="host_deployer_init.json"):
        path = tmp_path / name
        if isinstance(content, str):
            path.write_text(content)
        else:
            path.write_text(json.dumps(content))
        return path

    return _write
