"""Unit tests for the command line entry point."""

import socket
from unittest import mock

import pytest
import yaml

from host_deployer import __main__ as cli
from host_deployer.contract.contract import REMOTE_COMMANDS
from host_deployer.errors import RemoteCommandError
from host_deployer.ftp_agent.ftp_agent import UploadReport
from host_deployer.ssh_agent import ssh_agent as ssh_agent_module
from host_deployer.ssh_agent.ssh_agent import SSHAgent


@pytest.fixture
def init_path(app_repo, write_init_file):
    return str(write_init_file({"Deployment": {"Local Repo Path": "app", "Server Dir": "public_html"}}))


@pytest.fixture
def agents(monkeypatch, secrets_env):
    for name, value in secrets_env.items():
        monkeypatch.setenv(name, value)

    ftp_agent = mock.MagicMock()
    ftp_agent.__enter__.return_value = ftp_agent
    ftp_agent.sync.return_value = UploadReport(uploaded=["artisan"], deleted=[], dry_run=False)
    ftp_class = mock.Mock(return_value=ftp_agent)

    ssh_agent = mock.MagicMock()
    ssh_agent.__enter__.return_value = ssh_agent
    ssh_class = mock.Mock(return_value=ssh_agent)

    monkeypatch.setattr(cli, "FTPAgent", ftp_class)
    monkeypatch.setattr(cli, "SSHAgent", ssh_class)
    return ftp_class, ssh_class


class TestDeploy:

    def test_upload_then_remote_commands(self, init_path, agents, app_repo):
        ftp_class, ssh_class = agents

        assert cli.main(["deploy", "-i", init_path]) == 0

        ftp_class.assert_called_once_with("value-ftp_server", "value-ftp_username", "value-ftp_password",
                                          server_dir="public_html/", port=21, tls=False, timeout=30, verbose=False)
        local_root, local_tree = ftp_class.return_value.sync.call_args.args
        assert local_root == str(app_repo) + "/"
        assert "artisan" in local_tree and "composer.json" not in local_tree
        assert ftp_class.return_value.sync.call_args.kwargs == {"dry_run": False}

        ssh_class.assert_called_once_with("value-ssh_host", "value-ssh_user", "value-ssh_private_key", passphrase="",
                                          port=22, timeout=30, verbose=False)
        ssh_class.return_value.run_commands.assert_called_once_with("/home/user/app", list(REMOTE_COMMANDS))

    def test_dry_run_skips_remote_commands(self, init_path, agents, capsys):
        ftp_class, ssh_class = agents

        assert cli.main(["deploy", "-i", init_path, "--dry-run"]) == 0

        assert ftp_class.return_value.sync.call_args.kwargs == {"dry_run": True}
        ssh_class.assert_not_called()
        assert "[dry run] run php artisan migrate --force" in capsys.readouterr().out

    def test_missing_secrets(self, init_path, agents, monkeypatch, capsys):
        ftp_class, _ = agents
        monkeypatch.delenv("FTP_PASSWORD")

        assert cli.main(["deploy", "-i", init_path]) == 1

        assert "!!! ERROR: Missing required secrets: FTP_PASSWORD !!!" in capsys.readouterr().out
        ftp_class.assert_not_called()

    def test_remote_failure(self, init_path, agents, capsys):
        _, ssh_class = agents
        ssh_class.return_value.run_commands.side_effect = RemoteCommandError("php artisan migrate --force", 1)

        assert cli.main(["deploy", "-i", init_path]) == 1
        assert "[php artisan migrate --force] failed with exit code 1" in capsys.readouterr().out

    def test_init_path_required(self):
        with pytest.raises(SystemExit):
            cli.main(["deploy"])


class TestWorkflowCommand:

    def test_stdout(self, capsys):
        assert cli.main(["workflow", "-b", "release"]) == 0
        workflow = yaml.safe_load(capsys.readouterr().out)
        assert workflow["on"]["push"]["branches"] == ["release"]

    def test_output_file(self, tmp_path):
        output = tmp_path / "deploy.yml"
        assert cli.main(["workflow", "-o", str(output), "-p", "8.3"]) == 0
        steps = yaml.safe_load(output.read_text())["jobs"]["deploy"]["steps"]
        assert steps[1]["with"]["php-version"] == "8.3"


class TestCheckCommand:

    def test_consistent(self, project_root, tmp_path, capsys):
        workflow = tmp_path / "deploy.yml"
        cli.main(["workflow", "-o", str(workflow)])

        assert cli.main(["check", "-r", str(project_root / "README.md"), "-w", str(workflow)]) == 0
        assert "consistent" in capsys.readouterr().out

    def test_issues(self, tmp_path, capsys):
        workflow = tmp_path / "deploy.yml"
        cli.main(["workflow", "-o", str(workflow)])
        readme = tmp_path / "README.md"
        readme.write_text("# App\n")

        assert cli.main(["check", "-r", str(readme), "-w", str(workflow)]) == 1
        out = capsys.readouterr().out
        assert "undocumented-secret: Secret [FTP_SERVER]" in out
        assert "missing-command" in out

    def test_missing_file(self, tmp_path, capsys):
        assert cli.main(["check", "-r", str(tmp_path / "missing.md"), "-w", str(tmp_path / "missing.yml")]) == 1
        assert "!!! ERROR: Unable to read the documentation" in capsys.readouterr().out


class TestDeploySSHFailures:

    def test_silent_remote_command_timeout_reported(self, init_path, agents, monkeypatch, capsys):
        monkeypatch.setattr(cli, "SSHAgent", SSHAgent)
        monkeypatch.setattr(ssh_agent_module, "load_private_key", mock.Mock(return_value="pkey"))

        client = mock.Mock()
        channel = client.get_transport.return_value.open_session.return_value
        channel.makefile.return_value.readline.side_effect = socket.timeout("timed out")
        monkeypatch.setattr(ssh_agent_module.paramiko, "SSHClient", mock.Mock(return_value=client))

        assert cli.main(["deploy", "-i", init_path]) == 1

        out = capsys.readouterr().out
        assert "!!! ERROR: Lost the connection to [value-ssh_host] while running" in out
        assert client.get_transport.return_value.open_session.call_count == 1
        client.close.assert_called_once_with()
