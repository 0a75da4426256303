"""Unit tests for the README / workflow consistency checks."""

import pytest

from host_deployer.doc_lint.doc_lint import (COMMAND_ORDER, MISSING_COMMAND, UNDOCUMENTED_SECRET, check_command_order,
                                             check_secrets, documented_secrets, lint, referenced_secrets,
                                             secrets_section)
from host_deployer.workflow.workflow import render_workflow

README = """# App

Use `APP_KEY` from `.env`.

## Secrets

- `FTP_SERVER`, `FTP_USERNAME`, `FTP_PASSWORD`
- `SSH_HOST`, `SSH_USER`, `SSH_PRIVATE_KEY`, `SSH_PASSPHRASE`

### Paths

- `DEPLOY_PATH`

## Deployment

After the upload the workflow runs `php artisan migrate --force`, then `php artisan config:cache`,
`php artisan route:cache` and `php artisan view:cache`.
"""


@pytest.fixture
def workflow_text():
    return render_workflow()


class TestSecrets:

    def test_referenced_secrets_unique(self):
        text = "${{ secrets.A }} ${{secrets.B}} ${{ secrets.A }} ${{ github.ref }}"
        assert referenced_secrets(text) == ["A", "B"]

    def test_section_includes_nested_headings(self):
        section = secrets_section(README)
        assert "`DEPLOY_PATH`" in section
        assert "APP_KEY" not in section
        assert "migrate" not in section

    def test_documented_secrets_only_from_section(self):
        assert documented_secrets(README) == [
            "FTP_SERVER", "FTP_USERNAME", "FTP_PASSWORD", "SSH_HOST", "SSH_USER", "SSH_PRIVATE_KEY",
            "SSH_PASSPHRASE", "DEPLOY_PATH",
        ]

    def test_code_block_comments_are_not_headings(self, workflow_text):
        readme = README.replace("### Paths\n", "```sh\n# set it with the gh cli\ngh secret set FTP_SERVER\n```\n\n### Paths\n")

        assert "`DEPLOY_PATH`" in secrets_section(readme)
        assert check_secrets(readme, workflow_text) == []

    def test_whole_readme_without_secrets_heading(self):
        assert documented_secrets("Set `FTP_SERVER` and `ftp_user`.") == ["FTP_SERVER"]

    def test_consistent(self, workflow_text):
        assert check_secrets(README, workflow_text) == []

    def test_undocumented_secret(self, workflow_text):
        readme = README.replace("`SSH_PASSPHRASE`", "a passphrase")
        issues = check_secrets(readme, workflow_text)

        assert [issue.code for issue in issues] == [UNDOCUMENTED_SECRET]
        assert "SSH_PASSPHRASE" in issues[0].message


class TestCommandOrder:

    def test_consistent(self, workflow_text):
        assert check_command_order(README, workflow_text) == []

    def test_missing_command(self, workflow_text):
        readme = README.replace("`php artisan route:cache` and ", "")
        issues = check_command_order(readme, workflow_text)

        assert [issue.code for issue in issues] == [MISSING_COMMAND]
        assert "route:cache" in issues[0].message

    def test_wrong_order(self, workflow_text):
        readme = README.replace("`php artisan migrate --force`, then `php artisan config:cache`",
                                "`php artisan config:cache`, then `php artisan migrate --force`")
        issues = check_command_order(readme, workflow_text)

        assert [issue.code for issue in issues] == [COMMAND_ORDER]
        assert "config:cache" in issues[0].message


class TestLint:

    def test_files(self, tmp_path, workflow_text):
        readme_path = tmp_path / "README.md"
        readme_path.write_text(README.replace("`DEPLOY_PATH`", "the path"))
        workflow_path = tmp_path / "deploy.yml"
        workflow_path.write_text(workflow_text)

        issues = lint(str(readme_path), str(workflow_path))
        assert [issue.code for issue in issues] == [UNDOCUMENTED_SECRET]

    def test_project_readme_documents_the_workflow(self, project_root, tmp_path, workflow_text):
        workflow_path = tmp_path / "deploy.yml"
        workflow_path.write_text(workflow_text)

        assert lint(str(project_root / "README.md"), str(workflow_path)) == []
