#!/usr/bin/env python3

"""
    Renders the continuous deployment workflow to copy in .github/workflows/ of the application repo. On each push to
    the trigger branch the workflow checks out the repo, installs the composer dependencies, uploads the files over FTP
    and runs the remote commands over ssh. Every credential comes from the repo secrets.
"""

import yaml

from host_deployer.contract.contract import (DEPLOY_PATH, FTP_PASSWORD, FTP_SERVER, FTP_USERNAME, REMOTE_COMMANDS,
                                             SSH_HOST, SSH_PASSPHRASE, SSH_PRIVATE_KEY, SSH_USER, TRIGGER_BRANCH,
                                             TRIGGER_EVENT, UPLOAD_EXCLUSIONS)

WORKFLOW_NAME = "Deploy to shared hosting"
DEFAULT_PHP_VERSION = "8.2"

CHECKOUT_ACTION = "actions/checkout@v4"
SETUP_PHP_ACTION = "shivammathur/setup-php@v2"
FTP_DEPLOY_ACTION = "SamKirkland/FTP-Deploy-Action@v4.3.5"
SSH_ACTION = "appleboy/ssh-action@v1.0.3"

INSTALL_COMMAND = "composer install --no-dev --optimize-autoloader --no-interaction --prefer-dist"


class _WorkflowDumper(yaml.SafeDumper):
    pass


def _str_representer(dumper, data):
    # Multi line values (exclude list, script) read better as literal blocks
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_WorkflowDumper.add_representer(str, _str_representer)


def secret_ref(name):
    return "${{ secrets.%s }}" % name


def build_workflow(branch=TRIGGER_BRANCH, php_version=DEFAULT_PHP_VERSION, server_dir="./",
                   exclusions=UPLOAD_EXCLUSIONS, commands=REMOTE_COMMANDS):
    """
        Builds the workflow definition as a dictionary.

        :param str branch: Branch whose pushes trigger a deployment.
        :param str php_version: PHP version used to install the dependencies.
        :param str server_dir: Directory on the FTP server the files are uploaded to.
        :param exclusions: Glob patterns of files never uploaded.
        :param commands: Commands ran on the server, in order, from the deploy path.
    """

    script_lines = ["cd {}".format(secret_ref(DEPLOY_PATH))] + list(commands)

    return {
        "name": WORKFLOW_NAME,
        "on": {
            TRIGGER_EVENT: {
                "branches": [branch]
            }
        },
        "jobs": {
            "deploy": {
                "runs-on": "ubuntu-latest",
                "steps": [
                    {
                        "name": "Checkout",
                        "uses": CHECKOUT_ACTION
                    },
                    {
                        "name": "Setup PHP",
                        "uses": SETUP_PHP_ACTION,
                        "with": {"php-version": php_version}
                    },
                    {
                        "name": "Install dependencies",
                        "run": INSTALL_COMMAND
                    },
                    {
                        "name": "Upload files via FTP",
                        "uses": FTP_DEPLOY_ACTION,
                        "with": {
                            "server": secret_ref(FTP_SERVER),
                            "username": secret_ref(FTP_USERNAME),
                            "password": secret_ref(FTP_PASSWORD),
                            "server-dir": server_dir,
                            "exclude": "\n".join(exclusions) + "\n"
                        }
                    },
                    {
                        "name": "Run remote commands",
                        "uses": SSH_ACTION,
                        "with": {
                            "host": secret_ref(SSH_HOST),
                            "username": secret_ref(SSH_USER),
                            "key": secret_ref(SSH_PRIVATE_KEY),
                            "passphrase": secret_ref(SSH_PASSPHRASE),
                            "script_stop": True,
                            "script": "\n".join(script_lines) + "\n"
                        }
                    }
                ]
            }
        }
    }


def render_workflow(**kwargs):
    """
        Renders the workflow definition as yaml text, see build_workflow() for the arguments.
    """

    return yaml.dump(build_workflow(**kwargs), Dumper=_WorkflowDumper, sort_keys=False, default_flow_style=False,
                     width=120)


def workflow_remote_commands(workflow_text):
    """
        Extracts the commands ran on the server from a workflow definition: every line of each step "script" value,
        without the lines changing directory.

        :param str workflow_text: The workflow yaml text.

        :return: The list of commands, in order.
    """

    ret_val = []

    workflow = yaml.safe_load(workflow_text) or {}
    jobs = workflow.get("jobs") if isinstance(workflow, dict) else None
    if not isinstance(jobs, dict):
        return ret_val

    for job in jobs.values():

        steps = job.get("steps") if isinstance(job, dict) else None
        for step in steps or []:

            step_with = step.get("with") if isinstance(step, dict) else None
            if not isinstance(step_with, dict) or not isinstance(step_with.get("script"), str):
                continue

            for line in step_with["script"].splitlines():
                line = line.strip()
                if line and not line.startswith("cd "):
                    ret_val.append(line)

    return ret_val
