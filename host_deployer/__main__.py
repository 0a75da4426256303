#!/usr/bin/env python3

"""
    Deploys a web application to a shared hosting account. The deployment is a fixed linear sequence:

        - the local repo, minus the excluded files, is uploaded over FTP to the server dir.
        - the remote commands (migrations, config/route/view caches) are ran over ssh from the deploy path.

    The first failing step stops the deployment and the deployer exits with a non zero status. Credentials are read
    from the environment, under the names listed in contract.REQUIRED_SECRETS.

    The "workflow" command renders the CI workflow doing the same on every push to main, and the "check" command
    verifies a README documents what that workflow uses.
"""

import argparse
import sys

from host_deployer.contract.contract import (DEPLOY_PATH, FTP_PASSWORD, FTP_SERVER, FTP_USERNAME, SSH_HOST,
                                             SSH_PASSPHRASE, SSH_PRIVATE_KEY, SSH_USER, TRIGGER_BRANCH)
from host_deployer.doc_lint.doc_lint import lint
from host_deployer.errors import DeployError
from host_deployer.ftp_agent.ftp_agent import FTPAgent
from host_deployer.init_file_parser.init_file_parser import InitFileParser, load_secrets
from host_deployer.local_tree.local_tree import get_local_directory_structure
from host_deployer.printing import error_print, timestamp_print
from host_deployer.ssh_agent.ssh_agent import SSHAgent
from host_deployer.workflow.workflow import DEFAULT_PHP_VERSION, render_workflow

deploy_start_msg = "+---------- Start of deployment ----------+"
deploy_end_msg = "+---------- End of deployment ----------+"


def main(argv=None):

    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        return args.func(args)

    except DeployError as e:
        error_print(e.message)
        return 1


def build_parser():

    parser = argparse.ArgumentParser(prog="host-deployer", formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    subparsers = parser.add_subparsers(dest="command", required=True)

    deploy_parser = subparsers.add_parser("deploy", formatter_class=argparse.ArgumentDefaultsHelpFormatter,
                                          help="Upload the repo over FTP then run the remote commands over ssh")
    deploy_parser.add_argument('-i', '--init_path', dest='init_path', action='store', required=True,
                               help='Specify the path of the host_deployer_init.json file')
    deploy_parser.add_argument('-n', '--dry-run', dest='dry_run', action='store_true', required=False, default=False,
                               help='Only print what would be uploaded, deleted and ran')
    deploy_parser.add_argument('-v', '--verbose', dest='verbose', action='store_true', required=False, default=False,
                               help='Turns on verbosity')
    deploy_parser.set_defaults(func=deploy)

    workflow_parser = subparsers.add_parser("workflow", formatter_class=argparse.ArgumentDefaultsHelpFormatter,
                                            help="Render the continuous deployment workflow")
    workflow_parser.add_argument('-b', '--branch', dest='branch', action='store', default=TRIGGER_BRANCH,
                                 help='Branch whose pushes trigger a deployment')
    workflow_parser.add_argument('-p', '--php-version', dest='php_version', action='store', default=DEFAULT_PHP_VERSION,
                                 help='PHP version used to install the dependencies')
    workflow_parser.add_argument('-o', '--output', dest='output', action='store', default=None,
                                 help='Write the workflow to this file instead of stdout')
    workflow_parser.set_defaults(func=workflow)

    check_parser = subparsers.add_parser("check", formatter_class=argparse.ArgumentDefaultsHelpFormatter,
                                         help="Check a README documents the secrets and commands of a workflow")
    check_parser.add_argument('-r', '--readme', dest='readme', action='store', default='README.md',
                              help='Path of the README to check')
    check_parser.add_argument('-w', '--workflow', dest='workflow', action='store',
                              default='.github/workflows/deploy.yml', help='Path of the workflow to check')
    check_parser.set_defaults(func=check)

    return parser


def deploy(args):
    """
        Runs the deployment: scan the local repo, upload it, run the remote commands.

        :return: The process exit code.
    """

    v = args.verbose

    fp = InitFileParser(init_file_path=args.init_path)
    secrets = load_secrets()
    dry_run = args.dry_run or fp.dry_run

    timestamp_print(deploy_start_msg, v)

    local_tree = get_local_directory_structure(fp.deployment_local, fp.exclusions)
    timestamp_print("Scanned local repo {}".format(fp.deployment_local), v)

    with FTPAgent(secrets[FTP_SERVER], secrets[FTP_USERNAME], secrets[FTP_PASSWORD], server_dir=fp.server_dir,
                  port=fp.ftp_port, tls=fp.ftp_tls, timeout=fp.timeout, verbose=v) as ftp_agent:
        report = ftp_agent.sync(fp.deployment_local, local_tree, dry_run=dry_run)

    timestamp_print("Uploaded {} file(s), deleted {} element(s)".format(len(report.uploaded), len(report.deleted)), v)

    if dry_run:

        for command in fp.remote_commands:
            timestamp_print("[dry run] run {}".format(command))

    else:

        with SSHAgent(secrets[SSH_HOST], secrets[SSH_USER], secrets[SSH_PRIVATE_KEY], passphrase=secrets[SSH_PASSPHRASE],
                      port=fp.ssh_port, timeout=fp.timeout, verbose=v) as ssh_agent:
            ssh_agent.run_commands(secrets[DEPLOY_PATH], fp.remote_commands)

    timestamp_print(deploy_end_msg, v)

    return 0


def workflow(args):

    text = render_workflow(branch=args.branch, php_version=args.php_version)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as output_file:
            output_file.write(text)
    else:
        print(text, end="")

    return 0


def check(args):

    try:
        issues = lint(args.readme, args.workflow)
    except OSError as e:
        raise DeployError("Unable to read the documentation; error message: [{}]".format(e)) from e

    for issue in issues:
        print("{}: {}".format(issue.code, issue.message))

    if issues:
        return 1

    print("Documentation is consistent with the workflow")
    return 0


if __name__ == "__main__":
    sys.exit(main())
