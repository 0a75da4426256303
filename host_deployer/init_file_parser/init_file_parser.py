#!/usr/bin/env python3

import json
import os

from schema import And, Optional, Schema, SchemaError

from host_deployer.contract.contract import OPTIONAL_VALUE_SECRETS, REMOTE_COMMANDS, REQUIRED_SECRETS, UPLOAD_EXCLUSIONS
from host_deployer.errors import ConfigError, MissingSecretsError

DEPLOYMENT_CFG_GROUP = "Deployment"
LOCAL_REPO_PATH_CFG_KEY = "Local Repo Path"
SERVER_DIR_CFG_KEY = "Server Dir"
EXCLUDED_FILES_CFG_KEY = "Excluded Files"
REMOTE_COMMANDS_CFG_KEY = "Remote Commands"

CONFIG_CFG_GROUP = "Config"
FTP_PORT_CFG_KEY = "FTP Port"
FTP_TLS_CFG_KEY = "FTP TLS"
SSH_PORT_CFG_KEY = "SSH Port"
TIMEOUT_CFG_KEY = "Timeout"
DRY_RUN_CFG_KEY = "Dry Run"

DEFAULT_SERVER_DIR = "./"
DEFAULT_FTP_PORT = 21
DEFAULT_SSH_PORT = 22
DEFAULT_TIMEOUT = 30

_port = And(int, lambda port: 0 < port < 65536, error="Port must be an integer between 1 and 65535")

CFG_FILE_VALIDATION = Schema({
    DEPLOYMENT_CFG_GROUP: {
        LOCAL_REPO_PATH_CFG_KEY: And(str, len),
        Optional(SERVER_DIR_CFG_KEY): And(str, len),
        Optional(EXCLUDED_FILES_CFG_KEY): [str],
        Optional(REMOTE_COMMANDS_CFG_KEY): And([And(str, len)], len)
    },
    Optional(CONFIG_CFG_GROUP): {
        Optional(FTP_PORT_CFG_KEY): _port,
        Optional(FTP_TLS_CFG_KEY): bool,
        Optional(SSH_PORT_CFG_KEY): _port,
        Optional(TIMEOUT_CFG_KEY): And(int, lambda timeout: timeout > 0),
        Optional(DRY_RUN_CFG_KEY): bool
    }
})


class InitFileParser():
    """
        Reads the deployer init file. The init file is a json file holding the local repo to upload, the directory on
        the FTP server to upload it to and some connection settings. Every value except the local repo path has a
        default. Credentials are never stored in this file, see load_secrets().
    """

    def __init__(self, init_file_path):

        self.init_file_path = init_file_path

        self.attributes = {
            "deployment_local": None,
            "server_dir": DEFAULT_SERVER_DIR,
            "exclusions": list(UPLOAD_EXCLUSIONS),
            "remote_commands": list(REMOTE_COMMANDS),
            "ftp_port": DEFAULT_FTP_PORT,
            "ftp_tls": False,
            "ssh_port": DEFAULT_SSH_PORT,
            "timeout": DEFAULT_TIMEOUT,
            "dry_run": False
        }

        self.parse_init_file()

    def parse_init_file(self):
        """
            Loads and validates the init file then fills the attributes. Raises a ConfigError if the file can not be
            read, is not valid json, does not follow CFG_FILE_VALIDATION or points to a local repo that does not exist.
        """

        try:
            with open(self.init_file_path) as init_json_file:
                init_json = json.load(init_json_file)

        except (OSError, ValueError) as e:
            raise ConfigError("An error occurred when parsing init file [{}]".format(e)) from e

        try:
            CFG_FILE_VALIDATION.validate(init_json)

        except SchemaError as e:
            raise ConfigError("CFG file not correct format; Schema Error: [{}]".format(e)) from e

        deployment = init_json[DEPLOYMENT_CFG_GROUP]
        config = init_json.get(CONFIG_CFG_GROUP, {})

        # A relative repo path is relative to the init file, not to where the deployer is started from
        init_dir = os.path.dirname(os.path.abspath(self.init_file_path))
        deployment_local = os.path.join(init_dir, deployment[LOCAL_REPO_PATH_CFG_KEY])
        deployment_local = os.path.abspath(deployment_local)

        if not os.path.isdir(deployment_local):
            raise ConfigError("Local repo path [{}] is not a directory".format(deployment_local))

        self.attributes["deployment_local"] = deployment_local + "/"

        server_dir = deployment.get(SERVER_DIR_CFG_KEY, DEFAULT_SERVER_DIR)
        if not server_dir.endswith("/"):
            server_dir += "/"
        self.attributes["server_dir"] = server_dir

        # Extra exclusions never replace the fixed ones
        self.attributes["exclusions"] = list(UPLOAD_EXCLUSIONS) + [
            pattern for pattern in deployment.get(EXCLUDED_FILES_CFG_KEY, []) if pattern not in UPLOAD_EXCLUSIONS
        ]

        self.attributes["remote_commands"] = list(deployment.get(REMOTE_COMMANDS_CFG_KEY, REMOTE_COMMANDS))

        self.attributes["ftp_port"] = config.get(FTP_PORT_CFG_KEY, DEFAULT_FTP_PORT)
        self.attributes["ftp_tls"] = config.get(FTP_TLS_CFG_KEY, False)
        self.attributes["ssh_port"] = config.get(SSH_PORT_CFG_KEY, DEFAULT_SSH_PORT)
        self.attributes["timeout"] = config.get(TIMEOUT_CFG_KEY, DEFAULT_TIMEOUT)
        self.attributes["dry_run"] = config.get(DRY_RUN_CFG_KEY, False)

        return True

    def __getattr__(self, item):
        # attributes is looked up through __dict__ so a half built parser does not recurse
        attributes = self.__dict__.get("attributes", {})
        if item in attributes:
            return attributes[item]
        raise AttributeError("No such attribute: " + item)


def load_secrets(environ=None):
    """
        Reads the deployment secrets from the environment, this is how the automation platform injects them in a run.
        Every missing secret is reported at once, in the order of REQUIRED_SECRETS.

        :param dict environ: Mapping to read from, defaults to os.environ.

        :return: A dictionary of secret name to value.
    """

    if environ is None:
        environ = os.environ

    secrets = {}
    missing = []

    for name in REQUIRED_SECRETS:

        value = environ.get(name)

        if value is None or (value == "" and name not in OPTIONAL_VALUE_SECRETS):
            missing.append(name)
        else:
            secrets[name] = value

    if missing:
        raise MissingSecretsError(missing)

    return secrets
