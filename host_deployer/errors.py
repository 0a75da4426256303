#!/usr/bin/env python3

"""
    Exceptions raised by the host_deployer. Every failure of a deployment step is raised as one of these, the command
    line entry point catches DeployError, prints it and exits with a non zero status.
"""


class DeployError(Exception):
    """
        Base class of all the deployer errors.
    """

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ConfigError(DeployError):
    """
        The init file could not be read or does not follow the expected format.
    """


class MissingSecretsError(DeployError):

    def __init__(self, names):
        self.names = list(names)
        super().__init__("Missing required secrets: {}".format(", ".join(self.names)))


class UploadError(DeployError):
    """
        A file transfer with the FTP server failed.
    """


class SSHConnectionError(DeployError):
    """
        The ssh connection to the server could not be established.
    """


class RemoteCommandError(DeployError):

    def __init__(self, command, exit_status, output=""):
        self.command = command
        self.exit_status = exit_status
        self.output = output
        super().__init__("Remote command [{}] failed with exit code {}".format(command, exit_status))
