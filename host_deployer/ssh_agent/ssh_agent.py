#!/usr/bin/env python3

"""
    This python file holds the ssh_agent used to connect and run commands via ssh to the hosting server. Once the
    files are uploaded, the deployer uses it to run the application maintenance commands (migrations, caches) from the
    deploy path.
"""

import collections
import io

import paramiko

from host_deployer.contract.contract import remote_command_line
from host_deployer.errors import RemoteCommandError, SSHConnectionError
from host_deployer.printing import host_print, timestamp_print

CommandResult = collections.namedtuple("CommandResult", ["command", "exit_status", "output"])

# Tried in order when loading the private key given as text
KEY_CLASSES = (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey)


class SSHAgent():
    """
        This is the ssh_agent class. It is used to send commands to a given server via ssh.
    """

    def __init__(self, host, username, private_key, passphrase="", port=22, timeout=30, verbose=False):

        self.host = host
        self.username = username
        self.port = port
        self.timeout = timeout
        self.verbose = verbose

        self.ssh = None
        self._ssh_connect(load_private_key(private_key, passphrase))

        # Will hold the three main file types on the ssh server.
        self.streams = {
            "in": None,
            "out": None,
            "err": None
        }

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self):

        if self.ssh is None:
            return

        timestamp_print("Closing SSH Connection", self.verbose)
        self.ssh.close()
        self.ssh = None
        timestamp_print("Connection to {} closed.".format(self.host), self.verbose)

    def run_commands(self, deploy_path, commands):
        """
            Runs each command from the deploy path, in order. The output of each command is printed as it comes. The
            first command exiting with a non zero status stops the run.

            :param str deploy_path: Directory on the server the commands are ran from.
            :param commands: Iterable of shell commands.

            :return: A list of CommandResult, one per command ran.
        """

        ret_val = []

        for command in commands:

            timestamp_print("========== Running [{}] ==========".format(command), self.verbose)

            result = self.run_command(remote_command_line(deploy_path, [command]))
            result = result._replace(command=command)
            ret_val.append(result)

            if result.exit_status != 0:
                raise RemoteCommandError(command, result.exit_status, result.output)

            timestamp_print("Process finished with exit code {}".format(result.exit_status), self.verbose)

        return ret_val

    def run_command(self, command):
        """
            Runs a command and waits for it to exit. There is no time limit on the command itself, migrations can stay
            silent for minutes.

            :param str command: Command to run

            :return: A CommandResult, stderr is merged in the output.
        """

        self._run_command(command)

        try:
            output = self.print_stdout()
            exit_status = self.streams["out"].channel.recv_exit_status()

        except (paramiko.SSHException, OSError) as e:
            raise SSHConnectionError("Lost the connection to [{}] while running [{}]; error message: [{}]".format(
                self.host, command, e)) from e

        return CommandResult(command=command, exit_status=exit_status, output=output)

    def print_stdout(self):
        """
            This method will print in real time the contents of stdout. This method will not finish until EOF is reached
            in stdout.

            :return: Everything read from stdout.
        """

        lines = []

        # readline will return until "\n" but will not finish iterating until EOF
        for line in iter(self.streams["out"].readline, ""):
            host_print(self.host, line, end="")
            lines.append(line)

        return "".join(lines)

    # ////////////////////// Helpers ////////////////////// #

    def _run_command(self, command):
        """
            Opens a session channel, runs the command in it and stores stdin, stdout, and stderr in the streams class
            variable. stderr is combined into stdout so a single read drains both. The timeout only applies to opening
            the channel, never to reading the output.

            :param str command: Command to run
        """

        transport = self.ssh.get_transport()
        if transport is None or not transport.is_active():
            raise SSHConnectionError("Connection to [{}] is closed".format(self.host))

        try:
            channel = transport.open_session(timeout=self.timeout)
            channel.set_combine_stderr(True)
            channel.exec_command(command)
        except paramiko.SSHException as e:
            raise SSHConnectionError("Unable to run a command on [{}]; error message: [{}]".format(self.host, e)) from e

        self.streams["in"] = channel.makefile_stdin("wb")
        self.streams["out"] = channel.makefile("r")
        self.streams["err"] = channel.makefile_stderr("r")

    def _ssh_connect(self, pkey):
        """
            This method will connect to an ssh server given its class variables instantiated in the init method. The
            host key is accepted when unknown as the machine running the deployer usually has no known_hosts file.
        """

        timestamp_print("SSH Connecting to: Host-{}, Port-{}, Username-{}".format(self.host, self.port, self.username),
                        self.verbose)

        self.ssh = paramiko.SSHClient()
        self.ssh.load_system_host_keys()
        self.ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            self.ssh.connect(hostname=self.host, port=self.port, username=self.username, pkey=pkey,
                             timeout=self.timeout, allow_agent=False, look_for_keys=False)

        except (paramiko.SSHException, OSError) as e:
            self.ssh.close()
            self.ssh = None
            raise SSHConnectionError("Unable to SSH connect to [{}]; error message: [{}]".format(self.host, e)) from e

        timestamp_print("Connected", self.verbose)


def load_private_key(private_key, passphrase=""):
    """
        Builds a paramiko key from the text of a private key, as stored in the SSH_PRIVATE_KEY secret.

        :param str private_key: The private key file content.
        :param str passphrase: Passphrase of the key, empty when the key is not encrypted.

        :return: A paramiko.PKey.
    """

    password = passphrase or None
    errors = []

    for key_class in KEY_CLASSES:

        try:
            return key_class.from_private_key(io.StringIO(private_key), password=password)

        except paramiko.PasswordRequiredException as e:
            raise SSHConnectionError("Private key is encrypted and no passphrase was given") from e

        except (paramiko.SSHException, ValueError) as e:
            errors.append("{}: {}".format(key_class.__name__, e))

    raise SSHConnectionError("Unable to load the private key; tried [{}]".format("; ".join(errors)))
