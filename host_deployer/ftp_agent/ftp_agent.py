#!/usr/bin/env python3

"""
    This python file holds the ftp_agent used to upload the repo to the shared hosting server. Shared hosting accounts
    usually only give FTP access for file transfers, so the agent keeps a json file on the server holding the structure
    of the last upload. Comparing it with the local structure tells which files need to be sent or removed.
"""

import collections
import ftplib
import io
import json
import posixpath
import time

from host_deployer.errors import UploadError
from host_deployer.local_tree.local_tree import (get_copy_actions_from_diff, get_delete_actions_from_diff,
                                                 get_all_directory_paths, is_directory_path)
from host_deployer.printing import error_print, timestamp_print

SYNC_STATE_FILE_NAME = ".ftp-deploy-sync-state.json"
SYNC_STATE_VERSION = 1

UploadReport = collections.namedtuple("UploadReport", ["uploaded", "deleted", "dry_run"])


class FTPAgent():
    """
        This is the ftp_agent class. It uploads a local repo to a directory of an FTP server.
    """

    def __init__(self, host, username, password, server_dir="./", port=21, tls=False, timeout=30, verbose=False):

        self.host = host
        self.username = username
        self.server_dir = server_dir if server_dir.endswith("/") else server_dir + "/"
        self.port = port
        self.tls = tls
        self.timeout = timeout
        self.verbose = verbose

        # Remote directories known to exist, avoids a MKD per uploaded file
        self._known_dirs = set()
        self._server_dir_ready = False

        # Directory the login lands in, relative server paths start from it
        self._home = None

        self.ftp = None
        self._ftp_connect(password)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self):

        if self.ftp is None:
            return

        timestamp_print("Closing FTP Connection", self.verbose)
        try:
            self.ftp.quit()
        except ftplib.all_errors:
            self.ftp.close()
        self.ftp = None
        timestamp_print("Connection to {} closed.".format(self.host), self.verbose)

    def sync(self, local_root, local_tree, dry_run=False):
        """
            Uploads every new or changed file of the local repo and removes from the server what was removed locally,
            then stores the local structure as the new server state. Deletions are done first so an element that went
            from file to directory (or the opposite) can be replaced.

            :param str local_root: Path to the local repo, ending with "/".
            :param dict local_tree: Structure of the local repo, see local_tree.get_local_directory_structure().
            :param bool dry_run: Only print what would be done.

            :return: An UploadReport.
        """

        server_tree = self.get_server_state()

        files_to_copy = get_copy_actions_from_diff(local_tree, server_tree)
        files_to_del = get_delete_actions_from_diff(local_tree, server_tree)

        timestamp_print("{} file(s) to upload, {} element(s) to delete".format(len(files_to_copy), len(files_to_del)),
                        self.verbose)

        if dry_run:

            for file in files_to_copy:
                timestamp_print("[dry run] upload {}".format(file))
            for file in files_to_del:
                timestamp_print("[dry run] delete {}".format(file))

            return UploadReport(uploaded=files_to_copy, deleted=files_to_del, dry_run=True)

        self.make_server_root()

        for file in files_to_del:
            self.delete_from_server(file, server_tree)

        for file in files_to_copy:
            self.copy_file_to_server(local_root + file, file)

        self.put_server_state(local_tree)

        return UploadReport(uploaded=files_to_copy, deleted=files_to_del, dry_run=False)

    def get_server_state(self):
        """
            Reads the structure stored on the server by the last upload. A missing or unreadable state file means
            nothing was uploaded yet and an empty structure is returned.
        """

        buffer = io.BytesIO()

        try:
            self.ftp.retrbinary("RETR {}".format(self._server_path(SYNC_STATE_FILE_NAME)), buffer.write)

        except ftplib.error_perm:
            timestamp_print("No sync state on the server, uploading everything", self.verbose)
            return {}

        except ftplib.all_errors as e:
            raise UploadError("Unable to read the sync state from [{}]; error message: [{}]".format(self.host, e)) from e

        try:
            state = json.loads(buffer.getvalue().decode("utf-8"))

        except ValueError:
            error_print("Sync state on the server is not valid json, uploading everything")
            return {}

        if not isinstance(state, dict) or state.get("version") != SYNC_STATE_VERSION or not isinstance(state.get("tree"), dict):
            error_print("Sync state on the server has an unknown format, uploading everything")
            return {}

        return state["tree"]

    def put_server_state(self, local_tree):

        state = {
            "version": SYNC_STATE_VERSION,
            "generatedTime": int(time.time() * 1000),
            "tree": local_tree
        }
        payload = io.BytesIO(json.dumps(state, indent=4, sort_keys=True).encode("utf-8"))
        self._ftp_call(self.ftp.storbinary, "STOR {}".format(self._server_path(SYNC_STATE_FILE_NAME)), payload)

    def copy_file_to_server(self, local_file, relative_path):
        """
            This method will use STOR to copy a file over to the FTP server from the local machine, creating its parent
            directories first when needed.

            :param str local_file: The local path to the file that needs to be copied.
            :param str relative_path: Path of the file relative to the server dir.
        """

        timestamp_print("Copying {} to {}".format(local_file, self._server_path(relative_path)), self.verbose)

        self.make_server_dirs(posixpath.dirname(relative_path))

        with open(local_file, "rb") as file:
            self._ftp_call(self.ftp.storbinary, "STOR {}".format(self._server_path(relative_path)), file)

    def make_server_root(self):
        """
            Creates the server dir and each of its parents that does not exist yet. Only done once per connection.
        """

        if self._server_dir_ready:
            return

        current = "/" if self.server_dir.startswith("/") else ""
        for part in self.server_dir.split("/"):

            if part in ("", "."):
                continue

            current = posixpath.join(current, part)
            self._make_dir(current)

        self._server_dir_ready = True

    def make_server_dirs(self, relative_dir):

        if not relative_dir:
            return

        current = ""
        for part in relative_dir.split("/"):

            current = posixpath.join(current, part)
            if current in self._known_dirs:
                continue

            self._make_dir(self._server_path(current))
            self._known_dirs.add(current)

    def delete_from_server(self, relative_path, server_tree):
        """
            This method will delete a file or a directory on the FTP server. A directory is emptied using the files the
            server state says it holds, files the deployer never uploaded are left in place along with their directory.

            :param str relative_path: Path relative to the server dir.
            :param dict server_tree: Structure of the last upload.
        """

        timestamp_print("Deleting {}".format(self._server_path(relative_path)), self.verbose)

        if not is_directory_path(server_tree, relative_path):
            self._delete_file(relative_path)
            return

        node = server_tree
        for part in relative_path.split("/"):
            node = node[part]

        for file in get_all_directory_paths(node):
            self._delete_file(relative_path + "/" + file)

        # Deepest directories first
        directories = sorted(self._directory_paths(node), key=lambda path: path.count("/"), reverse=True)
        for directory in directories + [""]:

            directory_path = relative_path + ("/" + directory if directory else "")
            try:
                self.ftp.rmd(self._server_path(directory_path))
            except ftplib.error_perm as e:
                error_print("Could not remove directory [{}]: [{}]".format(directory_path, e))
            except ftplib.all_errors as e:
                raise UploadError("Unable to remove [{}] on [{}]; error message: [{}]".format(directory_path, self.host, e)) from e

            self._known_dirs.discard(directory_path)

    # ////////////////////// Helpers ////////////////////// #

    def _make_dir(self, server_path):
        """
            Creates a directory on the server. MKD also answers 550 when the directory already exists, so a refused
            MKD is only an error when the directory can not be entered afterwards.

            :param str server_path: Path on the server, as given to MKD.
        """

        try:
            self.ftp.mkd(server_path)

        except ftplib.error_perm as e:
            if not self._server_dir_exists(server_path):
                raise UploadError("Unable to create [{}] on [{}]; error message: [{}]".format(server_path, self.host, e)) from e

        except ftplib.all_errors as e:
            raise UploadError("Unable to create [{}] on [{}]; error message: [{}]".format(server_path, self.host, e)) from e

    def _server_dir_exists(self, server_path):

        try:
            self.ftp.cwd(server_path)
        except ftplib.error_perm:
            return False
        except ftplib.all_errors as e:
            raise UploadError("Unable to enter [{}] on [{}]; error message: [{}]".format(server_path, self.host, e)) from e

        self._ftp_call(self.ftp.cwd, self._home)
        return True

    def _delete_file(self, relative_path):

        try:
            self.ftp.delete(self._server_path(relative_path))
        except ftplib.error_perm as e:
            # Removed by hand since the last upload
            error_print("Could not delete [{}]: [{}]".format(relative_path, e))
        except ftplib.all_errors as e:
            raise UploadError("Unable to delete [{}] on [{}]; error message: [{}]".format(relative_path, self.host, e)) from e

    def _directory_paths(self, tree, prefix=""):

        ret_val = []
        for name, element in tree.items():
            if isinstance(element, dict):
                ret_val.append(prefix + name)
                ret_val += self._directory_paths(element, prefix + name + "/")
        return ret_val

    def _server_path(self, relative_path):
        return self.server_dir + relative_path

    def _ftp_call(self, method, *args):
        """
            Runs an ftplib call and turns any ftp or socket error into an UploadError.
        """

        try:
            return method(*args)
        except ftplib.all_errors as e:
            raise UploadError("FTP command [{}] failed on [{}]; error message: [{}]".format(args[0], self.host, e)) from e

    def _ftp_connect(self, password):
        """
            This method will connect and log into the FTP server given its class variables instantiated in the init
            method. With tls, the data channel is protected too. Passive mode is used as shared hosts expect it.
        """

        timestamp_print("FTP Connecting to: Host-{}, Port-{}, Username-{}".format(self.host, self.port, self.username),
                        self.verbose)

        ftp_class = ftplib.FTP_TLS if self.tls else ftplib.FTP

        try:
            self.ftp = ftp_class(timeout=self.timeout)
            self.ftp.connect(host=self.host, port=self.port)
            self.ftp.login(user=self.username, passwd=password)
            if self.tls:
                self.ftp.prot_p()
            self.ftp.set_pasv(True)
            self._home = self.ftp.pwd()

        except ftplib.all_errors as e:
            if self.ftp is not None:
                self.ftp.close()
                self.ftp = None
            raise UploadError("Unable to FTP connect to [{}]; error message: [{}]".format(self.host, e)) from e

        timestamp_print("Connected", self.verbose)
