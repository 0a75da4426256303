#!/usr/bin/env python3

"""
    Directory structures of the repo to deploy and the diff between two of them. A structure is a dictionary with each
    key being the name of an element in the repo. The value of an element is either the sha1 hex digest of a file, or a
    dictionary representing a directory. The same structure is stored on the server after each upload so the next
    deployment only has to send what changed.

        example_repo_structure = {
            "foo.php": "2aae6c35c94fcfb415dbe95f408b9ce91ee846ed",
            "bar": { ... }
        }
"""

import hashlib
import os

from host_deployer.contract.contract import UPLOAD_EXCLUSIONS, is_excluded
from host_deployer.printing import error_print

HASH_CHUNK_SIZE = 64 * 1024


def get_local_directory_structure(directory_path, exclusions=UPLOAD_EXCLUSIONS, relative_path=""):
    """
        This method will use the os library to scan the local directory and populate a directory structure of the local
        repo. If while going through the repo, an element matches one of the exclusion patterns, it is skipped and will
        not appear in the returned structure. Empty directories are left out as there is nothing to upload in them.

        :param str directory_path: The path to the local directory/repo.
        :param exclusions: Glob patterns, relative to the repo root, of elements to skip.
        :param str relative_path: Path of directory_path relative to the repo root, used by the recursion.

        :return: The structure of the repo in type dictionary.
    """

    ret_val = {}

    with os.scandir(directory_path) as directory_scan:
        for element in sorted(directory_scan, key=lambda entry: entry.name):

            element_name = element.name
            element_relative = relative_path + element_name

            # Symlinks are followed, the server gets the content they point to
            if element.is_dir():

                if is_excluded(element_relative + "/", exclusions):
                    continue

                sub_tree = get_local_directory_structure(element.path, exclusions, element_relative + "/")
                if sub_tree:
                    ret_val[element_name] = sub_tree

            elif element.is_file():

                if is_excluded(element_relative, exclusions):
                    continue

                ret_val[element_name] = hash_file(element.path)

            else:
                error_print("Did not recognize [{}] element type in directory: [{}]".format(element_name, directory_path))

    return ret_val


def hash_file(file_path):

    sha1 = hashlib.sha1()
    with open(file_path, "rb") as file:
        for chunk in iter(lambda: file.read(HASH_CHUNK_SIZE), b""):
            sha1.update(chunk)
    return sha1.hexdigest()


def get_copy_actions_from_diff(local_tree, server_tree):
    """
        This method will go through each file in the local repo and check to see if the same file exists in the server
        repo. It will the use the logic below to determine and return a list of files to copy over to the server repo.

            If the server does not have the file -> file needs to be copied to the server.
            If the server has the file but they differ -> file needs to be copied to the sever.
            If the server has the file and the are the same -> no action.

        :param dict local_tree: The repo structure of the repo on the local machine.
        :param dict server_tree: The repo structure of the repo on the server machine.

        :return: A list of files needed to be copied on the server machine.
    """

    ret_val = []

    for element_name, element_value in local_tree.items():

        element_exists_in_server = element_name in server_tree
        is_dir = isinstance(element_value, dict)

        if not element_exists_in_server:

            # New directory, every file in it gets copied
            if is_dir:
                ret_val += [element_name + "/" + copy_path for copy_path in get_all_directory_paths(element_value)]
            else:
                ret_val.append(element_name)

        elif element_value != server_tree[element_name]:

            server_value = server_tree[element_name]

            if is_dir and isinstance(server_value, dict):

                new_actions = get_copy_actions_from_diff(element_value, server_value)
                ret_val += [element_name + "/" + copy_path for copy_path in new_actions]

            elif is_dir:

                # A file on the server became a directory locally
                ret_val += [element_name + "/" + copy_path for copy_path in get_all_directory_paths(element_value)]

            else:
                ret_val.append(element_name)

    return ret_val


def get_delete_actions_from_diff(local_tree, server_tree):
    """
        This method will go through each elements in the server repo structure and will compare with the local repo
        structure. It will use some logic to determine what files need to be deleted from the server repo in order to
        keep both structures consistent.

            If the element in the server does not exist in the local repo -> element needs to the deleted from the server
            If the element changed between file and directory -> element needs to be deleted before the copy
            If the element is a directory -> recursively call the method to find any files needed to be deleted

        :param dict local_tree: The repo structure of the repo on the local machine.
        :param dict server_tree: The repo structure of the repo on the server machine.

        :return: A list of files/directories needed to be deleted on the server machine.
    """

    ret_val = []

    for element_name, element_value in server_tree.items():

        element_is_dir = isinstance(element_value, dict)

        if element_name not in local_tree:

            ret_val.append(element_name)

        elif element_is_dir != isinstance(local_tree[element_name], dict):

            ret_val.append(element_name)

        elif element_is_dir:

            new_actions = get_delete_actions_from_diff(local_tree[element_name], element_value)
            ret_val += [element_name + "/" + delete_path for delete_path in new_actions]

    return ret_val


def get_all_directory_paths(directory_tree):
    """
        This method takes in a directory structure and returns the path to each file in the directory as list of strings.

        :param dict directory_tree: This is a directory structure in a dictionary.

        :return: A list of all paths to each file in the dictionary.
    """

    ret_val = []

    for name, element in directory_tree.items():

        if isinstance(element, dict):
            ret_val += [name + "/" + file for file in get_all_directory_paths(element)]
        else:
            ret_val.append(name)

    return ret_val


def is_directory_path(tree, relative_path):
    """
        Returns T/F based on if the given path points to a directory in the structure.
    """

    node = tree
    for part in relative_path.strip("/").split("/"):
        if not isinstance(node, dict) or part not in node:
            return False
        node = node[part]
    return isinstance(node, dict)
