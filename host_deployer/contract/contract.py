#!/usr/bin/env python3

"""
    This python file holds the fixed interface of a deployment to the shared hosting server: the branch that triggers
    it, the names of the secrets it consumes, the files that are never uploaded and the commands ran on the server once
    the upload is done.
"""

import fnmatch
import shlex

TRIGGER_EVENT = "push"
TRIGGER_BRANCH = "main"

FTP_SERVER = "FTP_SERVER"
FTP_USERNAME = "FTP_USERNAME"
FTP_PASSWORD = "FTP_PASSWORD"
SSH_HOST = "SSH_HOST"
SSH_USER = "SSH_USER"
SSH_PRIVATE_KEY = "SSH_PRIVATE_KEY"
SSH_PASSPHRASE = "SSH_PASSPHRASE"
DEPLOY_PATH = "DEPLOY_PATH"

REQUIRED_SECRETS = (
    FTP_SERVER,
    FTP_USERNAME,
    FTP_PASSWORD,
    SSH_HOST,
    SSH_USER,
    SSH_PRIVATE_KEY,
    SSH_PASSPHRASE,
    DEPLOY_PATH,
)

# Secrets that must be defined but are allowed to hold an empty value
OPTIONAL_VALUE_SECRETS = (SSH_PASSPHRASE,)

# Order matters, migrations must run before the caches are rebuilt
REMOTE_COMMANDS = (
    "php artisan migrate --force",
    "php artisan config:cache",
    "php artisan route:cache",
    "php artisan view:cache",
)

UPLOAD_EXCLUSIONS = (
    "**/.git*",
    "**/.git*/**",
    ".github/**",
    "composer.json",
    "composer.lock",
    "package.json",
    "package-lock.json",
    "README.md",
    ".env",
    "tests/**",
)


def is_excluded(relative_path, patterns=UPLOAD_EXCLUSIONS):
    """
        Checks a path relative to the local repo root against a list of glob patterns. Directories should be given with
        a trailing "/" so that "dir/**" patterns also match the directory itself. A pattern starting with "**/" also
        matches at the top level of the repo.

        :param str relative_path: Path relative to the repo root using "/" separators.
        :param patterns: Iterable of glob patterns.

        :return: T/F based on if the path matches one of the patterns.
    """

    path = relative_path.replace("\\", "/").lstrip("/")
    if path.startswith("./"):
        path = path[2:]

    for pattern in patterns:

        if fnmatch.fnmatchcase(path, pattern):
            return True

        if pattern.startswith("**/") and fnmatch.fnmatchcase(path, pattern[3:]):
            return True

    return False


def remote_command_line(deploy_path, commands=REMOTE_COMMANDS):
    """
        Builds a single shell line that changes into the deploy path and runs every command in order. The commands are
        chained with "&&" so the first failing one stops the rest.
    """

    parts = ["cd {}".format(shlex.quote(deploy_path))]
    parts += list(commands)
    return " && ".join(parts)
