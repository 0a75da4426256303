#!/usr/bin/env python3

"""
    Documentation checks between the README of an application and its deployment workflow:

        - every secret the workflow references must be listed in the README secrets instructions.
        - the remote commands of the workflow must be described in the README, in the same order.
"""

import collections
import re

from host_deployer.workflow.workflow import workflow_remote_commands

UNDOCUMENTED_SECRET = "undocumented-secret"
MISSING_COMMAND = "missing-command"
COMMAND_ORDER = "command-order"

LintIssue = collections.namedtuple("LintIssue", ["code", "message"])

SECRET_REF_RE = re.compile(r"\$\{\{\s*secrets\.([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")
BACKTICKED_NAME_RE = re.compile(r"`([A-Z][A-Z0-9_]*)`")
HEADING_RE = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$")
FENCE_RE = re.compile(r"^\s{0,3}(```|~~~)")


def referenced_secrets(workflow_text):
    """
        Returns the names of the secrets used in the workflow, in order of first use.
    """

    ret_val = []
    for name in SECRET_REF_RE.findall(workflow_text):
        if name not in ret_val:
            ret_val.append(name)
    return ret_val


def secrets_section(readme_text):
    """
        Returns the text of the README sections whose heading mentions secrets, nested headings included. When the
        README has no such heading, the whole text is returned.
    """

    sections = []
    current = None
    current_level = None
    in_fence = False

    for line in readme_text.splitlines():

        # Comments in code blocks are not headings
        if FENCE_RE.match(line):
            in_fence = not in_fence

        heading = None if in_fence else HEADING_RE.match(line)
        if heading:

            level = len(heading.group(1))
            if current is not None and level <= current_level:
                sections.append("\n".join(current))
                current = None

            if current is None and "secret" in heading.group(2).lower():
                current = []
                current_level = level
                continue

        if current is not None:
            current.append(line)

    if current is not None:
        sections.append("\n".join(current))

    if not sections:
        return readme_text

    return "\n".join(sections)


def documented_secrets(readme_text):

    ret_val = []
    for name in BACKTICKED_NAME_RE.findall(secrets_section(readme_text)):
        if name not in ret_val:
            ret_val.append(name)
    return ret_val


def check_secrets(readme_text, workflow_text):

    documented = set(documented_secrets(readme_text))

    return [
        LintIssue(UNDOCUMENTED_SECRET, "Secret [{}] is used by the workflow but not listed in the README".format(name))
        for name in referenced_secrets(workflow_text) if name not in documented
    ]


def check_command_order(readme_text, workflow_text):
    """
        Checks that every remote command of the workflow appears in the README and that they appear in the same order
        as in the workflow script.
    """

    issues = []
    positions = []

    for command in workflow_remote_commands(workflow_text):

        position = readme_text.find(command)
        if position == -1:
            issues.append(LintIssue(MISSING_COMMAND, "Remote command [{}] is not described in the README".format(command)))
        else:
            positions.append((position, command))

    for (previous_position, previous), (position, command) in zip(positions, positions[1:]):
        if position < previous_position:
            issues.append(LintIssue(COMMAND_ORDER, "README describes [{}] before [{}], the workflow runs them the other "
                                                   "way around".format(command, previous)))

    return issues


def lint(readme_path, workflow_path):
    """
        Runs every documentation check.

        :param str readme_path: Path to the README file.
        :param str workflow_path: Path to the workflow yaml file.

        :return: A list of LintIssue, empty when the documentation is consistent.
    """

    with open(readme_path, encoding="utf-8") as readme_file:
        readme_text = readme_file.read()

    with open(workflow_path, encoding="utf-8") as workflow_file:
        workflow_text = workflow_file.read()

    return check_secrets(readme_text, workflow_text) + check_command_order(readme_text, workflow_text)
