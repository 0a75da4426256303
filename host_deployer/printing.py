#!/usr/bin/env python3

import datetime

TIMESTAMP_FORMAT = "%Y/%m/%d/%H/%M/%S"


def timestamp_print(msg, verbose=True):

    if verbose:
        current_time = datetime.datetime.now()
        current_timestamp = current_time.strftime(TIMESTAMP_FORMAT)
        print(f"{current_timestamp}: {msg}")


def error_print(msg):
    print("!!! ERROR: {} !!!".format(msg))


def host_print(host, msg, end="\n"):
    """
        Prints a message coming from the ssh server host, the output will clarify that it is from the host.

        :param str host: Name of the host the message comes from.
        :param str msg: Message to print
        :param str end: Parameter to pass to print()
    """

    print("{}: {}".format(host, msg), end=end)
