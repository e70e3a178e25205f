# ------------------------------------------------------------
# mailgate/color.py
#
# provides colorful output
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

"""This module generated colorized text outputs for the terminal."""

import logging

import colors

from .config import Config


def _color(t: str, fg: str) -> str:
    if not Config().no_color:
        return colors.color(t, fg=fg)
    return t


def connection_detail(t: str) -> str:
    """Color for connection details.

    :param t:   the text
    :return:    a colorized version of the text
    """
    return _color(t, 'green')


def error(t: str) -> str:
    """Color for error messages.

    :param t:   the text
    :return:    a colorized version of the text
    """
    return _color(t, 'red')


def warning(t: str) -> str:
    """Color for warnings."""
    return _color(t, 'magenta')


def uid(t: str) -> str:
    """Color for message uids.

    :param t:   the text
    :return:    a colorized version of the text
    """
    return _color(t, 'blue')


def success(t: str) -> str:
    """Color for success messages.

    :param t:   the text
    :return:    a colorized version of the text
    """
    return _color(t, 'yellow')


class ColorFormatter(logging.Formatter):

    """Log formatter coloring warnings and errors."""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if record.levelno >= logging.ERROR:
            return error(text)
        if record.levelno >= logging.WARNING:
            return warning(text)
        return text
