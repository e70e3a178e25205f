# ------------------------------------------------------------
# mailgate/files.py
#
# local file access
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

"""This module reads files to send and saves received attachments."""

import logging
import os

from .errors import ResourceMissingError

logger = logging.getLogger(__name__)


def get_file(path: str) -> str:
    """Resolve a path to a readable file.

    :param path:    the file path
    :return:        the absolute file path
    """
    file_path = os.path.abspath(os.path.expanduser(path))
    if not os.path.isfile(file_path) or not os.access(file_path, os.R_OK):
        raise ResourceMissingError(f"File '{path}' not found.", details={'path': path})
    return file_path


def read_file(path: str) -> bytes:
    """Read the content of a file."""
    file_path = get_file(path)
    try:
        with open(file_path, 'rb') as f:
            return f.read()
    except OSError as e:
        raise ResourceMissingError(f"Failed to read '{path}': {e}", details={'path': path}) from e


def get_filename(path: str) -> str:
    """Bare file name of a path."""
    return os.path.basename(path)


def save_file(data: bytes, path: str) -> bool:
    """Save bytes to a file, creating the parent folder if needed.

    :param data:    the content
    :param path:    the target file path
    :return:        True on success
    """
    if data is None:
        return False
    folder = os.path.dirname(path)
    try:
        if folder:
            try:
                os.makedirs(folder)
            except FileExistsError:
                pass
        with open(path, 'wb') as f:
            f.write(data)
    except OSError as e:
        logger.debug('Failed to save %s: %s', path, e)
        return False
    return True
