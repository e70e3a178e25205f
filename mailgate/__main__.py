#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# ------------------------------------------------------------
# mailgate/__main__.py
#
# mailgate package start
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

"""This is the mailgate package start script."""

import sys

from . import color
from . import command_line
from .errors import MailError


def main() -> None:
    """mailgate main startup."""
    try:
        command_line.cli(prog_name='mail-gate')
    except MailError as e:
        sys.stderr.write(color.error(e.message) + '\n')
        sys.exit(1)


if __name__ == '__main__':
    main()
