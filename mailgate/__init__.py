#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# ------------------------------------------------------------
# mailgate/__init__.py
#
# init mailgate package file
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

"""This is the mailgate package."""

from mailgate.__about__ import (
    __author__,
    __copyright__,
    __email__,
    __license__,
    __summary__,
    __title__,
    __uri__,
    __version__
)
