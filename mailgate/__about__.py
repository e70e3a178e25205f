#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# ------------------------------------------------------------
# mailgate/__about__.py
#
# information about the mailgate package
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

"""This is the mailgate package."""

__author__ = 'Oliver Maurhart'
__email__ = '<dyle71@gmail.com>'
__copyright__ = 'Copyright (C) 2018, 2019, Oliver Maurhart'
__license__ = 'MIT'
__title__ = 'mailgate'
__summary__ = """Send mails via SMTP and read, list and flag mails of an IMAP4 or POP3
inbox through one API."""
__version__ = '0.1.0'
__uri__ = 'https://github.com/dyle71/mail-gate'
