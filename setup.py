#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# ------------------------------------------------------------
# setup.py
#
# mail-gate setuptools main file
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

import os

from setuptools import setup

about = {}
with open(os.path.join(os.path.dirname(os.path.abspath(__file__)), 'mailgate', '__about__.py')) as f:
    exec(f.read(), about)

setup(
    name='mail-gate',
    version=about['__version__'],
    description='Send mails via SMTP, read, list and flag mails via IMAP4 or POP3.',
    long_description='This library connects to SMTP, IMAP4 and POP3 servers, sends multipart mails with '
                     'attachments and reads, lists and flags the mails of an inbox behind a single uid scheme.',
    author='Oliver Maurhart',
    author_email='dyle71@gmail.com',
    maintainer='Oliver Maurhart',
    maintainer_email='dyle71@gmail.com',
    url='https://github.com/dyle71/mail-gate',
    license='MIT',
    python_requires='>=3.9',

    # sources
    packages=['mailgate'],
    py_modules=[],
    scripts=['bin/mail-gate'],

    # dependencies
    install_requires=[
        'ansicolors',
        'click',
        'pydantic>=2',
    ],
    extras_require={
        'test': ['pytest'],
    },

    # data
    include_package_data=False,
    data_files=[
        ('share/mail-gate', ['requirements.txt'])
    ]
)
