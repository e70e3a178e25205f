# ------------------------------------------------------------
# mailgate/mutator.py
#
# change message flags
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

"""This module sets and clears flags of inbox messages."""

import logging
from typing import Iterable

from . import connection
from . import resolver
from .config import MailServerConfig
from .errors import MessagingError, PartialReadError
from .mail import Flag

logger = logging.getLogger(__name__)


def set_status(mail_server_config: MailServerConfig,
               username: str,
               password: str,
               uids: Iterable[str],
               flag: Flag,
               value: bool) -> int:
    """Set a flag on a list of mails within a single session.

    Unknown uids and mails the server refuses to change are skipped.

    :param mail_server_config:  the mail servers
    :param username:            user account to log in
    :param password:            the user's password
    :param uids:                the uids of the mails
    :param flag:                the flag to change
    :param value:               set (True) or clear (False) the flag
    :return:                    the number of mails changed
    """
    uids = list(uids)
    with connection.open_inbox(mail_server_config, username, password, read_only=False) as folder:
        if not folder.is_open:
            logger.warning('Inbox not available, no flags changed.')
            return 0

        try:
            handles = resolver.resolve_identifiers(mail_server_config.receive_protocol, folder, uids)
        except PartialReadError as e:
            logger.warning('Cannot resolve uids: %s', e.message)
            return 0
        if len(handles) < len(uids):
            logger.debug('%d of %d uids not found.', len(uids) - len(handles), len(uids))

        changed = 0
        for handle in handles:
            try:
                handle.set_flag(flag, value)
            except MessagingError as e:
                logger.warning('Cannot change %s of %s: %s', flag.name, handle.uid, e.message)
                continue
            changed += 1
        logger.info('%s %s on %d mails.', 'Set' if value else 'Cleared', flag.name, changed)
        return changed


def remove_mail(mail_server_config: MailServerConfig, username: str, password: str, uid: str) -> int:
    return set_status(mail_server_config, username, password, [uid], Flag.DELETED, True)


def remove_mails(mail_server_config: MailServerConfig, username: str, password: str, uids: Iterable[str]) -> int:
    return set_status(mail_server_config, username, password, uids, Flag.DELETED, True)


def recover_mail(mail_server_config: MailServerConfig, username: str, password: str, uid: str) -> int:
    return set_status(mail_server_config, username, password, [uid], Flag.DELETED, False)


def recover_mails(mail_server_config: MailServerConfig, username: str, password: str, uids: Iterable[str]) -> int:
    return set_status(mail_server_config, username, password, uids, Flag.DELETED, False)


def read_mail(mail_server_config: MailServerConfig, username: str, password: str, uid: str) -> int:
    return set_status(mail_server_config, username, password, [uid], Flag.SEEN, True)


def read_mails(mail_server_config: MailServerConfig, username: str, password: str, uids: Iterable[str]) -> int:
    return set_status(mail_server_config, username, password, uids, Flag.SEEN, True)


def unread_mail(mail_server_config: MailServerConfig, username: str, password: str, uid: str) -> int:
    return set_status(mail_server_config, username, password, [uid], Flag.SEEN, False)


def unread_mails(mail_server_config: MailServerConfig, username: str, password: str, uids: Iterable[str]) -> int:
    return set_status(mail_server_config, username, password, uids, Flag.SEEN, False)


def answer_mail(mail_server_config: MailServerConfig, username: str, password: str, uid: str) -> int:
    return set_status(mail_server_config, username, password, [uid], Flag.ANSWERED, True)


def answer_mails(mail_server_config: MailServerConfig, username: str, password: str, uids: Iterable[str]) -> int:
    return set_status(mail_server_config, username, password, uids, Flag.ANSWERED, True)


def flag_mail(mail_server_config: MailServerConfig, username: str, password: str, uid: str) -> int:
    return set_status(mail_server_config, username, password, [uid], Flag.FLAGGED, True)


def flag_mails(mail_server_config: MailServerConfig, username: str, password: str, uids: Iterable[str]) -> int:
    return set_status(mail_server_config, username, password, uids, Flag.FLAGGED, True)


def unflag_mail(mail_server_config: MailServerConfig, username: str, password: str, uid: str) -> int:
    return set_status(mail_server_config, username, password, [uid], Flag.FLAGGED, False)


def unflag_mails(mail_server_config: MailServerConfig, username: str, password: str, uids: Iterable[str]) -> int:
    return set_status(mail_server_config, username, password, uids, Flag.FLAGGED, False)
