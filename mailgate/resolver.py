# ------------------------------------------------------------
# mailgate/resolver.py
#
# message identity resolution
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

"""This module maps the uid strings handed out to callers to messages of an opened folder.

POP3 uids are the UIDL strings of the server: they are only stable while the session
lasts and the server has no index on them, so every resolution scans the whole inbox.
IMAP4 uids are the decimal form of the persistent 64 bit UIDs and resolve with a single
UID FETCH.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Union

from .connection import Folder, MessageHandle
from .protocol import ProtocolOption

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessageId(object):

    """A message uid tagged with the protocol it belongs to."""

    protocol: ProtocolOption
    native: Union[str, int]

    def __str__(self) -> str:
        return str(self.native)

    @classmethod
    def parse(cls, protocol_option, uid: str) -> 'MessageId':
        """Turn a uid string into the native representation of the protocol.

        :param protocol_option:     the retrieval protocol
        :param uid:                 the uid as handed out to the caller
        :return:                    the tagged uid
        :raises ValueError:         if the uid is not valid for the protocol
        """
        protocol = ProtocolOption.parse(protocol_option)
        if protocol == ProtocolOption.IMAP:
            native = int(str(uid).strip())
            if native <= 0 or native >= 2 ** 64:
                raise ValueError(f'IMAP4 UID out of range: {uid}')
            return cls(protocol, native)
        if protocol == ProtocolOption.POP3:
            return cls(protocol, str(uid))
        raise ValueError(f'Protocol {protocol_option} has no message uids.')


def _native_uids(protocol: ProtocolOption, uids: Iterable[str]) -> List[Union[str, int]]:
    native = []
    for uid in uids:
        try:
            native.append(MessageId.parse(protocol, uid).native)
        except (TypeError, ValueError) as e:
            logger.warning('Skipping uid %r: %s', uid, e)
    return native


def _resolve_pop3(folder: Folder, uids: List[str]) -> List[MessageHandle]:
    wanted = _native_uids(ProtocolOption.POP3, uids)
    return [handle for handle in folder.messages() if folder.get_uid(handle) in wanted]


def _resolve_imap(folder: Folder, uids: List[str]) -> List[MessageHandle]:
    return folder.messages_by_uid(_native_uids(ProtocolOption.IMAP, uids))


def _resolve_pop3_single(folder: Folder, uid: str) -> Optional[MessageHandle]:
    for handle in folder.messages():
        if folder.get_uid(handle) == str(uid):
            return handle
    return None


def _resolve_imap_single(folder: Folder, uid: str) -> Optional[MessageHandle]:
    handles = _resolve_imap(folder, [uid])
    return handles[0] if handles else None


_RESOLVERS = {
    ProtocolOption.POP3: (_resolve_pop3, _resolve_pop3_single),
    ProtocolOption.IMAP: (_resolve_imap, _resolve_imap_single),
}   # type: Dict[ProtocolOption, tuple]


def _resolvers(protocol_option) -> Optional[tuple]:
    resolvers = _RESOLVERS.get(ProtocolOption.parse(protocol_option))
    if resolvers is None:
        logger.warning('Cannot resolve message uids for protocol %r.', protocol_option)
    return resolvers


def resolve_identifiers(protocol_option, folder: Folder, uids: Iterable[str]) -> List[MessageHandle]:
    """Get the messages of a list of uids.

    Unknown uids are dropped silently.

    :param protocol_option:     the retrieval protocol of the folder
    :param folder:              the opened folder
    :param uids:                the uids
    :return:                    the messages found (POP3: inbox order, IMAP4: order requested)
    """
    resolvers = _resolvers(protocol_option)
    if resolvers is None:
        return []
    return resolvers[0](folder, list(uids))


def resolve_identifier(protocol_option, folder: Folder, uid: str) -> Optional[MessageHandle]:
    """Get the message of a single uid (None if not found)."""
    resolvers = _resolvers(protocol_option)
    if resolvers is None:
        return None
    return resolvers[1](folder, uid)


def uid_of(folder: Folder, handle: MessageHandle) -> str:
    """The uid of a message as handed out to callers."""
    return str(folder.get_uid(handle))
