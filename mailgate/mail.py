# ------------------------------------------------------------
# mailgate/mail.py
#
# mail values and constants
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

"""This module holds the mail value object, the message flags and MIME constants."""

import email
import email.header
import email.message
import email.policy
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

INBOX = 'INBOX'

CONTENT_TYPE_TEXT = 'text/plain'
CONTENT_TYPE_HTML = 'text/html'
CONTENT_TYPE_MULTIPART = 'multipart'
CONTENT_TYPE_MESSAGE_RFC822 = 'message/rfc822'

DISPOSITION_ATTACHMENT = 'attachment'
DISPOSITION_INLINE = 'inline'

PLACEHOLDER = '###{}###'


class Flag(enum.Enum):

    """Message state bits, valued with their IMAP4 system flag."""

    SEEN = r'\Seen'
    ANSWERED = r'\Answered'
    FLAGGED = r'\Flagged'
    DELETED = r'\Deleted'

    @classmethod
    def from_imap(cls, token: str) -> Optional['Flag']:
        """Get the flag of an IMAP4 flag token like '\\Seen' (None if not one of ours)."""
        for flag in cls:
            if flag.value.lower() == token.lower():
                return flag
        return None


@dataclass
class MailObject(object):

    """A single mail.

    Filled by the caller to send a mail or by the reader when a mail is received.
    content_map holds placeholder values: each key K replaces the token ###K### in
    the content when the mail is sent.
    """

    subject: str = ''
    charset: str = 'UTF-8'
    content_type: str = CONTENT_TYPE_TEXT
    content: Optional[str] = None
    content_map: Dict[str, str] = field(default_factory=dict)
    send_address: Optional[str] = None
    receive_address: List[str] = field(default_factory=list)
    cc_address: Optional[List[str]] = None
    bcc_address: Optional[List[str]] = None
    reply_address: Optional[List[str]] = None
    send_date: Optional[datetime] = None
    uid: Optional[str] = None
    attach_files: List[str] = field(default_factory=list)
    include_files: List[str] = field(default_factory=list)

    def render_content(self) -> Optional[str]:
        """The content with all placeholders substituted."""
        if self.content is None:
            return None
        content = self.content
        for key, value in (self.content_map or {}).items():
            content = content.replace(PLACEHOLDER.format(key), str(value))
        return content


def decode_text(text: Optional[str]) -> str:
    """Decode RFC 2047 encoded words (e.g. '=?UTF-8?B?...?=') of a header value."""
    if not text:
        return ''
    return str(email.header.make_header(email.header.decode_header(str(text))))


def parse_message(raw: bytes) -> email.message.EmailMessage:
    """Parse raw RFC 822 bytes."""
    return email.message_from_bytes(raw, policy=email.policy.default)
