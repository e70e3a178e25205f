# ------------------------------------------------------------
# tests/conftest.py
#
# shared test fixtures
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

"""
Shared test fixtures: fake IMAP4/POP3 servers and raw test messages
"""
import email.policy
import imaplib
import logging
import poplib
import re
from email.message import EmailMessage
from unittest.mock import MagicMock, patch

import pytest

from mailgate.config import Config, MailServerConfig, ServerConfig
from mailgate.protocol import ProtocolOption

IMAP4_ERROR = imaplib.IMAP4.error

RECEIVER = 'bob@example.com'


def make_message(subject='Hello', to=RECEIVER, sender='alice@example.com', body='Hello Bob',
                 date='Mon, 01 Jul 2019 10:00:00 +0000', cc=None, received=None, attachments=()):
    """Build a raw RFC 822 message with CRLF line endings."""
    msg = EmailMessage()
    if received is not None:
        msg['Received'] = f'from relay.example.com by mx.example.com; {received}'
    msg['Subject'] = subject
    msg['From'] = sender
    msg['To'] = to
    if cc is not None:
        msg['Cc'] = cc
    msg['Date'] = date
    msg.set_content(body)
    for name, data in attachments:
        msg.add_attachment(data, maintype='application', subtype='octet-stream', filename=name)
    return msg.as_bytes(policy=email.policy.SMTP)


def header_of(raw):
    return raw.split(b'\r\n\r\n', 1)[0] + b'\r\n\r\n'


class FakeIMAP4(object):
    """In memory IMAP4 server speaking the imaplib response format."""

    def __init__(self, messages=None, capabilities=('IMAP4REV1', 'AUTH=PLAIN')):
        # uid -> [raw, flags, internaldate]
        self.messages = {}
        for uid, raw in (messages or {}).items():
            self.messages[uid] = [raw, set(), '01-Jul-2019 10:00:00 +0000']
        self.capabilities = capabilities
        self.sock = MagicMock()
        self.calls = []
        self.selected = None
        self.closed = False
        self.logged_out = False
        self.fail_fetch = False

    def login(self, user, password):
        self.calls.append(('login', user))
        return 'OK', [b'Logged in']

    def login_cram_md5(self, user, password):
        self.calls.append(('login_cram_md5', user))
        return 'OK', [b'Logged in']

    def select(self, mailbox='INBOX', readonly=False):
        self.calls.append(('select', mailbox, readonly))
        if mailbox != 'INBOX':
            return 'NO', [b'Mailbox does not exist']
        self.selected = mailbox
        return 'OK', [str(len(self.messages)).encode()]

    def close(self):
        self.closed = True
        return 'OK', [b'Closed']

    def logout(self):
        self.logged_out = True
        return 'BYE', [b'Logging out']

    def uid(self, command, *args):
        self.calls.append(('uid', command) + args)
        if command == 'FETCH':
            return self._fetch(*args)
        if command == 'STORE':
            return self._store(*args)
        return 'BAD', [b'Unknown command']

    def _uids(self, uid_set):
        if uid_set == '1:*':
            return sorted(self.messages)
        return sorted(int(uid) for uid in uid_set.split(',') if int(uid) in self.messages)

    def _fetch(self, uid_set, parts):
        if self.fail_fetch:
            return 'NO', [b'Fetch failed']
        data = []
        all_uids = sorted(self.messages)
        for uid in self._uids(uid_set):
            raw, flags, date = self.messages[uid]
            meta = f'{all_uids.index(uid) + 1} (UID {uid} FLAGS ({" ".join(sorted(flags))}) INTERNALDATE "{date}"'
            if 'BODY.PEEK[HEADER]' in parts:
                literal = header_of(raw)
                data.append(((meta + f' BODY[HEADER] {{{len(literal)}}}').encode(), literal))
                data.append(b')')
            elif 'BODY.PEEK[]' in parts:
                data.append(((meta + f' BODY[] {{{len(raw)}}}').encode(), raw))
                data.append(b')')
            else:
                data.append((meta + ')').encode())
        return 'OK', data

    def _store(self, uid, operation, flags):
        flag_names = re.findall(r'\\\w+', flags)
        entry = self.messages.get(int(uid))
        if entry is None:
            return 'OK', []
        if operation == '+FLAGS':
            entry[1].update(flag_names)
        else:
            entry[1].difference_update(flag_names)
        return 'OK', [f'1 (UID {uid} FLAGS ({" ".join(sorted(entry[1]))}))'.encode()]

    def fetch_calls(self):
        return [call for call in self.calls if call[:2] == ('uid', 'FETCH')]


class FakePOP3(object):
    """In memory POP3 server speaking the poplib response format."""

    def __init__(self, messages=None):
        # list of (uidl, raw)
        self.messages = list(messages or [])
        self.sock = MagicMock()
        self.deleted = []
        self.quit_called = False
        self.retr_calls = []
        self.user_name = None
        self.password = None

    def capa(self):
        return {}

    def user(self, user):
        self.user_name = user
        return b'+OK'

    def pass_(self, password):
        self.password = password
        return b'+OK Logged in'

    def stat(self):
        return len(self.messages), sum(len(raw) for _, raw in self.messages)

    def uidl(self, which=None):
        listing = [f'{number} {uid}'.encode() for number, (uid, _) in enumerate(self.messages, 1)]
        return b'+OK', listing, sum(len(line) for line in listing)

    def retr(self, which):
        self.retr_calls.append(which)
        raw = self._raw(which)
        return b'+OK', raw.split(b'\r\n'), len(raw)

    def top(self, which, howmuch):
        header = header_of(self._raw(which))
        return b'+OK', header.split(b'\r\n'), len(header)

    def dele(self, which):
        self._raw(which)
        self.deleted.append(which)
        return b'+OK message deleted'

    def quit(self):
        self.quit_called = True
        return b'+OK Bye'

    def _raw(self, which):
        try:
            return self.messages[int(which) - 1][1]
        except (IndexError, ValueError):
            raise poplib.error_proto(b'-ERR no such message')


@pytest.fixture(autouse=True)
def reset_config():
    """Reset the app wide configuration between tests"""
    Config().dry_run = False
    Config().no_color = True
    Config().verbose = False
    yield
    logger = logging.getLogger('mailgate')
    logger.handlers = []
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def imap_config():
    return MailServerConfig(receive_config=ServerConfig(host_name='imap.example.com',
                                                        protocol_option=ProtocolOption.IMAP))


@pytest.fixture
def pop3_config():
    return MailServerConfig(receive_config=ServerConfig(host_name='pop.example.com',
                                                        protocol_option=ProtocolOption.POP3))


@pytest.fixture
def smtp_config():
    return MailServerConfig(send_config=ServerConfig(host_name='smtp.example.com',
                                                     protocol_option=ProtocolOption.SMTP, auth_login=True))


@pytest.fixture
def fake_imap():
    """A fake IMAP4 server with three messages, patched into imaplib"""
    fake = FakeIMAP4({
        10: make_message(subject='First'),
        20: make_message(subject='Second', date='Tue, 02 Jul 2019 10:00:00 +0000'),
        30: make_message(subject='Other', to='carol@example.com'),
    })
    fake.messages[20][2] = '02-Jul-2019 10:00:00 +0000'
    with patch('mailgate.connection.imaplib.IMAP4') as mock_imap:
        mock_imap.return_value = fake
        mock_imap.error = IMAP4_ERROR
        yield fake


@pytest.fixture
def fake_pop3():
    """A fake POP3 server with five messages a..e, patched into poplib"""
    fake = FakePOP3([(uid, make_message(subject=f'Message {uid}')) for uid in 'abcde'])
    with patch('mailgate.connection.poplib.POP3') as mock_pop3:
        mock_pop3.return_value = fake
        yield fake
