# ------------------------------------------------------------
# tests/test_connection.py
#
# tests for mailgate/connection.py
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

"""
Tests for mail server sessions

Tests cover:
- connection and authentication failures
- missing folders
- release of sessions on every exit path
- connection strings
"""
import imaplib
import poplib
from unittest.mock import MagicMock, patch

import pytest

from mailgate import connection
from mailgate.config import MailServerConfig, ServerConfig
from mailgate.errors import ConfigurationError, MailConnectionError
from mailgate.mail import Flag
from mailgate.protocol import ProtocolOption

from .conftest import IMAP4_ERROR, FakeIMAP4


class TestConnect:
    """Tests for connect"""

    def test_unknown_host(self, imap_config):
        with patch('mailgate.connection.imaplib.IMAP4') as mock_imap:
            mock_imap.error = IMAP4_ERROR
            mock_imap.side_effect = OSError('Name or service not known')
            with pytest.raises(MailConnectionError) as e:
                connection.connect(imap_config, 'bob@example.com', 'secret')
        assert e.value.details == {'host': 'imap.example.com', 'port': imaplib.IMAP4_PORT, 'protocol': 'IMAP'}
        assert isinstance(e.value.__cause__, OSError)

    def test_pop3_authentication_failure(self, pop3_config, fake_pop3, monkeypatch):
        def pass_(password):
            raise poplib.error_proto(b'-ERR authentication failed')

        monkeypatch.setattr(fake_pop3, 'pass_', pass_)
        with pytest.raises(MailConnectionError):
            connection.connect(pop3_config, 'bob@example.com', 'wrong')
        assert fake_pop3.quit_called

    def test_no_receive_config(self):
        with pytest.raises(ConfigurationError):
            connection.connect(MailServerConfig(), 'bob@example.com', 'secret')

    def test_cannot_receive_via_smtp(self):
        config = MailServerConfig(receive_config=ServerConfig(host_name='smtp.example.com',
                                                              protocol_option=ProtocolOption.SMTP))
        with pytest.raises(ConfigurationError):
            connection.connect(config, 'bob@example.com', 'secret')

    def test_timeouts_and_port(self, fake_imap):
        config = MailServerConfig(receive_config=ServerConfig(host_name='imap.example.com',
                                                              protocol_option=ProtocolOption.IMAP,
                                                              host_port=1143, connection_timeout=5,
                                                              process_timeout=7))
        with connection.connect(config, 'bob@example.com', 'secret') as store:
            assert store.connected
        connection.imaplib.IMAP4.assert_called_once_with('imap.example.com', 1143, timeout=5.0)
        fake_imap.sock.settimeout.assert_called_once_with(7.0)
        assert not store.connected

    def test_ssl(self, imap_config):
        config = MailServerConfig(receive_config=ServerConfig(host_name='imap.example.com',
                                                              protocol_option=ProtocolOption.IMAP, ssl=True))
        fake = FakeIMAP4()
        with patch('mailgate.connection.imaplib.IMAP4_SSL') as mock_ssl:
            mock_ssl.return_value = fake
            with connection.connect(config, 'bob@example.com', 'secret'):
                pass
        args, kwargs = mock_ssl.call_args
        assert args == ('imap.example.com', imaplib.IMAP4_SSL_PORT)
        assert kwargs['ssl_context'] is not None
        assert fake.logged_out

    def test_auth_login_uses_cram_md5(self, fake_imap):
        fake_imap.capabilities = ('IMAP4REV1', 'AUTH=CRAM-MD5')
        config = MailServerConfig(receive_config=ServerConfig(host_name='imap.example.com', auth_login=True))
        with connection.connect(config, 'bob@example.com', 'secret'):
            pass
        assert ('login_cram_md5', 'bob@example.com') in fake_imap.calls

    def test_auth_login_without_cram_md5(self, fake_imap):
        config = MailServerConfig(receive_config=ServerConfig(host_name='imap.example.com', auth_login=True))
        with pytest.raises(MailConnectionError):
            connection.connect(config, 'bob@example.com', 'secret')
        assert fake_imap.logged_out


class TestOpenInbox:
    """Tests for the scoped inbox session"""

    def test_missing_folder_is_empty(self, imap_config, fake_imap, monkeypatch):
        monkeypatch.setattr(fake_imap, 'select', lambda mailbox, readonly=False: ('NO', [b'No such mailbox']))
        with connection.open_inbox(imap_config, 'bob@example.com', 'secret') as folder:
            assert not folder.is_open
            assert not folder.exists
            assert folder.messages() == []

    def test_select_error_is_empty(self, imap_config, fake_imap, monkeypatch):
        def select(mailbox, readonly=False):
            raise IMAP4_ERROR('SELECT failed')

        monkeypatch.setattr(fake_imap, 'select', select)
        with connection.open_inbox(imap_config, 'bob@example.com', 'secret') as folder:
            assert not folder.is_open

    def test_released_on_exception(self, imap_config, fake_imap):
        with pytest.raises(KeyError):
            with connection.open_inbox(imap_config, 'bob@example.com', 'secret') as folder:
                assert folder.is_open
                raise KeyError('boom')
        assert fake_imap.closed
        assert fake_imap.logged_out

    def test_read_only_folder_rejects_flags(self, imap_config, fake_imap):
        with connection.open_inbox(imap_config, 'bob@example.com', 'secret') as folder:
            handle = folder.messages()[0]
            with pytest.raises(RuntimeError):
                handle.set_flag(Flag.SEEN, True)

    def test_imap_messages(self, imap_config, fake_imap):
        fake_imap.messages[20][1].add(r'\Seen')
        with connection.open_inbox(imap_config, 'bob@example.com', 'secret') as folder:
            handles = folder.messages()
            assert [(h.number, h.uid) for h in handles] == [(1, 10), (2, 20), (3, 30)]
            assert handles[1].flags == {Flag.SEEN}
            assert handles[0].headers['Subject'] == 'First'
            assert handles[1].received_date.day == 2

    def test_empty_imap_inbox(self, imap_config, fake_imap):
        fake_imap.messages.clear()
        with connection.open_inbox(imap_config, 'bob@example.com', 'secret') as folder:
            assert folder.is_open
            assert folder.messages() == []
        assert fake_imap.fetch_calls() == []

    def test_pop3_other_folder(self, fake_pop3):
        folder = connection.POP3Folder(fake_pop3, 'Sent').open()
        assert not folder.exists
        assert folder.messages() == []

    def test_pop3_disable_top(self, fake_pop3):
        folder = connection.POP3Folder(fake_pop3, disable_top=True).open()
        assert folder.messages()[0].headers['Subject'] == 'Message a'
        assert fake_pop3.retr_calls == [1]


class TestOpenTransport:
    """Tests for the scoped SMTP session"""

    def test_no_send_config(self):
        with pytest.raises(ConfigurationError):
            with connection.open_transport(MailServerConfig(), 'bob', 'secret'):
                pass

    def test_plain_session(self):
        config = MailServerConfig(send_config=ServerConfig(host_name='smtp.example.com',
                                                           protocol_option=ProtocolOption.SMTP))
        with patch('mailgate.connection.smtplib.SMTP') as mock_smtp:
            smtp = MagicMock()
            smtp.has_extn.return_value = True
            mock_smtp.return_value = smtp
            with connection.open_transport(config, 'bob', 'secret'):
                pass
        smtp.starttls.assert_not_called()
        smtp.login.assert_not_called()
        smtp.quit.assert_called_once()

    def test_ssl(self):
        config = MailServerConfig(send_config=ServerConfig(host_name='smtp.example.com',
                                                           protocol_option=ProtocolOption.SMTP,
                                                           host_port=465, ssl=True))
        with patch('mailgate.connection.smtplib.SMTP_SSL') as mock_smtp:
            with connection.open_transport(config, 'bob', 'secret') as smtp:
                assert smtp is mock_smtp.return_value
        args, kwargs = mock_smtp.call_args
        assert args == ('smtp.example.com', 465)
        assert kwargs['context'] is not None


class TestParse:
    """Tests for connection strings"""

    def test_full(self):
        assert connection.parse('bob:secret@mail.example.com:143') == ('mail.example.com', 143, 'bob', 'secret')

    def test_user_with_at(self):
        assert connection.parse('bob@example.com:pw@mail.example.com') == \
            ('mail.example.com', 0, 'bob@example.com', 'pw')

    def test_password_prompt(self):
        with patch('mailgate.connection.getpass.getpass', return_value='typed'):
            assert connection.parse('bob@mail.example.com') == ('mail.example.com', 0, 'bob', 'typed')

    @pytest.mark.parametrize('connect', ['no-at-sign', 'bob:pw@', ':pw@mail.example.com', 'bob:pw@host:port'])
    def test_malformed(self, connect):
        with pytest.raises(ConfigurationError):
            connection.parse(connect)
