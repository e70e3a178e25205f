# ------------------------------------------------------------
# tests/test_mutator.py
#
# tests for mailgate/mutator.py
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

"""
Tests for changing message flags
"""
import poplib

from mailgate import mutator
from mailgate.mail import Flag

from .conftest import IMAP4_ERROR


class TestSetStatusIMAP:
    """Tests for flags on IMAP4 mails"""

    def test_unresolvable_uid(self, imap_config, fake_imap):
        """Test an unknown uid changes nothing and does not raise"""
        assert mutator.set_status(imap_config, 'bob@example.com', 'secret', ['99'], Flag.SEEN, True) == 0
        assert mutator.set_status(imap_config, 'bob@example.com', 'secret', ['junk'], Flag.SEEN, True) == 0
        assert all(not flags for _, flags, _ in fake_imap.messages.values())

    def test_flips_only_requested_flag(self, imap_config, fake_imap):
        fake_imap.messages[10][1].update({r'\Flagged', r'\Seen'})
        assert mutator.unread_mail(imap_config, 'bob@example.com', 'secret', '10') == 1
        assert fake_imap.messages[10][1] == {r'\Flagged'}
        assert fake_imap.messages[20][1] == set()

    def test_opens_read_write_in_one_session(self, imap_config, fake_imap):
        assert mutator.flag_mails(imap_config, 'bob@example.com', 'secret', ['10', '20', '99']) == 2
        assert ('select', 'INBOX', False) in fake_imap.calls
        stores = [call for call in fake_imap.calls if call[:2] == ('uid', 'STORE')]
        assert stores == [('uid', 'STORE', '10', '+FLAGS', r'(\Flagged)'),
                          ('uid', 'STORE', '20', '+FLAGS', r'(\Flagged)')]
        assert fake_imap.closed and fake_imap.logged_out

    def test_remove_and_recover(self, imap_config, fake_imap):
        assert mutator.remove_mails(imap_config, 'bob@example.com', 'secret', ['20']) == 1
        assert fake_imap.messages[20][1] == {r'\Deleted'}
        assert mutator.recover_mail(imap_config, 'bob@example.com', 'secret', '20') == 1
        assert fake_imap.messages[20][1] == set()

    def test_answer(self, imap_config, fake_imap):
        assert mutator.answer_mail(imap_config, 'bob@example.com', 'secret', '30') == 1
        assert fake_imap.messages[30][1] == {r'\Answered'}

    def test_missing_inbox(self, imap_config, fake_imap, monkeypatch):
        monkeypatch.setattr(fake_imap, 'select', lambda mailbox, readonly=False: ('NO', [b'No inbox']))
        assert mutator.read_mails(imap_config, 'bob@example.com', 'secret', ['10']) == 0
        assert fake_imap.logged_out

    def test_failed_resolution(self, imap_config, fake_imap):
        fake_imap.fail_fetch = True
        assert mutator.read_mail(imap_config, 'bob@example.com', 'secret', '10') == 0

    def test_refused_store_skips_mail(self, imap_config, fake_imap, monkeypatch):
        """Test a STORE answered with NO changes the other mails of the batch"""
        store = fake_imap._store

        def refuse_10(uid, operation, flags):
            if uid == '10':
                return 'NO', [b'Permission denied']
            return store(uid, operation, flags)

        monkeypatch.setattr(fake_imap, '_store', refuse_10)
        assert mutator.flag_mails(imap_config, 'bob@example.com', 'secret', ['10', '20']) == 1
        assert fake_imap.messages[10][1] == set()
        assert fake_imap.messages[20][1] == {r'\Flagged'}
        assert fake_imap.logged_out

    def test_store_error_skips_mail(self, imap_config, fake_imap, monkeypatch):
        uid = fake_imap.uid

        def fail_store(command, *args):
            if command == 'STORE' and args[0] == '20':
                raise IMAP4_ERROR('STORE failed')
            return uid(command, *args)

        monkeypatch.setattr(fake_imap, 'uid', fail_store)
        assert mutator.read_mails(imap_config, 'bob@example.com', 'secret', ['10', '20', '30']) == 2
        assert fake_imap.messages[10][1] == {r'\Seen'}
        assert fake_imap.messages[20][1] == set()
        assert fake_imap.messages[30][1] == {r'\Seen'}


class TestSetStatusPOP3:
    """Tests for flags on POP3 mails"""

    def test_delete_on_close(self, pop3_config, fake_pop3):
        """Test DELETED is committed with DELE when the session ends"""
        assert mutator.remove_mails(pop3_config, 'bob@example.com', 'secret', ['b', 'd', 'x']) == 2
        assert fake_pop3.deleted == [2, 4]
        assert fake_pop3.quit_called

    def test_session_local_flags(self, pop3_config, fake_pop3):
        assert mutator.read_mails(pop3_config, 'bob@example.com', 'secret', ['a']) == 1
        assert fake_pop3.deleted == []

    def test_recover_in_same_session_is_not_deleted(self, pop3_config, fake_pop3):
        assert mutator.recover_mails(pop3_config, 'bob@example.com', 'secret', ['a']) == 1
        assert fake_pop3.deleted == []

    def test_failed_listing(self, pop3_config, fake_pop3, monkeypatch):
        def uidl(which=None):
            raise poplib.error_proto(b'-ERR UIDL not supported')

        monkeypatch.setattr(fake_pop3, 'uidl', uidl)
        assert mutator.remove_mails(pop3_config, 'bob@example.com', 'secret', ['a']) == 0
        assert fake_pop3.deleted == []
        assert fake_pop3.quit_called
