# ------------------------------------------------------------
# connection.py
#
# mail server connections: stores, folders and messages
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

# thanks to a lot of inspiration from
# http://pymotw.com/2/imaplib/

"""This module opens sessions to mail servers.

A store is an authenticated IMAP4 or POP3 session, the folder is the opened inbox of
that session and a message handle is a single message inside the folder. All of them
are bound to one logical operation: open them with 'with' so they are closed on every
exit path.

    >>> with open_inbox(mail_server_config, 'bob@example.com', 'secret') as folder:
    ...     for handle in folder.messages():
    ...         print(folder.get_uid(handle), handle.headers['Subject'])
"""

import contextlib
import email.message
import email.utils
import getpass
import imaplib
import logging
import poplib
import re
import smtplib
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Set, Tuple

from . import mail
from .config import MailServerConfig
from .errors import ConfigurationError, MailConnectionError, MessagingError, PartialReadError
from .mail import Flag
from .protocol import ProtocolOption, is_enabled, seconds, tls_context

logger = logging.getLogger(__name__)

_FETCH_START = re.compile(rb'^\d+ \(')
_FETCH_UID = re.compile(rb'UID (?P<uid>\d+)')
_FETCH_FLAGS = re.compile(rb'FLAGS \((?P<flags>[^)]*)\)')
_FETCH_DATE = re.compile(rb'INTERNALDATE "(?P<date>[^"]+)"')

_FETCH_META = '(UID FLAGS INTERNALDATE)'
_FETCH_HEADER = '(UID FLAGS INTERNALDATE BODY.PEEK[HEADER])'
_FETCH_BODY = '(UID FLAGS INTERNALDATE BODY.PEEK[])'


class MessageHandle(object):

    """A single message inside an opened folder.

    Content is fetched lazily from the server and only once.
    """

    def __init__(self, folder: 'Folder', uid, number: Optional[int] = None):
        """Constructor.

        :param folder:  the folder holding the message
        :param uid:     the protocol native UID
        :param number:  the message sequence number (if known)
        """
        self._folder = folder
        self.uid = uid
        self.number = number
        self.flags = set()  # type: Set[Flag]
        self._received_date = None
        self._meta_loaded = False
        self._headers = None
        self._message = None
        self._literal = None

    def __repr__(self) -> str:
        return f'<MessageHandle uid={self.uid!r} number={self.number!r}>'

    @property
    def folder(self) -> 'Folder':
        return self._folder

    @property
    def headers(self) -> email.message.EmailMessage:
        """The message headers (the full message if it has been fetched already)."""
        if self._message is not None:
            return self._message
        if self._headers is None:
            self._headers = mail.parse_message(self._folder.fetch_headers(self))
        return self._headers

    @property
    def message(self) -> email.message.EmailMessage:
        """The complete message."""
        if self._message is None:
            self._message = mail.parse_message(self._folder.fetch_message(self))
        return self._message

    @property
    def received_date(self) -> Optional[datetime]:
        """Point in time the server received the message."""
        return self._folder.received_date(self)

    def set_flag(self, flag: Flag, value: bool) -> None:
        """Set or clear a flag on this message."""
        self._folder.set_flag(self, flag, value)


class Folder(object):

    """An opened mailbox folder."""

    def __init__(self, name: str, read_only: bool = True):
        self._name = name
        self._read_only = read_only
        self._exists = False
        self._open = False

    def __enter__(self) -> 'Folder':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def exists(self) -> bool:
        """Does the folder exist on the server?"""
        return self._exists

    @property
    def is_open(self) -> bool:
        """Has the folder been opened successfully?"""
        return self._open

    @property
    def name(self) -> str:
        return self._name

    @property
    def read_only(self) -> bool:
        return self._read_only

    def close(self) -> None:
        raise NotImplementedError

    def fetch_headers(self, handle: MessageHandle) -> bytes:
        raise NotImplementedError

    def fetch_message(self, handle: MessageHandle) -> bytes:
        raise NotImplementedError

    def get_uid(self, handle: MessageHandle):
        """The protocol native UID of a message."""
        return handle.uid

    def messages(self) -> List[MessageHandle]:
        raise NotImplementedError

    def received_date(self, handle: MessageHandle) -> Optional[datetime]:
        raise NotImplementedError

    def set_flag(self, handle: MessageHandle, flag: Flag, value: bool) -> None:
        raise NotImplementedError

    def _check_writable(self) -> None:
        if not self._open:
            raise RuntimeError(f"Folder '{self._name}' is not open.")
        if self._read_only:
            raise RuntimeError(f"Folder '{self._name}' is opened read-only.")


class IMAPFolder(Folder):

    """An IMAP4 mailbox. UIDs are persistent 64 bit integers."""

    def __init__(self, imap4: imaplib.IMAP4, name: str = mail.INBOX):
        super().__init__(name)
        self._imap4 = imap4
        self._count = 0

    def open(self, read_only: bool = True) -> 'IMAPFolder':
        """Select the mailbox.

        :param read_only:   EXAMINE (True) or SELECT (False) the mailbox
        :return:            self
        """
        self._read_only = read_only
        try:
            res, data = self._imap4.select(self._quoted_name(), readonly=read_only)
        except imaplib.IMAP4.error as e:
            logger.debug('Failed to select %s: %s', self._name, e)
            return self
        if res != 'OK':
            logger.debug('Failed to select %s: %s', self._name, data)
            return self
        self._exists = True
        self._open = True
        try:
            self._count = int(data[0])
        except (IndexError, TypeError, ValueError):
            self._count = 0
        return self

    def close(self) -> None:
        """Close the mailbox. Messages flagged deleted are expunged if opened read-write."""
        if not self._open:
            return
        self._open = False
        try:
            self._imap4.close()
        except imaplib.IMAP4.error as e:
            logger.debug('Failed to close %s: %s', self._name, e)

    def fetch_headers(self, handle: MessageHandle) -> bytes:
        return self._fetch_literal(handle, _FETCH_HEADER)

    def fetch_message(self, handle: MessageHandle) -> bytes:
        return self._fetch_literal(handle, _FETCH_BODY)

    def messages(self) -> List[MessageHandle]:
        """All messages of the mailbox in mailbox order."""
        if not self._open or self._count == 0:
            return []
        return list(self._fetch('1:*', _FETCH_META).values())

    def messages_by_uid(self, uids: List[int]) -> List[MessageHandle]:
        """Get the messages of a set of UIDs with a single fetch.

        :param uids:    the UIDs requested
        :return:        the messages found, in the order of the UIDs requested
        """
        if not self._open or len(uids) == 0:
            return []
        found = self._fetch(','.join(str(uid) for uid in uids), _FETCH_META)
        return [found[uid] for uid in uids if uid in found]

    def received_date(self, handle: MessageHandle) -> Optional[datetime]:
        if not handle._meta_loaded:
            self._fetch(str(handle.uid), _FETCH_META, {handle.uid: handle})
        return handle._received_date

    def set_flag(self, handle: MessageHandle, flag: Flag, value: bool) -> None:
        self._check_writable()
        operation = '+FLAGS' if value else '-FLAGS'
        try:
            res, data = self._imap4.uid('STORE', str(handle.uid), operation, f'({flag.value})')
        except imaplib.IMAP4.error as e:
            raise MessagingError(f'Failed to store flag {flag.name} on UID {handle.uid}: {e}',
                                 details={'uid': handle.uid}) from e
        if res != 'OK':
            raise MessagingError(f'Failed to store flag {flag.name} on UID {handle.uid}.',
                                 details={'uid': handle.uid, 'response': str(data)})
        if value:
            handle.flags.add(flag)
        else:
            handle.flags.discard(flag)

    def _fetch(self, uid_set: str, parts: str,
               handles: Optional[Dict[int, MessageHandle]] = None) -> Dict[int, MessageHandle]:
        """UID FETCH a set of messages.

        :param uid_set:     the IMAP4 UID set, like '1:*' or '10,20'
        :param parts:       the message parts requested
        :param handles:     known handles to update (others are created)
        :return:            UID -> message handle, in server response order
        """
        handles = handles if handles is not None else {}
        try:
            res, data = self._imap4.uid('FETCH', uid_set, parts)
        except imaplib.IMAP4.error as e:
            raise PartialReadError(f'Failed to fetch {uid_set}: {e}', details={'uids': uid_set}) from e
        if res != 'OK':
            raise PartialReadError(f'Failed to fetch {uid_set}.', details={'uids': uid_set, 'response': str(data)})

        result = {}
        for meta, literal in self._split_fetch_response(data):
            m = _FETCH_UID.search(meta)
            if m is None:
                continue
            uid = int(m.group('uid'))
            handle = handles.get(uid)
            if handle is None:
                handle = MessageHandle(self, uid)
            handle.number = int(meta.split(b' ', 1)[0])
            self._apply_meta(handle, meta)
            if literal is not None:
                handle._literal = literal
            result[uid] = handle
        return result

    def _fetch_literal(self, handle: MessageHandle, parts: str) -> bytes:
        handle._literal = None
        self._fetch(str(handle.uid), parts, {handle.uid: handle})
        literal, handle._literal = handle._literal, None
        if literal is None:
            raise PartialReadError(f'No content for UID {handle.uid}.', details={'uid': handle.uid})
        return literal

    @staticmethod
    def _apply_meta(handle: MessageHandle, meta: bytes) -> None:
        m = _FETCH_FLAGS.search(meta)
        if m is not None:
            handle.flags = set()
            for token in m.group('flags').decode('ascii', 'replace').split():
                flag = Flag.from_imap(token)
                if flag is not None:
                    handle.flags.add(flag)
        m = _FETCH_DATE.search(meta)
        if m is not None:
            try:
                handle._received_date = datetime.strptime(m.group('date').decode('ascii').strip(),
                                                          '%d-%b-%Y %H:%M:%S %z')
            except ValueError:
                logger.debug('Cannot parse INTERNALDATE of UID %s: %s', handle.uid, m.group('date'))
        handle._meta_loaded = True

    def _quoted_name(self) -> str:
        if ' ' in self._name and not self._name.startswith('"'):
            return '"' + self._name + '"'
        return self._name

    @staticmethod
    def _split_fetch_response(data: List) -> Iterator[Tuple[bytes, Optional[bytes]]]:
        """Group the imaplib FETCH response into (message data, literal) pairs.

        imaplib yields tuples (b'1 (UID 10 BODY[] {42}', b'<literal>') for literals followed
        by the rest of the response line as bytes (e.g. b' FLAGS (\\Seen))' or b')').
        """
        entries = []
        for item in data:
            if isinstance(item, tuple):
                entries.append([item[0], item[1]])
            elif not item:
                continue
            elif _FETCH_START.match(item):
                entries.append([item, None])
            elif entries:
                entries[-1][0] += item
        for meta, literal in entries:
            yield meta, literal


class POP3Folder(Folder):

    """The POP3 inbox. UIDs are UIDL strings.

    POP3 has no server side flags: DELETED is committed with DELE when a read-write folder
    is closed, all other flags live for the session only.
    """

    def __init__(self, pop3: poplib.POP3, name: str = mail.INBOX, disable_top: bool = False):
        super().__init__(name)
        self._pop3 = pop3
        self._disable_top = disable_top
        self._handles = None    # type: Optional[List[MessageHandle]]

    def open(self, read_only: bool = True) -> 'POP3Folder':
        """Open the inbox (POP3 knows no other folder).

        :param read_only:   allow flag changes or not
        :return:            self
        """
        self._read_only = read_only
        if self._name.upper() != mail.INBOX:
            logger.debug('POP3 has no folder %s.', self._name)
            return self
        try:
            self._pop3.stat()
        except poplib.error_proto as e:
            logger.debug('Failed to open POP3 inbox: %s', e)
            return self
        self._exists = True
        self._open = True
        return self

    def close(self) -> None:
        """Close the inbox. Messages flagged deleted are marked with DELE if opened read-write."""
        if not self._open:
            return
        self._open = False
        if self._read_only or self._handles is None:
            return
        for handle in self._handles:
            if Flag.DELETED in handle.flags:
                try:
                    self._pop3.dele(handle.number)
                except poplib.error_proto as e:
                    logger.warning('Failed to delete message %s: %s', handle.uid, e)

    def fetch_headers(self, handle: MessageHandle) -> bytes:
        if self._disable_top:
            return self.fetch_message(handle)
        try:
            res, lines, octets = self._pop3.top(handle.number, 0)
        except poplib.error_proto as e:
            raise PartialReadError(f'Failed to read headers of {handle.uid}: {e}',
                                   details={'uid': handle.uid}) from e
        return b'\r\n'.join(lines) + b'\r\n'

    def fetch_message(self, handle: MessageHandle) -> bytes:
        try:
            res, lines, octets = self._pop3.retr(handle.number)
        except poplib.error_proto as e:
            raise PartialReadError(f'Failed to retrieve {handle.uid}: {e}', details={'uid': handle.uid}) from e
        return b'\r\n'.join(lines) + b'\r\n'

    def messages(self) -> List[MessageHandle]:
        """All messages of the inbox in mailbox order."""
        if not self._open:
            return []
        if self._handles is None:
            try:
                res, listing, octets = self._pop3.uidl()
            except poplib.error_proto as e:
                raise PartialReadError(f'Failed to list the inbox: {e}') from e
            handles = []
            for line in listing:
                try:
                    number, uid = line.decode('ascii', 'replace').split(None, 1)
                    handles.append(MessageHandle(self, uid.strip(), int(number)))
                except ValueError:
                    logger.warning('Malformed UIDL line: %r', line)
            self._handles = handles
        return list(self._handles)

    def received_date(self, handle: MessageHandle) -> Optional[datetime]:
        if not handle._meta_loaded:
            handle._received_date = self._header_date(handle.headers)
            handle._meta_loaded = True
        return handle._received_date

    def set_flag(self, handle: MessageHandle, flag: Flag, value: bool) -> None:
        self._check_writable()
        if value:
            handle.flags.add(flag)
        else:
            handle.flags.discard(flag)

    @staticmethod
    def _header_date(headers) -> Optional[datetime]:
        """Date of the topmost Received header, else of the Date header."""
        candidates = []
        received = headers.get_all('Received') or []
        if received:
            candidates.append(str(received[0]).rpartition(';')[2])
        if headers.get('Date') is not None:
            candidates.append(str(headers['Date']))
        for candidate in candidates:
            try:
                return email.utils.parsedate_to_datetime(candidate.strip())
            except (TypeError, ValueError):
                continue
        return None


class Store(object):

    """An authenticated session with a mail store."""

    protocol = None     # type: ProtocolOption

    def __init__(self, config: Dict[str, str]):
        """Constructor.

        :param config:  the session properties (see protocol.build_config)
        """
        self._config = config
        self._prefix = 'mail.' + self.protocol.value.lower()
        self._ssl = config.get('mail.store.protocol', '').endswith('s')

    def __enter__(self) -> 'Store':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        raise NotImplementedError

    def connect(self, host: str, port: int, username: str, password: str) -> None:
        raise NotImplementedError

    def open_folder(self, name: str = mail.INBOX, read_only: bool = True) -> Folder:
        raise NotImplementedError

    @property
    def connected(self) -> bool:
        raise NotImplementedError

    def _connect_failed(self, host: str, port: int, e: Exception) -> MailConnectionError:
        logger.warning('Failed to connect %s:%s: %s', host, port, e)
        return MailConnectionError(f'Failed to connect {host}:{port}: {e}',
                                   details={'host': host, 'port': port, 'protocol': self.protocol.value})

    def _set_process_timeout(self, connection) -> None:
        timeout = seconds(self._config, self._prefix + '.timeout')
        sock = getattr(connection, 'sock', None)
        if timeout is not None and sock is not None:
            sock.settimeout(timeout)

    def _ssl_context(self):
        return tls_context(self._config.get(self._prefix + '.socketFactory.class'))


class IMAPStore(Store):

    """An IMAP4 session."""

    protocol = ProtocolOption.IMAP

    def __init__(self, config: Dict[str, str]):
        super().__init__(config)
        self._imap4 = None

    @property
    def connected(self) -> bool:
        return self._imap4 is not None

    def close(self) -> None:
        if self._imap4 is None:
            return
        imap4, self._imap4 = self._imap4, None
        try:
            imap4.logout()
        except (imaplib.IMAP4.error, OSError) as e:
            logger.debug('Error on IMAP4 logout: %s', e)

    def connect(self, host: str, port: int, username: str, password: str) -> None:
        """Establish the connection and log in.

        :param host:        the IMAP4 server host
        :param port:        the port to connect to (0: default port)
        :param username:    the user account used to log in
        :param password:    the user's password for log in
        """
        port = self._fix_port(port)
        timeout = seconds(self._config, self._prefix + '.connectiontimeout')
        logger.info('Connecting %s:%s (%s)...', host, port, self._config.get('mail.store.protocol'))
        try:
            if self._ssl:
                self._imap4 = imaplib.IMAP4_SSL(host, port, ssl_context=self._ssl_context(), timeout=timeout)
            else:
                self._imap4 = imaplib.IMAP4(host, port, timeout=timeout)
                if is_enabled(self._config, self._prefix + '.starttls.enable') and \
                        'STARTTLS' in self._capabilities():
                    self._imap4.starttls(ssl_context=self._ssl_context())
                    logger.debug('Switched to STARTTLS.')
            self._set_process_timeout(self._imap4)
            self._login(username, password)
        except (imaplib.IMAP4.error, OSError) as e:
            self.close()
            raise self._connect_failed(host, port, e) from e
        except MailConnectionError:
            self.close()
            raise
        logger.info('User %s logged in.', username)

    def open_folder(self, name: str = mail.INBOX, read_only: bool = True) -> IMAPFolder:
        if self._imap4 is None:
            raise RuntimeError('No connection to IMAP4 server.')
        return IMAPFolder(self._imap4, name).open(read_only)

    def _capabilities(self) -> List[str]:
        return [str(cap).upper() for cap in getattr(self._imap4, 'capabilities', ())]

    def _fix_port(self, port: int) -> int:
        """Returns the default port for the connection if not has been set.

        :param port:        the port as set by the user
        :return:            the port to use for the connection
        """
        if port is not None and port != 0:
            return port
        if self._ssl:
            return imaplib.IMAP4_SSL_PORT
        return imaplib.IMAP4_PORT

    def _login(self, username: str, password: str) -> None:
        plain_disabled = is_enabled(self._config, self._prefix + '.auth.plain.disable')
        login_disabled = is_enabled(self._config, self._prefix + '.auth.login.disable')
        if plain_disabled and login_disabled:
            if 'CRAM-MD5' not in self._pick_auth_methods():
                raise MailConnectionError('No AUTH method available besides PLAIN and LOGIN.',
                                          details={'capabilities': self._capabilities()})
            self._imap4.login_cram_md5(username, password)
        else:
            self._imap4.login(username, password)

    def _pick_auth_methods(self) -> List[str]:
        """Picks the set of available AUTH methods of the server.

        :return:    the list of available AUTH methods.
        """
        auth = []
        for cap in self._capabilities():
            m = re.match('AUTH=(.*)', cap)
            if m is not None and len(m.groups()) == 1:
                auth.append(m.groups()[0])
        return auth


class POP3Store(Store):

    """A POP3 session."""

    protocol = ProtocolOption.POP3

    def __init__(self, config: Dict[str, str]):
        super().__init__(config)
        self._pop3 = None

    @property
    def connected(self) -> bool:
        return self._pop3 is not None

    def close(self) -> None:
        """QUIT the session. Messages marked with DELE are removed by the server now."""
        if self._pop3 is None:
            return
        pop3, self._pop3 = self._pop3, None
        try:
            pop3.quit()
        except (poplib.error_proto, OSError) as e:
            logger.debug('Error on POP3 quit: %s', e)

    def connect(self, host: str, port: int, username: str, password: str) -> None:
        """Establish the connection and log in.

        :param host:        the POP3 server host
        :param port:        the port to connect to (0: default port)
        :param username:    the user account used to log in
        :param password:    the user's password for log in
        """
        if not port:
            port = poplib.POP3_SSL_PORT if self._ssl else poplib.POP3_PORT
        timeout = seconds(self._config, self._prefix + '.connectiontimeout')
        logger.info('Connecting %s:%s (%s)...', host, port, self._config.get('mail.store.protocol'))
        try:
            if self._ssl:
                self._pop3 = poplib.POP3_SSL(host, port, context=self._ssl_context(), timeout=timeout)
            else:
                self._pop3 = poplib.POP3(host, port, timeout=timeout)
                if is_enabled(self._config, self._prefix + '.useStartTLS') and \
                        'STLS' in self._pop3.capa():
                    self._pop3.stls(context=self._ssl_context())
                    logger.debug('Switched to STLS.')
            self._set_process_timeout(self._pop3)
            self._pop3.user(username)
            self._pop3.pass_(password)
        except (poplib.error_proto, OSError) as e:
            self.close()
            raise self._connect_failed(host, port, e) from e
        logger.info('User %s logged in.', username)

    def open_folder(self, name: str = mail.INBOX, read_only: bool = True) -> POP3Folder:
        if self._pop3 is None:
            raise RuntimeError('No connection to POP3 server.')
        disable_top = is_enabled(self._config, self._prefix + '.disabletop')
        return POP3Folder(self._pop3, name, disable_top).open(read_only)


_STORES = {
    'imap': IMAPStore,
    'imaps': IMAPStore,
    'pop3': POP3Store,
    'pop3s': POP3Store,
}


def connect(mail_server_config: MailServerConfig, username: str, password: str) -> Store:
    """Open an authenticated session with the receiving mail server.

    :param mail_server_config:  the mail servers
    :param username:            the user account used to log in
    :param password:            the user's password for log in
    :return:                    the connected store (close it, or use it with 'with')
    """
    config = mail_server_config.receive_config_info(username)
    if not config:
        raise ConfigurationError('Cannot build a session for the receiving server.')
    store_class = _STORES.get(config.get('mail.store.protocol'))
    if store_class is None:
        raise ConfigurationError(f"Cannot receive mails via '{config.get('mail.store.protocol')}'.")

    server = mail_server_config.receive_config
    store = store_class(config)
    store.connect(server.host_name, server.host_port, username, password)
    return store


def open_folder(store: Store, read_only: bool = True) -> Folder:
    """Open the inbox of a store.

    :param store:       the connected store
    :param read_only:   open read-only (fetching) or read-write (changing flags)
    :return:            the folder, check folder.is_open before use
    """
    return store.open_folder(mail.INBOX, read_only)


@contextlib.contextmanager
def open_inbox(mail_server_config: MailServerConfig, username: str, password: str,
               read_only: bool = True) -> Iterator[Folder]:
    """Connect and open the inbox for the span of a 'with' block."""
    with connect(mail_server_config, username, password) as store, open_folder(store, read_only) as folder:
        yield folder


@contextlib.contextmanager
def open_transport(mail_server_config: MailServerConfig, username: str, password: str) -> Iterator[smtplib.SMTP]:
    """Connect (and log in to) the sending SMTP server for the span of a 'with' block.

    :param mail_server_config:  the mail servers
    :param username:            the user account used to log in
    :param password:            the user's password for log in
    :return:                    the SMTP connection
    """
    config = mail_server_config.send_config_info(username)
    if not config or config.get('mail.transport.protocol') not in ('smtp', 'smtps'):
        raise ConfigurationError('Cannot build a session for the sending server.')

    server = mail_server_config.send_config
    host, port = server.host_name, server.host_port or 0
    timeout = seconds(config, 'mail.smtp.connectiontimeout')
    ssl_enabled = is_enabled(config, 'mail.smtp.ssl.enable')
    context = tls_context(config.get('mail.smtp.socketFactory.class')) if ssl_enabled else None
    kwargs = {} if timeout is None else {'timeout': timeout}

    logger.info('Connecting %s:%s (%s)...', host, port, config.get('mail.store.protocol'))
    smtp = None
    try:
        if ssl_enabled:
            smtp = smtplib.SMTP_SSL(host, port, context=context, **kwargs)
        else:
            smtp = smtplib.SMTP(host, port, **kwargs)
            smtp.ehlo_or_helo_if_needed()
            if is_enabled(config, 'mail.smtp.starttls.enable') and smtp.has_extn('starttls'):
                smtp.starttls(context=tls_context(config.get('mail.smtp.socketFactory.class')))
        process_timeout = seconds(config, 'mail.smtp.timeout')
        if process_timeout is not None and smtp.sock is not None:
            smtp.sock.settimeout(process_timeout)
        if is_enabled(config, 'mail.smtp.auth'):
            smtp.login(username, password)
    except (smtplib.SMTPException, OSError) as e:
        if smtp is not None:
            smtp.close()
        logger.warning('Failed to connect %s:%s: %s', host, port, e)
        raise MailConnectionError(f'Failed to connect {host}:{port}: {e}',
                                  details={'host': host, 'port': port, 'protocol': 'SMTP'}) from e

    try:
        yield smtp
    finally:
        try:
            smtp.quit()
        except (smtplib.SMTPException, OSError) as e:
            logger.debug('Error on SMTP quit: %s', e)
            smtp.close()


def parse(connect_string: str) -> Tuple[str, int, str, str]:
    """Parse and get connection params.

    :param connect_string:  some string in the form "USER[:PASSWORD]@HOST[:PORT]"
    :return:                host, port, username, password
    """
    # worst case scenario: "alice@somehost.domain:password@someotherhost.otherdomain:7892"
    port = 0
    password = None

    parts_at = connect_string.split('@')
    if len(parts_at) == 1:
        raise ConfigurationError('Malformed connection string - type --help for help')

    host_and_port = parts_at[-1]
    user_and_password = '@'.join(parts_at[:-1])

    if host_and_port.find(':') == -1:
        host = host_and_port
    else:
        host, _, port_text = host_and_port.rpartition(':')
        try:
            port = int(port_text)
        except ValueError as e:
            raise ConfigurationError(f"Failed to parse mailserver part '{host_and_port}'.") from e

    if not host:
        raise ConfigurationError('Cannot deduce host.')

    if user_and_password.find(':') == -1:
        username = user_and_password
    else:
        username, _, password = user_and_password.rpartition(':')

    if not username:
        raise ConfigurationError('Cannot deduce user.')

    if password is None:
        password = getpass.getpass(f'No user password given. Please enter password for user {username}: ')

    logger.debug('User: %s', username)
    logger.debug('Host: %s', host)
    logger.debug('Port: %s', port if port != 0 else '<default>')

    return host, port, username, password
