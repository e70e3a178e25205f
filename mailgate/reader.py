# ------------------------------------------------------------
# mailgate/reader.py
#
# read mails from the inbox
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

"""This module turns messages of the inbox into MailObject instances.

Only messages addressed to the reader (the receive address is one of the TO
recipients) are returned, all others are dropped. Messages which cannot be read are
skipped as well: a batch read returns the remaining messages, a single read None.
"""

import email.errors
import email.message
import email.utils
import io
import logging
import os
from datetime import datetime
from typing import Iterable, List, Optional

from . import connection
from . import files
from . import mail
from . import resolver
from .config import MailServerConfig
from .connection import Folder, MessageHandle
from .errors import PartialReadError
from .mail import MailObject

logger = logging.getLogger(__name__)

_READ_ERRORS = (PartialReadError, email.errors.MessageError, LookupError, ValueError, TypeError)


def get_mail_content(part: email.message.Message, content_buffer: io.StringIO) -> None:
    """Collect the text of a MIME part and all of its children in document order.

    Plain text and HTML parts without a 'name' parameter are content, multipart
    containers and enclosed messages are descended, all other parts are ignored.

    :param part:            the MIME part
    :param content_buffer:  receives the text
    """
    if content_buffer is None:
        raise IOError('No content buffer given.')

    content_type = part.get_content_type()
    named = part.get_param('name') is not None

    if content_type in (mail.CONTENT_TYPE_TEXT, mail.CONTENT_TYPE_HTML) and not named:
        content_buffer.write(_text(part))
    elif part.get_content_maintype() == mail.CONTENT_TYPE_MULTIPART:
        for child in part.get_payload():
            get_mail_content(child, content_buffer)
    elif content_type == mail.CONTENT_TYPE_MESSAGE_RFC822:
        for enclosed in part.get_payload():
            get_mail_content(enclosed, content_buffer)


def get_mail_attachment(part: email.message.Message,
                        save_attach_path: str,
                        save_files: Optional[List[str]] = None) -> List[str]:
    """Save the attachments of a multipart container and of its nested containers.

    A part is saved if it carries a file name and its disposition is either 'attachment'
    or 'inline'. Parts which fail to save are left out.

    :param part:                the MIME part
    :param save_attach_path:    the folder to save the attachments to
    :param save_files:          receives the paths of the saved files
    :return:                    the paths of the saved files
    """
    if save_files is None:
        save_files = []
    if part.get_content_maintype() != mail.CONTENT_TYPE_MULTIPART:
        return save_files

    for child in part.get_payload():
        file_name = child.get_filename()
        if file_name is not None:
            disposition = child.get_content_disposition()
            if disposition in (mail.DISPOSITION_ATTACHMENT, mail.DISPOSITION_INLINE):
                file_path = os.path.join(save_attach_path, os.path.basename(mail.decode_text(file_name)))
                if files.save_file(_payload(child), file_path):
                    save_files.append(file_path)
                else:
                    logger.debug('Attachment %s not saved.', file_path)
                continue
        if child.get_content_maintype() == mail.CONTENT_TYPE_MULTIPART:
            get_mail_attachment(child, save_attach_path, save_files)

    return save_files


def receive_message(folder: Folder,
                    handle: MessageHandle,
                    receive_address: str,
                    detail: bool,
                    save_attach_path: Optional[str] = None) -> Optional[MailObject]:
    """Turn a single message into a MailObject.

    :param folder:              the opened folder
    :param handle:              the message
    :param receive_address:     the address the message must be sent to
    :param detail:              read CC, BCC, content and attachments too
    :param save_attach_path:    folder to save attachments to (None: don't save)
    :return:                    the mail or None if not addressed to receive_address
    """
    message = handle.message if detail else handle.headers

    receive_list = _addresses(message, 'To')
    if not _addressed_to(receive_list, receive_address):
        logger.debug('Message %s is not addressed to %s, dropped.', handle.uid, receive_address)
        return None

    mail_object = MailObject()
    mail_object.receive_address = receive_list
    mail_object.uid = resolver.uid_of(folder, handle)
    mail_object.subject = mail.decode_text(message.get('Subject'))
    mail_object.send_date = _date(message.get('Date'))
    mail_object.send_address = mail.decode_text(message.get('From'))

    if detail:
        if message.get('Cc') is not None:
            mail_object.cc_address = _addresses(message, 'Cc')
        if message.get('Bcc') is not None:
            mail_object.bcc_address = _addresses(message, 'Bcc')

        content_buffer = io.StringIO()
        get_mail_content(message, content_buffer)
        mail_object.content = content_buffer.getvalue()

        if save_attach_path:
            mail_object.attach_files = get_mail_attachment(message, save_attach_path)

    return mail_object


def read_one(folder: Folder,
             protocol_option,
             uid: str,
             receive_address: str,
             save_attach_path: Optional[str] = None) -> Optional[MailObject]:
    """Read a single mail with all details of an opened folder.

    :param folder:              the opened folder
    :param protocol_option:     the retrieval protocol
    :param uid:                 the uid of the mail
    :param receive_address:     the address the mail must be sent to
    :param save_attach_path:    folder to save attachments to (None: don't save)
    :return:                    the mail or None
    """
    if not folder.is_open:
        return None
    try:
        handle = resolver.resolve_identifier(protocol_option, folder, uid)
    except PartialReadError as e:
        logger.warning('Cannot resolve uid %s: %s', uid, e.message)
        return None
    if handle is None:
        logger.debug('No message with uid %s.', uid)
        return None
    return _receive(folder, handle, receive_address, True, save_attach_path)


def read_many(folder: Folder,
              protocol_option,
              uids: Optional[Iterable[str]],
              receive_address: str,
              since: Optional[datetime] = None,
              save_attach_path: Optional[str] = None,
              detail: Optional[bool] = None) -> List[MailObject]:
    """Read mails of an opened folder.

    With uids given those mails are read with all details. With uids being None all
    mails of the folder are read: with all details if no date is given, only the
    headers if a date is given.

    :param folder:              the opened folder
    :param protocol_option:     the retrieval protocol
    :param uids:                the uids of the mails (None: all mails)
    :param receive_address:     the address the mails must be sent to
    :param since:               only mails received strictly after this point in time
    :param save_attach_path:    folder to save attachments to (None: don't save)
    :param detail:              override the detail mode
    :return:                    the mails
    """
    if not folder.is_open:
        return []
    try:
        if uids is not None:
            handles = resolver.resolve_identifiers(protocol_option, folder, uids)
        else:
            handles = folder.messages()
    except PartialReadError as e:
        logger.warning('Cannot list messages of %s: %s', folder.name, e.message)
        return []
    if detail is None:
        detail = uids is not None or since is None

    mail_list = []
    for handle in handles:
        if since is not None and not _received_after(handle, since):
            continue
        mail_object = _receive(folder, handle, receive_address, detail, save_attach_path)
        if mail_object is not None:
            mail_list.append(mail_object)
    return mail_list


def fetch_mail(mail_server_config: MailServerConfig,
               username: str,
               password: str,
               uid: str,
               save_attach_path: Optional[str] = None) -> Optional[MailObject]:
    """Connect, read a single mail of the inbox addressed to the user and disconnect.

    :param mail_server_config:  the mail servers
    :param username:            user account (and receive address)
    :param password:            the user's password
    :param uid:                 the uid of the mail
    :param save_attach_path:    folder to save attachments to (None: don't save)
    :return:                    the mail or None
    """
    with connection.open_inbox(mail_server_config, username, password, read_only=True) as folder:
        return read_one(folder, mail_server_config.receive_protocol, uid, username, save_attach_path)


def fetch_mails(mail_server_config: MailServerConfig,
                username: str,
                password: str,
                uids: Iterable[str],
                save_attach_path: Optional[str] = None) -> List[MailObject]:
    """Connect, read the mails of a list of uids with all details and disconnect."""
    with connection.open_inbox(mail_server_config, username, password, read_only=True) as folder:
        return read_many(folder, mail_server_config.receive_protocol, list(uids), username,
                         save_attach_path=save_attach_path)


def list_mails(mail_server_config: MailServerConfig,
               username: str,
               password: str,
               since: Optional[datetime] = None,
               save_attach_path: Optional[str] = None) -> List[MailObject]:
    """Connect, read all mails of the inbox and disconnect.

    :param mail_server_config:  the mail servers
    :param username:            user account (and receive address)
    :param password:            the user's password
    :param since:               only headers of mails received strictly after this point in time
    :param save_attach_path:    folder to save attachments to (None: don't save)
    :return:                    the mails
    """
    with connection.open_inbox(mail_server_config, username, password, read_only=True) as folder:
        return read_many(folder, mail_server_config.receive_protocol, None, username,
                         since=since, save_attach_path=save_attach_path)


def _addressed_to(receive_list: List[str], receive_address: str) -> bool:
    if not receive_address:
        return False
    return receive_address.lower() in (address.lower() for address in receive_list)


def _addresses(message: email.message.Message, header: str) -> List[str]:
    values = [str(value) for value in message.get_all(header, [])]
    return [address for name, address in email.utils.getaddresses(values) if address]


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.astimezone()
    return value


def _date(value) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return email.utils.parsedate_to_datetime(str(value))
    except (TypeError, ValueError):
        logger.debug('Cannot parse date %r.', value)
        return None


def _payload(part: email.message.Message) -> Optional[bytes]:
    if part.get_content_type() == mail.CONTENT_TYPE_MESSAGE_RFC822:
        return part.get_payload(0).as_bytes()
    return part.get_payload(decode=True)


def _receive(folder: Folder, handle: MessageHandle, receive_address: str, detail: bool,
             save_attach_path: Optional[str]) -> Optional[MailObject]:
    try:
        return receive_message(folder, handle, receive_address, detail, save_attach_path)
    except _READ_ERRORS as e:
        error = e if isinstance(e, PartialReadError) else PartialReadError(
            f'Failed to read message {handle.uid}: {e}', details={'uid': str(handle.uid)})
        logger.warning('Skipping message %s: %s', handle.uid, error.message)
        logger.debug('Read error of message %s', handle.uid, exc_info=True)
        return None


def _received_after(handle: MessageHandle, since: datetime) -> bool:
    try:
        received = handle.received_date
    except _READ_ERRORS as e:
        logger.warning('Skipping message %s: %s', handle.uid, e)
        return False
    if received is None:
        logger.debug('Message %s has no received date, skipped.', handle.uid)
        return False
    return _aware(received) > _aware(since)


def _text(part: email.message.Message) -> str:
    try:
        return part.get_content()
    except (AttributeError, KeyError):
        # parts parsed with the compat32 policy
        payload = part.get_payload(decode=True) or b''
        return payload.decode(part.get_content_charset() or 'us-ascii', 'replace')
