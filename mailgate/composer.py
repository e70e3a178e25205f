# ------------------------------------------------------------
# mailgate/composer.py
#
# compose and send mails
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

"""This module builds multipart mails out of MailObject instances and sends them."""

import email.utils
import logging
import mimetypes
import smtplib
from email import encoders
from email.header import Header
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional

from . import connection
from . import files
from .config import MailServerConfig
from .errors import MessagingError, MissingRecipientError, ResourceMissingError
from .mail import DISPOSITION_ATTACHMENT, DISPOSITION_INLINE, MailObject

logger = logging.getLogger(__name__)


def _join(addresses: List[str]) -> str:
    return ', '.join(addresses)


def _attach_file(path: str) -> MIMEBase:
    """A file as attachment, typed by its file name."""
    data = files.read_file(path)
    content_type, encoding = mimetypes.guess_type(path)
    if content_type is None or encoding is not None:
        content_type = 'application/octet-stream'
    maintype, subtype = content_type.split('/', 1)
    part = MIMEBase(maintype, subtype)
    part.set_payload(data)
    encoders.encode_base64(part)
    part.add_header('Content-Disposition', DISPOSITION_ATTACHMENT, filename=files.get_filename(path))
    return part


def _include_file(path: str) -> MIMEBase:
    """A file as raw byte stream referenced by its file name as Content-ID."""
    data = files.read_file(path)
    file_name = files.get_filename(path)
    part = MIMEBase('application', 'octet-stream')
    part.set_payload(data)
    encoders.encode_base64(part)
    part.add_header('Content-Disposition', DISPOSITION_INLINE, filename=file_name)
    part.add_header('Content-ID', f'<{file_name}>')
    return part


def _body(mail_object: MailObject, content: str) -> MIMEText:
    content_type = (mail_object.content_type or 'text/plain').split(';', 1)[0].strip()
    maintype, _, subtype = content_type.partition('/')
    if maintype.strip().lower() != 'text' or not subtype.strip():
        subtype = 'plain'
    return MIMEText(content, subtype.strip().lower(), mail_object.charset or 'UTF-8')


def build_message(mail_object: MailObject, username: Optional[str] = None) -> MIMEMultipart:
    """Build the multipart message of a mail.

    The parts are the attach files, then the include files, then the content with
    all placeholders substituted.

    :param mail_object:     the mail
    :param username:        the sending user (From and Reply-To if not set otherwise)
    :return:                the message
    """
    if not mail_object.receive_address:
        raise MissingRecipientError('Cannot send a mail without receive address.',
                                    details={'subject': mail_object.subject})

    message = MIMEMultipart()
    message['Subject'] = Header(mail_object.subject or '', mail_object.charset or 'UTF-8')

    for path in mail_object.attach_files or []:
        message.attach(_attach_file(path))
    for path in mail_object.include_files or []:
        message.attach(_include_file(path))

    content = mail_object.render_content()
    if content is not None:
        message.attach(_body(mail_object, content))

    sender = mail_object.send_address or username
    if sender:
        message['From'] = sender
    message['To'] = _join(mail_object.receive_address)
    if mail_object.cc_address:
        message['Cc'] = _join(mail_object.cc_address)
    if mail_object.bcc_address:
        message['Bcc'] = _join(mail_object.bcc_address)
    if mail_object.reply_address:
        message['Reply-To'] = _join(mail_object.reply_address)
    elif sender:
        message['Reply-To'] = sender
    if mail_object.send_date is not None:
        message['Date'] = email.utils.format_datetime(mail_object.send_date.astimezone())

    return message


def send_message(mail_server_config: MailServerConfig,
                 mail_object: MailObject,
                 username: str,
                 password: str) -> bool:
    """Send a mail.

    :param mail_server_config:  the mail servers
    :param mail_object:         the mail
    :param username:            user account to log in (and default sender)
    :param password:            the user's password
    :return:                    True if sent, False if a file to attach or include is missing
    """
    try:
        message = build_message(mail_object, username)
    except ResourceMissingError as e:
        logger.warning('Mail not sent: %s', e.message)
        return False

    recipients = list(mail_object.receive_address)
    recipients += mail_object.cc_address or []
    recipients += mail_object.bcc_address or []
    envelope_from = mail_server_config.send_config_info(username).get('mail.smtp.from') or message['From']

    with connection.open_transport(mail_server_config, username, password) as smtp:
        try:
            refused = smtp.send_message(message, from_addr=envelope_from, to_addrs=recipients)
        except smtplib.SMTPException as e:
            logger.warning('Mail to %s rejected: %s', message['To'], e)
            raise MessagingError(f'Mail rejected: {e}', details={'recipients': recipients}) from e

    if refused:
        logger.warning('Mail refused for: %s', ', '.join(refused))
    logger.info('Mail sent to %s.', message['To'])
    return True
