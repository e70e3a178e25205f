# ------------------------------------------------------------
# mailgate/command_line.py
#
# handle command line stuff and arguments
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

"""This module provides all command line stuff and figures."""

import click
import logging
import sys
from typing import Tuple

from . import color
from . import composer
from . import connection
from . import mutator
from . import reader
from .config import Config, MailServerConfig, ServerConfig
from .mail import CONTENT_TYPE_HTML, CONTENT_TYPE_TEXT, Flag, MailObject
from .protocol import ProtocolOption

_CONNECT_HELP = """
    \b
    CONNECT holds the connection details. Syntax is USER[:PASS]@HOST[:PORT]
    like 'john@example.com' or 'bob:mysecret@mail-server.com:143'.
    If password PASS is omitted you are asked for it.
"""


def _setup_logging(verbose: bool) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(color.ColorFormatter('%(levelname)s: %(message)s'))
    logger = logging.getLogger('mailgate')
    logger.handlers = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


def _receive_config(connect: str, protocol: str, ssl: bool, timeout: int) -> Tuple[MailServerConfig, str, str]:
    host, port, username, password = connection.parse(connect)
    server = ServerConfig(host_name=host, protocol_option=ProtocolOption.parse(protocol), host_port=port,
                          ssl=ssl, connection_timeout=timeout, process_timeout=timeout)
    if Config().verbose:
        sys.stderr.write(f'Reading mails of {color.connection_detail(username)} at '
                         f'{color.connection_detail(host)} via {protocol.upper()}\n')
    return MailServerConfig(receive_config=server), username, password


def _print_mail(mail_object: MailObject, detail: bool = False) -> None:
    date = mail_object.send_date.strftime('%Y-%m-%d %H:%M') if mail_object.send_date else '-'
    print(f'{color.uid(mail_object.uid or "-"):<12}  {date:<16}  {mail_object.send_address:<30}  '
          f'{mail_object.subject}')
    if detail:
        if mail_object.cc_address:
            print('Cc: ' + ', '.join(mail_object.cc_address))
        for file_path in mail_object.attach_files:
            print('Attachment: ' + color.success(file_path))
        print()
        print(mail_object.content or '')


receive_options = [
    click.option('-p', '--protocol', type=click.Choice(['imap', 'pop3'], case_sensitive=False), default='imap',
                 help='Protocol to read mails with.'),
    click.option('--ssl', is_flag=True, default=False, help='Connect via SSL.'),
    click.option('-t', '--timeout', type=int, default=0, help='Connection and process timeout in seconds.'),
]


def _with_receive_options(f):
    for option in reversed(receive_options):
        f = option(f)
    return f


@click.group(invoke_without_command=True)
@click.option('-d', '--dry-run', is_flag=True, default=False,
              help='Dry run: do not actually change or send mails but act as if.')
@click.option('--no-color', is_flag=True, default=False, help='Turn off color output.')
@click.option('-V', '--verbose', is_flag=True, default=False, help='Be verbose.')
@click.option('-v', '--version', is_flag=True, default=False, help='Show version information and exit.')
@click.pass_context
def cli(ctx: click.Context,
        dry_run: bool = False,
        no_color: bool = False,
        verbose: bool = False,
        version: bool = False) -> None:
    Config().dry_run = dry_run
    Config().no_color = no_color
    Config().verbose = verbose
    _setup_logging(verbose)
    if version:
        show_version()
        ctx.exit(0)
    if ctx.invoked_subcommand is None:
        ctx.fail('Missing command.')


@cli.command(name='list', help='List the mails of the inbox.\n' + _CONNECT_HELP)
@_with_receive_options
@click.option('--since', type=click.DateTime(formats=['%Y-%m-%d', '%Y-%m-%d %H:%M']), default=None,
              help='Only list mails received after this point in time (only headers are read).')
@click.argument('CONNECT', required=True, nargs=1)
def list_command(protocol: str = 'imap', ssl: bool = False, timeout: int = 0, since=None,
                 connect: str = None) -> None:
    mail_server_config, username, password = _receive_config(connect, protocol, ssl, timeout)
    mails = reader.list_mails(mail_server_config, username, password, since=since)
    for mail_object in mails:
        _print_mail(mail_object)
    if Config().verbose:
        sys.stderr.write(color.success(f'{len(mails)} mails.') + '\n')


@cli.command(help='Fetch mails with all details.\n' + _CONNECT_HELP + '\n    UID are the uids of the mails.')
@_with_receive_options
@click.option('-s', '--save-to', type=click.Path(file_okay=False), default=None,
              help='Folder to save attachments to.')
@click.argument('CONNECT', required=True, nargs=1)
@click.argument('UID', required=True, nargs=-1)
def fetch(protocol: str = 'imap', ssl: bool = False, timeout: int = 0, save_to: str = None,
          connect: str = None, uid: Tuple[str] = ()) -> None:
    mail_server_config, username, password = _receive_config(connect, protocol, ssl, timeout)
    mails = reader.fetch_mails(mail_server_config, username, password, list(uid), save_attach_path=save_to)
    for mail_object in mails:
        _print_mail(mail_object, detail=True)
    if len(mails) < len(uid):
        sys.stderr.write(color.error(f'{len(uid) - len(mails)} of {len(uid)} mails not found.') + '\n')


@cli.command(help='Set or clear a flag of mails.\n' + _CONNECT_HELP + '\n    UID are the uids of the mails.')
@_with_receive_options
@click.option('-f', '--flag', type=click.Choice([f.name.lower() for f in Flag], case_sensitive=False),
              required=True, help='The flag to change.')
@click.option('-u', '--unset', is_flag=True, default=False, help='Clear the flag instead of setting it.')
@click.argument('CONNECT', required=True, nargs=1)
@click.argument('UID', required=True, nargs=-1)
def mark(protocol: str = 'imap', ssl: bool = False, timeout: int = 0, flag: str = None, unset: bool = False,
         connect: str = None, uid: Tuple[str] = ()) -> None:
    mail_server_config, username, password = _receive_config(connect, protocol, ssl, timeout)
    if Config().dry_run:
        sys.stderr.write(f"Dry run: would {'clear' if unset else 'set'} {flag} on {len(uid)} mails\n")
        return
    count = mutator.set_status(mail_server_config, username, password, list(uid), Flag[flag.upper()], not unset)
    print(color.success(f'{count} mails changed.'))


@cli.command(help='Send a mail.\n' + _CONNECT_HELP)
@click.option('--ssl', is_flag=True, default=False, help='Connect via SSL.')
@click.option('-a', '--auth-login', is_flag=True, default=False, help='Log in to the SMTP server.')
@click.option('-t', '--timeout', type=int, default=0, help='Connection and process timeout in seconds.')
@click.option('--from', 'send_address', default=None, help='Sender address (default: the user).')
@click.option('--to', 'receive_address', multiple=True, required=True, help='Receive address.')
@click.option('--cc', multiple=True, help='Carbon copy address.')
@click.option('--bcc', multiple=True, help='Blind carbon copy address.')
@click.option('--subject', default='', help='The subject.')
@click.option('--body', default=None, help="The content (default: read from stdin, '-').")
@click.option('--html', is_flag=True, default=False, help='The content is HTML.')
@click.option('--attach', type=click.Path(), multiple=True, help='File to attach.')
@click.option('--include', type=click.Path(), multiple=True, help='File to include as raw byte stream.')
@click.argument('CONNECT', required=True, nargs=1)
def send(ssl: bool = False, auth_login: bool = False, timeout: int = 0, send_address: str = None,
         receive_address: Tuple[str] = (), cc: Tuple[str] = (), bcc: Tuple[str] = (), subject: str = '',
         body: str = None, html: bool = False, attach: Tuple[str] = (), include: Tuple[str] = (),
         connect: str = None) -> None:
    host, port, username, password = connection.parse(connect)
    server = ServerConfig(host_name=host, protocol_option=ProtocolOption.SMTP, host_port=port, ssl=ssl,
                          auth_login=auth_login, connection_timeout=timeout, process_timeout=timeout)
    mail_server_config = MailServerConfig(send_config=server)

    if body is None or body == '-':
        body = click.get_text_stream('stdin').read()
    mail_object = MailObject(subject=subject,
                             content_type=CONTENT_TYPE_HTML if html else CONTENT_TYPE_TEXT,
                             content=body,
                             send_address=send_address,
                             receive_address=list(receive_address),
                             cc_address=list(cc) or None,
                             bcc_address=list(bcc) or None,
                             attach_files=list(attach),
                             include_files=list(include))

    if Config().dry_run:
        message = composer.build_message(mail_object, username)
        sys.stdout.write(message.as_string() + '\n')
        return
    if not composer.send_message(mail_server_config, mail_object, username, password):
        sys.stderr.write(color.error('Mail not sent: file to attach or include is missing.') + '\n')
        sys.exit(1)
    print(color.success('Mail sent.'))


def show_version() -> None:
    """Shows the program version."""
    from . import __version__
    print('mail-gate V' + __version__)
