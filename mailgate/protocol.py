# ------------------------------------------------------------
# mailgate/protocol.py
#
# protocol selection and session property mapping
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

"""This module turns a server configuration into a protocol specific session mapping.

The mapping is a flat dict of string keys and values, e.g. for an IMAP4 over SSL server:

    >>> server = ServerConfig(host_name='imap.example.com', protocol_option=ProtocolOption.IMAP,
    ...                       host_port=993, ssl=True)
    >>> build_config(server, 30, 60, 'bob')
    {'mail.imap.host': 'imap.example.com',
     'mail.imap.port': '993',
     'mail.imap.connectiontimeout': '30000',
     'mail.imap.timeout': '60000',
     'mail.store.protocol': 'imaps',
     'mail.imap.socketFactory.class': 'ssl.create_default_context',
     'mail.imap.socketFactory.port': '993',
     'mail.imap.starttls.enable': 'true'}

An empty mapping means the session cannot be built at all.
"""

import enum
import importlib
import logging
import ssl
import threading
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

SSL_FACTORY_CLASS = 'ssl.create_default_context'

_tls_lock = threading.Lock()
_tls_context = None


class ProtocolOption(enum.Enum):

    """The mail protocols known."""

    SMTP = 'SMTP'
    IMAP = 'IMAP'
    POP3 = 'POP3'

    @classmethod
    def parse(cls, name) -> Optional['ProtocolOption']:
        """Get the protocol for a name (case insensitive).

        :param name:    a protocol name or a ProtocolOption
        :return:        the protocol or None if unknown
        """
        if isinstance(name, cls):
            return name
        if name is None:
            return None
        try:
            return cls[str(name).strip().upper()]
        except KeyError:
            return None


def register_tls_provider() -> ssl.SSLContext:
    """Create the process wide default TLS context once and return it."""
    global _tls_context
    with _tls_lock:
        if _tls_context is None:
            logger.debug('Registering default TLS context.')
            _tls_context = ssl.create_default_context()
        return _tls_context


def tls_context(factory: Optional[str] = None) -> ssl.SSLContext:
    """Create the TLS context named by a socket factory entry.

    :param factory:     dotted path of a callable returning a ssl.SSLContext
    :return:            the TLS context
    """
    if not factory or factory == SSL_FACTORY_CLASS:
        return register_tls_provider()
    module_name, _, attribute = factory.rpartition('.')
    return getattr(importlib.import_module(module_name), attribute)()


def is_enabled(config: Dict[str, str], key: str) -> bool:
    """Check if a boolean session property is set."""
    return config.get(key, 'false').lower() == 'true'


def seconds(config: Dict[str, str], key: str) -> Optional[float]:
    """Get a millisecond session property as seconds (None if not set)."""
    value = config.get(key)
    if not value:
        return None
    return int(value) / 1000


def _imap(config: Dict[str, str], server_config, user_name: Optional[str]) -> None:
    config['mail.store.protocol'] = 'imap'
    if server_config.auth_login:
        config['mail.imap.auth.plain.disable'] = 'true'
        config['mail.imap.auth.login.disable'] = 'true'
    if server_config.ssl:
        config['mail.store.protocol'] = 'imaps'
        config['mail.imap.socketFactory.class'] = SSL_FACTORY_CLASS
        if server_config.host_port:
            config['mail.imap.socketFactory.port'] = str(server_config.host_port)
        config['mail.imap.starttls.enable'] = 'true'


def _smtp(config: Dict[str, str], server_config, user_name: Optional[str]) -> None:
    config['mail.store.protocol'] = 'smtp'
    config['mail.transport.protocol'] = 'smtp'
    if server_config.auth_login:
        config['mail.smtp.auth'] = 'true'
        if user_name and user_name.strip():
            config['mail.smtp.from'] = user_name
    if server_config.ssl:
        config['mail.store.protocol'] = 'smtps'
        config['mail.transport.protocol'] = 'smtps'
        config['mail.smtp.ssl.enable'] = 'true'
        config['mail.smtp.socketFactory.class'] = SSL_FACTORY_CLASS
        config['mail.smtp.socketFactory.fallback'] = 'false'
        if server_config.host_port:
            config['mail.smtp.socketFactory.port'] = str(server_config.host_port)
        config['mail.smtp.starttls.enable'] = 'true'


def _pop3(config: Dict[str, str], server_config, user_name: Optional[str]) -> None:
    config['mail.store.protocol'] = 'pop3'
    config['mail.transport.protocol'] = 'pop3'
    if server_config.ssl:
        config['mail.store.protocol'] = 'pop3s'
        config['mail.transport.protocol'] = 'pop3s'
        config['mail.pop3.socketFactory.class'] = SSL_FACTORY_CLASS
        if server_config.host_port:
            config['mail.pop3.socketFactory.port'] = str(server_config.host_port)
        config['mail.pop3.disabletop'] = 'true'
        config['mail.pop3.ssl.enable'] = 'true'
        config['mail.pop3.useStartTLS'] = 'true'


_RULES = {
    ProtocolOption.IMAP: _imap,
    ProtocolOption.SMTP: _smtp,
    ProtocolOption.POP3: _pop3,
}   # type: Dict[ProtocolOption, Callable]


def build_config(server_config,
                 connection_timeout: int,
                 process_timeout: int,
                 user_name: Optional[str] = None) -> Dict[str, str]:
    """Build the session mapping for a server.

    :param server_config:       the server configuration (a ServerConfig)
    :param connection_timeout:  timeout in seconds to establish the connection (<= 0: none)
    :param process_timeout:     timeout in seconds for a single protocol operation (<= 0: none)
    :param user_name:           the user logging in (used as SMTP envelope sender)
    :return:                    the session properties, empty if the protocol is unknown
    """
    protocol = ProtocolOption.parse(server_config.protocol_option)
    if protocol is None:
        logger.warning('Unknown protocol %r: cannot build session.', server_config.protocol_option)
        return {}

    prefix = 'mail.' + protocol.value.lower()
    config = {}
    if server_config.host_name:
        config[prefix + '.host'] = server_config.host_name
    if server_config.host_port:
        config[prefix + '.port'] = str(server_config.host_port)
    if connection_timeout > 0:
        config[prefix + '.connectiontimeout'] = str(connection_timeout * 1000)
    if process_timeout > 0:
        config[prefix + '.timeout'] = str(process_timeout * 1000)

    if server_config.ssl:
        register_tls_provider()

    _RULES[protocol](config, server_config, user_name)
    return config
