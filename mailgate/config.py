# ------------------------------------------------------------
# mailgate/config.py
#
# mail-gate config objects
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

"""This module contains the app wide configuration object and the mail server configurations."""

from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .protocol import ProtocolOption, build_config


class _Singleton(type):

    """Singleton class instance."""
    _instances = {}

    def __call__(cls, *args, **kwargs):
        if cls not in cls._instances:
            cls._instances[cls] = super(_Singleton, cls).__call__(*args, **kwargs)
        return cls._instances[cls]


class Config(metaclass=_Singleton):

    """This object holds the app wide configurations like command line options, etc."""

    def __init__(self):
        self.dry_run = False
        self.no_color = False
        self.verbose = False


class ServerConfig(BaseModel):

    """A single mail server endpoint.

    Configuration files use camel case keys ('hostName', 'hostPort', ...), code uses the
    field names. Both are accepted.

    :param host_name:           the mail server host
    :param protocol_option:     protocol spoken by the server
    :param host_port:           the port (0: protocol default)
    :param ssl:                 connect via SSL/TLS
    :param auth_login:          authenticate (SMTP) or force non PLAIN/LOGIN authentication (IMAP4)
    :param connection_timeout:  seconds to wait for a connection (0: no timeout)
    :param process_timeout:     seconds to wait for a single protocol operation (0: no timeout)
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    host_name: str = Field(alias='hostName', min_length=1)
    protocol_option: Optional[Union[ProtocolOption, str]] = Field(ProtocolOption.IMAP, alias='protocolOption')
    host_port: int = Field(0, alias='hostPort')
    ssl: bool = False
    auth_login: bool = Field(False, alias='authLogin')
    connection_timeout: int = Field(0, alias='connectionTimeout')
    process_timeout: int = Field(0, alias='processTimeout')

    @field_validator('protocol_option', mode='before')
    @classmethod
    def _parse_protocol(cls, value):
        # unknown names are kept: such a server yields no session
        return ProtocolOption.parse(value) or value

    @property
    def protocol(self) -> Optional[ProtocolOption]:
        """The protocol of this server (None if unknown)."""
        return ProtocolOption.parse(self.protocol_option)

    def session_config(self, user_name: Optional[str] = None) -> Dict[str, str]:
        """Session properties of this server using its own timeouts."""
        return build_config(self, self.connection_timeout, self.process_timeout, user_name)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> 'ServerConfig':
        """Create a server config from plain key/value pairs.

        Unknown keys are ignored.

        :param mapping:     the key/value pairs
        :return:            the server configuration
        """
        try:
            server = cls.model_validate(dict(mapping))
        except ValidationError as e:
            errors = [{'field': '.'.join(str(loc) for loc in error['loc']), 'error': error['msg']}
                      for error in e.errors()]
            raise ConfigurationError(f'Invalid server configuration: {e.error_count()} error(s).',
                                     details={'errors': errors}) from e
        if server.protocol is None:
            raise ConfigurationError(f"Unknown protocol '{server.protocol_option}'.",
                                     details={'protocol': server.protocol_option})
        return server


class MailServerConfig(BaseModel):

    """Pairs the server mails are sent with and the server mails are received from."""

    model_config = ConfigDict(frozen=True)

    send_config: Optional[ServerConfig] = None
    receive_config: Optional[ServerConfig] = None

    def send_config_info(self, user_name: Optional[str] = None) -> Dict[str, str]:
        """Session properties to send mails."""
        if self.send_config is None:
            return {}
        return self.send_config.session_config(user_name)

    def receive_config_info(self, user_name: Optional[str] = None) -> Dict[str, str]:
        """Session properties to receive mails."""
        if self.receive_config is None:
            return {}
        return self.receive_config.session_config(user_name)

    @property
    def receive_protocol(self) -> Optional[ProtocolOption]:
        """Protocol of the receiving server (None if not configured)."""
        if self.receive_config is None:
            return None
        return self.receive_config.protocol
