# ------------------------------------------------------------
# mailgate/errors.py
#
# mail-gate exceptions
#
# This file is part of mail-gate.
# See the LICENSE file for the software license.
# (C) Copyright 2015-2019, Oliver Maurhart, dyle71@gmail.com
# ------------------------------------------------------------

"""This module holds the exceptions raised by mail-gate."""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(Enum):

    """Categories of errors."""

    CONFIGURATION = 'configuration'
    NETWORK = 'network'
    MESSAGING = 'messaging'
    FILE_SYSTEM = 'file_system'
    PARSING = 'parsing'
    VALIDATION = 'validation'
    UNKNOWN = 'unknown'


class MailError(Exception):

    """Base exception for all mail-gate errors."""

    category = ErrorCategory.UNKNOWN
    user_message = 'A mail error occurred'

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        """Constructor.

        :param message:     the error message (defaults to the class' user message)
        :param details:     additional key/value context of the error
        """
        self.message = message or self.user_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a dictionary."""
        return {
            'error_type': self.__class__.__name__,
            'category': self.category.value,
            'message': self.message,
            'details': self.details,
        }


class ConfigurationError(MailError):

    """A server configuration cannot be turned into a session."""

    category = ErrorCategory.CONFIGURATION
    user_message = 'Invalid mail server configuration'


class MailConnectionError(MailError):

    """Connecting or authenticating against the mail server failed."""

    category = ErrorCategory.NETWORK
    user_message = 'Failed to connect to mail server'


class MessagingError(MailError):

    """The mail server rejected a message or a change to it."""

    category = ErrorCategory.MESSAGING
    user_message = 'Failed to send mail'


class ResourceMissingError(MailError):

    """A file to attach or include is missing or unreadable."""

    category = ErrorCategory.FILE_SYSTEM
    user_message = 'File not found'


class PartialReadError(MailError):

    """A message could not be fetched or parsed completely."""

    category = ErrorCategory.PARSING
    user_message = 'Failed to read mail'


class ValidationError(MailError):

    """Invalid input."""

    category = ErrorCategory.VALIDATION
    user_message = 'Invalid input'


class MissingRecipientError(ValidationError):

    """A mail has no receive address."""

    user_message = 'No receive address given'
