"""
Custom exceptions for SMS transaction extraction.
"""
from typing import Any, Dict, Optional


class SmsTransactionException(Exception):
    """Base exception for all SMS transaction reader errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize exception.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidInputError(SmsTransactionException):
    """Raised when the extractor receives input that is not a message sequence."""
    pass


class ParsingError(SmsTransactionException):
    """Raised when an inbox export file cannot be read."""
    pass


class DataNotFoundError(SmsTransactionException):
    """Raised when required data is not found."""
    pass


class ExportError(SmsTransactionException):
    """Raised when Excel export fails."""
    pass


class ConfigurationError(SmsTransactionException):
    """Raised when configuration is invalid."""
    pass


class StorageError(SmsTransactionException):
    """Raised when the transaction store cannot be read or written."""
    pass


class MessageSourceError(SmsTransactionException):
    """Raised when messages cannot be retrieved from the message source."""
    pass


class SourceUnavailableError(MessageSourceError):
    """Raised when the message source is not available on this device."""
    pass


class PermissionDeniedError(MessageSourceError):
    """Raised when the user refuses access to the message inbox."""
    pass
