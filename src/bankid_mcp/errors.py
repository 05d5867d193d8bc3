"""
BankID client error taxonomy.

Every failure surfaced by the client is a BankIDError subclass:
  - ValidationError:   malformed local input, never reaches the network
  - TransportError:    no service-level response (timeout, TLS, DNS, refused)
  - ServiceError:      the service answered with an errorCode
  - InvalidStateError: caller logic error detected locally
  - ProtocolError:     2xx response that does not match the RP contract
"""

from __future__ import annotations


class BankIDError(Exception):
    """Base class for all BankID client errors."""


class ValidationError(BankIDError, ValueError):
    """Local input failed validation; no request was sent."""


class TransportError(BankIDError):
    """The exchange never produced a service-level response."""

    def __init__(self, message: str, *, operation: str | None = None):
        self.operation = operation
        super().__init__(message)


class ServiceError(BankIDError):
    """
    The BankID service rejected the request.

    Args:
        code: The service errorCode, untranslated (e.g. "alreadyInProgress")
        details: Free-text details from the service
        status_code: HTTP status of the response
    """

    def __init__(self, code: str, details: str = "", status_code: int | None = None):
        self.code = code
        self.details = details
        self.status_code = status_code
        super().__init__(f"{code}: {details}" if details else code)


class InvalidStateError(BankIDError):
    """The requested transition is not allowed for the order's state."""


class ProtocolError(BankIDError):
    """A successful response body did not match the expected contract."""
