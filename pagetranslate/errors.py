"""Error taxonomy shared by the translation client and the request scheduler.

Every failure surfaced to a caller is a ``TranslationError`` tagged with an
``ErrorKind``. The scheduler decides whether to retry purely from the
``retryable`` flag, so a client only has to raise the right subclass.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Classification attached to every translation failure."""

    MISSING_CREDENTIAL = "missing_credential"
    RATE_LIMITED = "rate_limited"
    TRANSPORT_ERROR = "transport_error"
    AUTHENTICATION_FAILED = "authentication_failed"
    MALFORMED_RESPONSE = "malformed_response"
    INVALID_REQUEST = "invalid_request"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class ConfigurationError(ValueError):
    """Raised when an option store holds an unusable value"""
    pass


class TranslationError(Exception):
    """Base exception for translation failures"""

    kind: ErrorKind = ErrorKind.UNKNOWN
    retryable: bool = False

    def __init__(self, message: str = "", *, status_code: Optional[int] = None):
        super().__init__(message or self.kind.value)
        self.status_code = status_code


class MissingCredential(TranslationError):
    """Raised when no API key is configured"""

    kind = ErrorKind.MISSING_CREDENTIAL


class AuthenticationFailed(TranslationError):
    """Raised when the API key is rejected"""

    kind = ErrorKind.AUTHENTICATION_FAILED


class RateLimited(TranslationError):
    """Raised when the provider throttles us (HTTP 429, quota exhausted)"""

    kind = ErrorKind.RATE_LIMITED
    retryable = True


class TransportError(TranslationError):
    """Raised on network failures before a usable response arrives"""

    kind = ErrorKind.TRANSPORT_ERROR
    retryable = True


class ServiceUnavailable(TransportError):
    """Raised when the provider answers HTTP 503"""
    pass


class MalformedResponse(TranslationError):
    """Raised when the response lacks the translated text"""

    kind = ErrorKind.MALFORMED_RESPONSE


class InvalidRequest(TranslationError):
    """Raised when the provider rejects the request itself"""

    kind = ErrorKind.INVALID_REQUEST


class Cancelled(TranslationError):
    """Raised for work abandoned after ``RequestScheduler.stop()``"""

    kind = ErrorKind.CANCELLED


class UnknownTranslationError(TranslationError):
    """Raised for failures we cannot classify; never retried"""

    kind = ErrorKind.UNKNOWN


# Kinds that make every later batch of the same submission fail as well.
FATAL_KINDS = frozenset({ErrorKind.MISSING_CREDENTIAL, ErrorKind.AUTHENTICATION_FAILED})


def is_retryable(exc: BaseException) -> bool:
    """Return True when ``exc`` is a transient translation failure."""
    return isinstance(exc, TranslationError) and exc.retryable


__all__ = [
    "AuthenticationFailed",
    "Cancelled",
    "ConfigurationError",
    "ErrorKind",
    "FATAL_KINDS",
    "InvalidRequest",
    "MalformedResponse",
    "MissingCredential",
    "RateLimited",
    "ServiceUnavailable",
    "TransportError",
    "TranslationError",
    "UnknownTranslationError",
    "is_retryable",
]
