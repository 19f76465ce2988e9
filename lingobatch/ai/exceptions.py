"""
Translation Backend Exceptions

This module contains the exception classes shared by the backend client,
the scheduler and the run driver.
Separated to avoid circular imports between client.py and the translation package.
"""

from typing import Optional


class TranslationError(Exception):
    """Translation service error with optional code and details."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class AuthenticationError(TranslationError):
    """Backend rejected the credential (401/403). Never retried."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, code="authentication_failed", details=details)


class RateLimitError(TranslationError):
    """Backend answered 429. Retried after an extended backoff."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, code="rate_limited", details=details)


class TransientNetworkError(TranslationError):
    """Timeout, connection failure or 5xx. Retried after the base backoff."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, code="network_error", details=details)


class MalformedResponseError(TranslationError):
    """Backend reply was empty or could not be parsed."""

    def __init__(self, message: str, raw_text: Optional[str] = None, details: dict = None):
        super().__init__(message, code="malformed_response", details=details)
        self.raw_text = raw_text


class RunAbortError(TranslationError):
    """
    Halts the remaining batches, files and languages of a run.

    ``reason`` is one of ``"error_budget"``, ``"retries_exhausted"`` or ``"cancelled"``.
    """

    def __init__(self, message: str, reason: str = "error_budget", details: dict = None):
        super().__init__(message, code="run_aborted", details=details)
        self.reason = reason


class ResourceFormatError(TranslationError):
    """A resource file could not be read in its declared format."""

    def __init__(self, message: str, path=None):
        super().__init__(message, code="resource_format", details={"path": str(path) if path else None})
        self.path = path


class ConfigError(TranslationError):
    """Run configuration is missing or invalid."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, code="config_invalid", details=details)


FATAL_ERRORS = (AuthenticationError, RunAbortError)
RETRYABLE_ERRORS = (RateLimitError, TransientNetworkError, MalformedResponseError)
