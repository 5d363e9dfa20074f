"""Custom exception classes for the application."""

from typing import Optional


class PriceLensException(Exception):
    """Base exception for all PriceLens errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class AdapterError(PriceLensException):
    """Raised when a store adapter or its provider client fails.

    Carries the failure class (``error_type``) and whether the retry
    layer may try the call again.
    """

    error_type: str = "unknown"
    retryable: bool = False

    def __init__(
        self,
        store_id: str,
        message: str,
        *,
        retryable: Optional[bool] = None,
        original: Optional[BaseException] = None,
    ):
        self.store_id = store_id
        self.original = original
        if retryable is not None:
            self.retryable = retryable
        super().__init__(f"[{store_id}] {message}")


class AuthError(AdapterError):
    """Missing or rejected credentials. Never retried."""

    error_type = "auth"
    retryable = False


class RateLimitError(AdapterError):
    """Provider throttling (HTTP 429)."""

    error_type = "rate_limit"
    retryable = True

    def __init__(self, store_id: str, message: str = "Rate limit exceeded", *, retry_after: Optional[float] = None, **kwargs):
        self.retry_after = retry_after
        super().__init__(store_id, message, **kwargs)


class NetworkError(AdapterError):
    """Timeout, connection failure or 5xx response."""

    error_type = "network"
    retryable = True


class ValidationError(AdapterError):
    """Malformed query or response shape. Never retried."""

    error_type = "validation"
    retryable = False


class UnknownError(AdapterError):
    """Anything outside the taxonomy. Retried once, then surfaced."""

    error_type = "unknown"
    retryable = True
