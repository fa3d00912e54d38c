"""
Service layer exceptions.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of a single provider call failure."""

    AUTH = "auth"
    RATE_LIMIT = "rate-limit"
    SERVER = "server"
    INVALID_REQUEST = "invalid-request"
    NETWORK = "network"
    EMPTY_OUTPUT = "empty-output"


class MergeError(Exception):
    """Base exception for merge service errors."""

    category = "internal"

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details or message
        super().__init__(message)


class InputError(MergeError):
    """Missing or invalid elements; never dispatched."""

    category = "invalid-input"


class CallerRateLimitedError(MergeError):
    """Caller sent requests faster than the throttle window allows."""

    category = "rate-limited"

    def __init__(self, caller_id: str, retry_after: float):
        self.caller_id = caller_id
        self.retry_after = retry_after
        super().__init__(
            "Too many requests",
            f"Caller '{caller_id}' throttled, retry after {retry_after:.2f}s",
        )


class ProviderError(MergeError):
    """A classified failure of one provider call."""

    category = "provider"

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        provider: str | None = None,
        retry_after: float | None = None,
    ):
        self.kind = kind
        self.provider = provider
        self.retry_after = retry_after
        prefix = f"[{provider}] " if provider else ""
        super().__init__(f"{prefix}{kind.value}: {message}", message)


class ExhaustionError(MergeError):
    """No credential/model combination produced a result."""

    category = "backend-unavailable"

    def __init__(self, last_kind: ErrorKind | None, last_message: str | None):
        self.last_kind = last_kind
        self.last_message = last_message
        if last_kind is None:
            details = "No provider credential available"
        else:
            details = f"{last_kind.value}: {last_message}"
        super().__init__("All providers failed", details)
