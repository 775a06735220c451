"""
Drip SDK errors.

Every error raised by the SDK is a :class:`DripError` carrying a message,
an HTTP status code (0 when no response was received) and an optional
machine-readable code. Catch the specific subclasses first and fall back to
the base triad otherwise.
"""

from __future__ import annotations

from typing import Any


class DripError(Exception):
    """Base exception for all Drip SDK errors."""

    default_code: str | None = None

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code or self.default_code

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"status_code={self.status_code}, code={self.code!r})"
        )


class DripConfigurationError(DripError):
    """Raised at construction when the client cannot be configured."""

    default_code = "NO_API_KEY"


class DripNetworkError(DripError):
    """No response was obtained from the API."""

    default_code = "NETWORK_ERROR"

    def __init__(
        self,
        message: str = "Network error",
        original_error: Exception | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message, status_code=0, code=code)
        self.original_error = original_error


class DripTimeoutError(DripNetworkError):
    """The request exceeded the configured timeout."""

    default_code = "TIMEOUT"

    def __init__(
        self,
        message: str = "Request timed out",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error=original_error)


class DripAPIError(DripError):
    """The API answered with an error status or an unreadable body."""


class DripAuthenticationError(DripAPIError):
    """401 Unauthorized."""

    default_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Invalid or missing API key", code: str | None = None) -> None:
        super().__init__(message, status_code=401, code=code)


class DripNotFoundError(DripAPIError):
    """404 Not Found."""

    default_code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found", code: str | None = None) -> None:
        super().__init__(message, status_code=404, code=code)


class DripRateLimitError(DripAPIError):
    """429 Too Many Requests."""

    default_code = "RATE_LIMITED"

    def __init__(self, message: str = "Rate limit exceeded", code: str | None = None) -> None:
        super().__init__(message, status_code=429, code=code)


def _body_str(body: Any, key: str) -> str:
    if isinstance(body, dict):
        value = body.get(key)
        if isinstance(value, str):
            return value
    return ""


def create_api_error_from_response(status_code: int, body: Any = None) -> DripAPIError:
    """
    Map an error response to a typed error.

    Args:
        status_code: HTTP status of the response.
        body: Parsed JSON body, or None when the body was not JSON.

    Returns:
        The matching DripAPIError subclass instance.
    """
    message = (
        _body_str(body, "message")
        or _body_str(body, "error")
        or f"Request failed with status {status_code}"
    )
    code = _body_str(body, "code") or None

    if status_code == 401:
        return DripAuthenticationError(message, code=code)
    if status_code == 404:
        return DripNotFoundError(message, code=code)
    if status_code == 429:
        return DripRateLimitError(message, code=code)
    return DripAPIError(message, status_code=status_code, code=code)
