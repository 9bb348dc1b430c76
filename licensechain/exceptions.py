"""Exception hierarchy for the LicenseChain SDK."""

from typing import Any, Dict, Mapping, Optional


class LicenseChainError(Exception):
    """Base class for every error raised by the SDK."""

    default_message = "LicenseChain error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message or self.default_message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"code={self.code!r}, status_code={self.status_code!r})"
        )


class AuthenticationError(LicenseChainError):
    default_message = "Authentication failed"


class ValidationError(LicenseChainError):
    default_message = "Validation failed"


class NotFoundError(LicenseChainError):
    default_message = "Resource not found"


class RateLimitError(LicenseChainError):
    """Raised on HTTP 429; carries the server's rate limit headers."""

    default_message = "Rate limit exceeded"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        retry_after: Optional[float] = None,
        limit: Optional[int] = None,
        remaining: Optional[int] = None,
        reset: Optional[int] = None
    ):
        super().__init__(message, code, status_code, details)
        self.retry_after = retry_after
        self.limit = limit
        self.remaining = remaining
        self.reset = reset


class ServerError(LicenseChainError):
    default_message = "Server error"


class NetworkError(LicenseChainError):
    default_message = "Network error"


class RequestTimeoutError(LicenseChainError):
    default_message = "Request timeout"


class WebhookVerificationError(LicenseChainError):
    default_message = "Webhook verification failed"


class InvalidPayloadError(WebhookVerificationError):
    default_message = "Invalid JSON payload"


class UnsupportedAlgorithmError(WebhookVerificationError):
    default_message = "Unsupported algorithm"


class LicenseValidationError(LicenseChainError):
    default_message = "License validation failed"


class ConfigurationError(LicenseChainError):
    default_message = "Configuration error"


def _header_number(headers: Mapping[str, str], name: str, cast=int):
    value = headers.get(name)
    if value is None:
        return None
    try:
        return cast(value)
    except (TypeError, ValueError):
        return None


def error_from_response(
    status_code: int,
    message: str,
    code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None
) -> LicenseChainError:
    """
    Map an HTTP error status to the matching exception.

    Args:
        status_code: HTTP status of the response
        message: Error message from the response body
        code: Machine readable error code from the response body
        details: Extra error details from the response body
        headers: Response headers (used for rate limit information)

    Returns:
        Exception instance (not raised)
    """
    if status_code in (401, 403):
        return AuthenticationError(message, code, status_code, details)
    if status_code == 404:
        return NotFoundError(message, code, status_code, details)
    if status_code == 408:
        return RequestTimeoutError(message, code, status_code, details)
    if status_code == 429:
        headers = headers or {}
        return RateLimitError(
            message,
            code,
            status_code,
            details,
            retry_after=_header_number(headers, "retry-after", float),
            limit=_header_number(headers, "x-ratelimit-limit"),
            remaining=_header_number(headers, "x-ratelimit-remaining"),
            reset=_header_number(headers, "x-ratelimit-reset")
        )
    if 400 <= status_code < 500:
        return ValidationError(message, code, status_code, details)
    if status_code >= 500:
        return ServerError(message, code, status_code, details)
    return LicenseChainError(message, code, status_code, details)


def is_retryable_error(error: BaseException) -> bool:
    """Network failures, timeouts, rate limits and 5xx responses are retried."""
    return isinstance(
        error,
        (NetworkError, RequestTimeoutError, RateLimitError, ServerError)
    )
