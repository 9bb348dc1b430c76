"""LicenseChain SDK for Python."""

from .client import LicenseChainClient, __version__
from .validator import LicenseValidator, apply_rules
from .webhooks import WebhookHandler, WebhookVerifier
from .types import (
    LicenseChainConfig,
    LicenseValidationContext,
    LicenseValidationRules,
    ListOptions,
    PaginatedResponse,
    ValidationResult,
    WebhookEvent
)
from .exceptions import (
    LicenseChainError,
    AuthenticationError,
    ValidationError,
    NotFoundError,
    RateLimitError,
    ServerError,
    NetworkError,
    RequestTimeoutError,
    WebhookVerificationError,
    InvalidPayloadError,
    UnsupportedAlgorithmError,
    LicenseValidationError,
    ConfigurationError
)

__all__ = [
    "LicenseChainClient",
    "LicenseValidator",
    "apply_rules",
    "WebhookHandler",
    "WebhookVerifier",
    "LicenseChainConfig",
    "LicenseValidationContext",
    "LicenseValidationRules",
    "ListOptions",
    "PaginatedResponse",
    "ValidationResult",
    "WebhookEvent",
    "LicenseChainError",
    "AuthenticationError",
    "ValidationError",
    "NotFoundError",
    "RateLimitError",
    "ServerError",
    "NetworkError",
    "RequestTimeoutError",
    "WebhookVerificationError",
    "InvalidPayloadError",
    "UnsupportedAlgorithmError",
    "LicenseValidationError",
    "ConfigurationError"
]
