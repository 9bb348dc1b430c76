"""Type definitions for the LicenseChain SDK."""

from dataclasses import dataclass, field, asdict
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional


DEFAULT_BASE_URL = "https://api.licensechain.app"


@dataclass
class LicenseChainConfig:
    """Client configuration."""
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0
    retry_attempts: int = 3
    retry_delay: float = 1.0


@dataclass(frozen=True)
class WebhookEvent:
    """Normalized webhook event from LicenseChain."""
    id: str
    type: str
    created_at: Optional[Any] = None
    data: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # frozen dataclass: bypass __setattr__ to freeze the payload too
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "createdAt": self.created_at,
            "data": dict(self.data),
        }


@dataclass
class ValidationResult:
    """Result of a license validation call."""
    valid: bool
    license: Optional[Dict[str, Any]] = None
    user: Optional[Dict[str, Any]] = None
    app: Optional[Dict[str, Any]] = None
    expires_at: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ValidationResult":
        return cls(
            valid=bool(data.get("valid", False)),
            license=data.get("license"),
            user=data.get("user"),
            app=data.get("app"),
            expires_at=data.get("expiresAt", data.get("expires_at")),
            metadata=data.get("metadata"),
            error=data.get("error")
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LicenseValidationRules:
    """Extra checks applied on top of a successful validation."""
    max_usage: Optional[int] = None
    allowed_features: Optional[List[str]] = None
    required_features: Optional[List[str]] = None
    allowed_domains: Optional[List[str]] = None
    allowed_ips: Optional[List[str]] = None


@dataclass
class LicenseValidationContext:
    """License key plus caller supplied context."""
    license_key: str
    app_id: Optional[str] = None
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ListOptions:
    """Pagination and filtering for list endpoints."""
    page: int = 1
    limit: int = 20
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None
    filter: Dict[str, Any] = field(default_factory=dict)

    def to_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"page": self.page, "limit": self.limit}
        if self.sort_by:
            params["sortBy"] = self.sort_by
        if self.sort_order:
            params["sortOrder"] = self.sort_order
        params.update(self.filter)
        return params


@dataclass
class PaginatedResponse:
    """One page of a list endpoint."""
    data: List[Dict[str, Any]]
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PaginatedResponse":
        return cls(
            data=list(data.get("data") or []),
            page=int(data.get("page") or 1),
            limit=int(data.get("limit") or 0),
            total=int(data.get("total") or 0),
            total_pages=int(data.get("totalPages") or 0)
        )

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1
