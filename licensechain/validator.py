"""License validation helpers built on top of LicenseChainClient."""

import asyncio
import logging
import math
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from .client import LicenseChainClient
from .exceptions import LicenseChainError
from .types import LicenseValidationContext, LicenseValidationRules, ValidationResult
from .utils.timestamps import parse_timestamp


def _failed(result: ValidationResult, error: str) -> ValidationResult:
    return replace(result, valid=False, error=error)


def apply_rules(result: ValidationResult, rules: Optional[LicenseValidationRules]) -> ValidationResult:
    """
    Apply custom rules to a successful validation.

    Rules are checked in order (usage, allowed features, required features,
    domain, IP); the first violation marks the result invalid.
    """
    if not result.valid or rules is None:
        return result

    license_data = result.license or {}
    features = license_data.get("features")
    metadata = license_data.get("metadata") or {}

    usage = license_data.get("usageCount")
    if rules.max_usage and usage and usage > rules.max_usage:
        return _failed(result, "Usage limit exceeded")

    if rules.allowed_features is not None and features:
        invalid = [f for f in features if f not in rules.allowed_features]
        if invalid:
            return _failed(result, f"Invalid features: {', '.join(invalid)}")

    if rules.required_features and features is not None:
        missing = [f for f in rules.required_features if f not in features]
        if missing:
            return _failed(result, f"Missing required features: {', '.join(missing)}")

    domain = metadata.get("domain")
    if rules.allowed_domains is not None and domain and domain not in rules.allowed_domains:
        return _failed(result, f"Domain not allowed: {domain}")

    ip_address = metadata.get("ipAddress")
    if rules.allowed_ips is not None and ip_address and ip_address not in rules.allowed_ips:
        return _failed(result, f"IP address not allowed: {ip_address}")

    return result


class LicenseValidator:
    """
    High level license checks.

    Every method reports API failures as an invalid result (or a neutral
    value such as None / False / []) instead of raising.

    Example:
        >>> validator = LicenseValidator(api_key="lc_...")
        >>> if await validator.has_feature(key, "export"):
        ...     enable_export()
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[LicenseChainClient] = None,
        logger: Optional[logging.Logger] = None,
        **client_options: Any
    ):
        self.logger = logger or logging.getLogger(__name__)
        self._client = client or LicenseChainClient(api_key, logger=logger, **client_options)

    @property
    def client(self) -> LicenseChainClient:
        return self._client

    def update_config(self, **changes: Any) -> None:
        self._client.update_config(**changes)

    async def validate_license(self, license_key: str, app_id: Optional[str] = None) -> ValidationResult:
        try:
            return await self._client.validate_license(license_key, app_id)
        except LicenseChainError as e:
            self.logger.warning(f"License validation failed: {e}")
            return ValidationResult(valid=False, error=str(e))

    async def is_valid(self, license_key: str, app_id: Optional[str] = None) -> bool:
        result = await self.validate_license(license_key, app_id)
        return result.valid

    async def get_license_info(self, license_key: str, app_id: Optional[str] = None) -> Optional[ValidationResult]:
        result = await self.validate_license(license_key, app_id)
        return result if result.valid else None

    async def is_expired(self, license_key: str, app_id: Optional[str] = None) -> bool:
        """Invalid or unknown licenses count as expired; no expiry date means never."""
        result = await self.validate_license(license_key, app_id)
        if not result.valid or not result.license:
            return True

        expires_at = result.license.get("expiresAt")
        if not expires_at:
            return False
        try:
            return parse_timestamp(expires_at) < datetime.now(timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            return True

    async def get_days_until_expiration(self, license_key: str, app_id: Optional[str] = None) -> Optional[int]:
        result = await self.validate_license(license_key, app_id)
        if not result.valid or not result.license:
            return None

        expires_at = result.license.get("expiresAt")
        if not expires_at:
            return None
        try:
            remaining = parse_timestamp(expires_at) - datetime.now(timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            return None
        return max(0, math.ceil(remaining.total_seconds() / 86400))

    async def validate_licenses(
        self,
        license_keys: Iterable[str],
        app_id: Optional[str] = None
    ) -> List[ValidationResult]:
        return list(await asyncio.gather(
            *(self.validate_license(key, app_id) for key in license_keys)
        ))

    async def validate_with_rules(
        self,
        license_key: str,
        rules: Optional[LicenseValidationRules],
        app_id: Optional[str] = None
    ) -> ValidationResult:
        result = await self.validate_license(license_key, app_id)
        return apply_rules(result, rules)

    async def has_feature(self, license_key: str, feature: str, app_id: Optional[str] = None) -> bool:
        features = await self.get_features(license_key, app_id)
        return feature in features

    async def get_usage_count(self, license_key: str, app_id: Optional[str] = None) -> Optional[int]:
        result = await self.validate_license(license_key, app_id)
        if not result.valid:
            return None
        return (result.license or {}).get("usageCount") or 0

    async def get_metadata(self, license_key: str, app_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        result = await self.validate_license(license_key, app_id)
        if not result.valid:
            return None
        return (result.license or {}).get("metadata") or {}

    async def get_features(self, license_key: str, app_id: Optional[str] = None) -> List[str]:
        result = await self.validate_license(license_key, app_id)
        if not result.valid:
            return []
        return list((result.license or {}).get("features") or [])

    async def get_user_info(self, license_key: str, app_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        result = await self.validate_license(license_key, app_id)
        if not result.valid:
            return None
        user = result.user or {}
        return {"email": user.get("email"), "name": user.get("name"), "id": user.get("id")}

    async def get_app_info(self, license_key: str, app_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        result = await self.validate_license(license_key, app_id)
        if not result.valid:
            return None
        app = result.app or {}
        return {"name": app.get("name"), "id": app.get("id")}

    async def validate_with_context(self, context: LicenseValidationContext) -> ValidationResult:
        """Validate the license named by a caller context."""
        return await self.validate_license(context.license_key, context.app_id)

    async def batch_validate_with_rules(self, licenses: Iterable[Dict[str, Any]]) -> List[ValidationResult]:
        """
        Validate many licenses concurrently.

        Args:
            licenses: Dicts with "license_key" and optional "app_id" / "rules"
        """
        return list(await asyncio.gather(*(
            self.validate_with_rules(item["license_key"], item.get("rules"), item.get("app_id"))
            for item in licenses
        )))
