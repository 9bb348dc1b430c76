"""LicenseChain REST API client."""

import asyncio
import logging
from dataclasses import asdict, replace
from typing import Any, Dict, List, Mapping, Optional

import httpx

from .exceptions import (
    ConfigurationError,
    LicenseChainError,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    error_from_response,
    is_retryable_error,
)
from .types import LicenseChainConfig, ListOptions, PaginatedResponse, ValidationResult
from .utils.retry import retry_delay as backoff_delay

__version__ = "1.0.0"

USER_AGENT = f"LicenseChain-Python-SDK/{__version__}"


def _compact(**values: Any) -> Dict[str, Any]:
    """Drop keys whose value is None."""
    return {key: value for key, value in values.items() if value is not None}


def _expect_object(data: Any, path: str) -> Mapping[str, Any]:
    """Empty bodies become {}; anything else that is not a JSON object is an error."""
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise LicenseChainError(
            f"Unexpected response from {path}: expected an object, got {type(data).__name__}",
            "INVALID_RESPONSE"
        )
    return data


class LicenseChainClient:
    """
    Async client for the LicenseChain API.

    Example:
        >>> async with LicenseChainClient(api_key="lc_...") as client:
        ...     result = await client.validate_license("XXXX-XXXX-XXXX")
        ...     print(result.valid)
    """

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retry_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize LicenseChainClient.

        Args:
            api_key: LicenseChain API key
            base_url: API base URL (default: https://api.licensechain.app)
            timeout: Request timeout in seconds (default: 30.0)
            retry_attempts: Retries for transient failures (default: 3)
            retry_delay: Base backoff delay in seconds (default: 1.0)
            transport: Custom httpx transport (mainly for tests)
            logger: Custom logger instance
        """
        if not api_key:
            raise ConfigurationError("API key is required")

        self.config = LicenseChainConfig(
            api_key=api_key,
            **_compact(
                base_url=base_url,
                timeout=timeout,
                retry_attempts=retry_attempts,
                retry_delay=retry_delay
            )
        )
        self.logger = logger or logging.getLogger(__name__)
        self._http = httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            headers=self._default_headers(),
            transport=transport
        )

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def __aenter__(self) -> "LicenseChainClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._http.aclose()

    # Configuration

    def update_config(self, **changes: Any) -> None:
        """Update api_key, base_url, timeout, retry_attempts or retry_delay."""
        unknown = set(changes) - set(asdict(self.config))
        if unknown:
            raise ConfigurationError(f"Unknown config option(s): {', '.join(sorted(unknown))}")
        if "api_key" in changes and not changes["api_key"]:
            raise ConfigurationError("API key is required")
        unset = sorted(key for key, value in changes.items() if value is None)
        if unset:
            raise ConfigurationError(f"Config option(s) cannot be None: {', '.join(unset)}")

        self.config = replace(self.config, **changes)

        if "api_key" in changes:
            self._http.headers["Authorization"] = f"Bearer {self.config.api_key}"
        if "base_url" in changes:
            self._http.base_url = self.config.base_url
        if "timeout" in changes:
            self._http.timeout = httpx.Timeout(self.config.timeout)

    def get_config(self) -> LicenseChainConfig:
        return replace(self.config)

    # HTTP

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        """
        Send a request, retrying transient failures with exponential backoff.

        Returns:
            Decoded JSON body, or None for empty responses

        Raises:
            LicenseChainError: classified by status code (see error_from_response)
        """
        attempt = 0
        while True:
            try:
                return await self._send(method, path, json, params, headers)
            except LicenseChainError as e:
                if not is_retryable_error(e) or attempt >= self.config.retry_attempts:
                    if is_retryable_error(e):
                        self.logger.error(f"{method} {path} failed after {attempt + 1} attempt(s): {e}")
                    raise

                attempt += 1
                retry_after = e.retry_after if isinstance(e, RateLimitError) else None
                delay = backoff_delay(attempt, self.config.retry_delay, retry_after)
                self.logger.warning(
                    f"{method} {path} failed ({e}), retrying in {delay:.1f}s "
                    f"(attempt {attempt}/{self.config.retry_attempts})"
                )
                await asyncio.sleep(delay)

    async def _send(
        self,
        method: str,
        path: str,
        json: Any,
        params: Optional[Dict[str, Any]],
        headers: Optional[Dict[str, str]]
    ) -> Any:
        try:
            response = await self._http.request(
                method,
                path,
                json=json,
                params=params,
                headers=headers
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError("Request timeout", "TIMEOUT", details={"message": str(e)}) from e
        except httpx.TransportError as e:
            raise NetworkError("Network error", "NETWORK_ERROR", details={"message": str(e)}) from e

        if response.is_error:
            raise self._error_from(response)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise LicenseChainError(
                "Invalid JSON response",
                "INVALID_RESPONSE",
                response.status_code,
                {"body": response.text[:200]}
            ) from e

    @staticmethod
    def _error_from(response: httpx.Response) -> LicenseChainError:
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = {}

        message = body.get("error") or body.get("message") or response.reason_phrase or "Request failed"
        return error_from_response(
            response.status_code,
            message,
            body.get("code"),
            body.get("details"),
            response.headers
        )

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None, **kwargs: Any) -> Any:
        return await self.request("GET", path, params=params, **kwargs)

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", path, json=json, **kwargs)

    async def patch(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, json=json, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def _list(self, path: str, options: Optional[ListOptions], **filters: Any) -> PaginatedResponse:
        params = (options or ListOptions()).to_params()
        params.update(_compact(**filters))
        data = await self.get(path, params=params)
        return PaginatedResponse.from_dict(_expect_object(data, path))

    # Authentication

    async def register_user(
        self,
        email: str,
        password: str,
        name: Optional[str] = None,
        company: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self.post(
            "/auth/register",
            _compact(email=email, password=password, name=name, company=company)
        )

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """Returns {"user": ..., "token": ..., "refreshToken": ...}."""
        return await self.post("/auth/login", {"email": email, "password": password})

    async def logout(self) -> None:
        await self.post("/auth/logout")

    async def refresh_token(self, refresh_token: str) -> Dict[str, Any]:
        return await self.post("/auth/refresh", {"refreshToken": refresh_token})

    async def get_user_profile(self) -> Dict[str, Any]:
        return await self.get("/auth/me")

    async def update_user_profile(self, **attributes: Any) -> Dict[str, Any]:
        return await self.patch("/auth/me", attributes)

    async def change_password(self, current_password: str, new_password: str) -> None:
        await self.patch(
            "/auth/password",
            {"currentPassword": current_password, "newPassword": new_password}
        )

    async def request_password_reset(self, email: str) -> None:
        await self.post("/auth/forgot-password", {"email": email})

    async def reset_password(self, token: str, new_password: str) -> None:
        await self.post("/auth/reset-password", {"token": token, "newPassword": new_password})

    # Applications

    async def create_application(
        self,
        name: str,
        description: Optional[str] = None,
        webhook_url: Optional[str] = None,
        allowed_origins: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        return await self.post(
            "/apps",
            _compact(
                name=name,
                description=description,
                webhookUrl=webhook_url,
                allowedOrigins=allowed_origins
            )
        )

    async def list_applications(
        self,
        options: Optional[ListOptions] = None,
        status: Optional[str] = None
    ) -> PaginatedResponse:
        return await self._list("/apps", options, status=status)

    async def get_application(self, app_id: str) -> Dict[str, Any]:
        return await self.get(f"/apps/{app_id}")

    async def update_application(
        self,
        app_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        webhook_url: Optional[str] = None,
        allowed_origins: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        return await self.patch(
            f"/apps/{app_id}",
            _compact(
                name=name,
                description=description,
                webhookUrl=webhook_url,
                allowedOrigins=allowed_origins
            )
        )

    async def delete_application(self, app_id: str) -> None:
        await self.delete(f"/apps/{app_id}")

    async def regenerate_api_key(self, app_id: str) -> Dict[str, Any]:
        return await self.post(f"/apps/{app_id}/regenerate-key")

    # Licenses

    async def create_license(
        self,
        app_id: str,
        user_email: str,
        user_name: Optional[str] = None,
        expires_at: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        features: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        return await self.post(
            "/licenses",
            _compact(
                appId=app_id,
                userEmail=user_email,
                userName=user_name,
                expiresAt=expires_at,
                metadata=metadata,
                features=features
            )
        )

    async def list_licenses(
        self,
        options: Optional[ListOptions] = None,
        app_id: Optional[str] = None,
        status: Optional[str] = None,
        user_id: Optional[str] = None,
        user_email: Optional[str] = None
    ) -> PaginatedResponse:
        return await self._list(
            "/licenses",
            options,
            appId=app_id,
            status=status,
            userId=user_id,
            userEmail=user_email
        )

    async def get_license(self, license_id: str) -> Dict[str, Any]:
        return await self.get(f"/licenses/{license_id}")

    async def update_license(
        self,
        license_id: str,
        status: Optional[str] = None,
        expires_at: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        features: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        return await self.patch(
            f"/licenses/{license_id}",
            _compact(status=status, expiresAt=expires_at, metadata=metadata, features=features)
        )

    async def delete_license(self, license_id: str) -> None:
        await self.delete(f"/licenses/{license_id}")

    async def validate_license(self, license_key: str, app_id: Optional[str] = None) -> ValidationResult:
        data = await self.post(
            "/licenses/validate",
            _compact(licenseKey=license_key, appId=app_id)
        )
        return ValidationResult.from_dict(_expect_object(data, "/licenses/validate"))

    async def revoke_license(self, license_id: str, reason: Optional[str] = None) -> None:
        await self.patch(f"/licenses/{license_id}/revoke", _compact(reason=reason))

    async def activate_license(self, license_id: str) -> None:
        await self.patch(f"/licenses/{license_id}/activate")

    async def extend_license(self, license_id: str, expires_at: str) -> None:
        await self.patch(f"/licenses/{license_id}/extend", {"expiresAt": expires_at})

    # Webhooks

    async def create_webhook(
        self,
        app_id: str,
        url: str,
        events: List[str],
        secret: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self.post(
            "/webhooks",
            _compact(appId=app_id, url=url, events=events, secret=secret)
        )

    async def list_webhooks(
        self,
        options: Optional[ListOptions] = None,
        app_id: Optional[str] = None,
        status: Optional[str] = None
    ) -> PaginatedResponse:
        return await self._list("/webhooks", options, appId=app_id, status=status)

    async def get_webhook(self, webhook_id: str) -> Dict[str, Any]:
        return await self.get(f"/webhooks/{webhook_id}")

    async def update_webhook(
        self,
        webhook_id: str,
        url: Optional[str] = None,
        events: Optional[List[str]] = None,
        secret: Optional[str] = None,
        status: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self.patch(
            f"/webhooks/{webhook_id}",
            _compact(url=url, events=events, secret=secret, status=status)
        )

    async def delete_webhook(self, webhook_id: str) -> None:
        await self.delete(f"/webhooks/{webhook_id}")

    async def test_webhook(self, webhook_id: str) -> None:
        await self.post(f"/webhooks/{webhook_id}/test")

    # Analytics

    async def get_analytics(
        self,
        app_id: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        metric: Optional[str] = None,
        period: Optional[str] = None
    ) -> Dict[str, Any]:
        params = _compact(
            appId=app_id,
            startDate=start_date,
            endDate=end_date,
            metric=metric,
            period=period
        )
        return await self.get("/analytics", params=params)

    async def get_license_analytics(self, license_id: str) -> Dict[str, Any]:
        return await self.get(f"/licenses/{license_id}/analytics")

    async def get_usage_stats(
        self,
        app_id: Optional[str] = None,
        period: str = "30d",
        granularity: Optional[str] = None
    ) -> Dict[str, Any]:
        params = _compact(period=period, appId=app_id, granularity=granularity)
        return await self.get("/analytics/usage", params=params)

    # System status

    async def get_system_status(self) -> Dict[str, Any]:
        return await self.get("/status")

    async def get_health_check(self) -> Dict[str, Any]:
        return await self.get("/health")
