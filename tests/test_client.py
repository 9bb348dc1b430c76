import json

import httpx
import pytest

from licensechain import (
    AuthenticationError,
    ConfigurationError,
    LicenseChainClient,
    LicenseChainError,
    ListOptions,
    NetworkError,
    NotFoundError,
    RateLimitError,
    RequestTimeoutError,
    ServerError,
    ValidationError,
)


class Recorder:
    """Mock transport that replays queued responses and records requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        # fresh copy so a queued response can be replayed
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def body(self, index=-1):
        content = self.requests[index].content
        return json.loads(content) if content else None


def make_client(recorder, **kwargs):
    kwargs.setdefault("retry_delay", 0)
    return LicenseChainClient(
        api_key="lc_test",
        base_url="https://api.test",
        transport=httpx.MockTransport(recorder),
        **kwargs
    )


def test_api_key_required():
    with pytest.raises(ConfigurationError):
        LicenseChainClient(api_key="")


def test_default_config():
    client = LicenseChainClient(api_key="lc_test")
    config = client.get_config()
    assert config.base_url == "https://api.licensechain.app"
    assert config.timeout == 30.0
    assert config.retry_attempts == 3
    assert config.retry_delay == 1.0


@pytest.mark.asyncio
async def test_default_headers():
    recorder = Recorder(httpx.Response(200, json={"status": "ok"}))
    async with make_client(recorder) as client:
        assert await client.get_health_check() == {"status": "ok"}

    request = recorder.last
    assert request.url == "https://api.test/health"
    assert request.headers["authorization"] == "Bearer lc_test"
    assert request.headers["user-agent"].startswith("LicenseChain-Python-SDK/")
    assert request.headers["accept"] == "application/json"


@pytest.mark.asyncio
async def test_validate_license():
    recorder = Recorder(httpx.Response(200, json={
        "valid": True,
        "license": {"id": "lic_1", "features": ["export"]},
        "expiresAt": "2030-01-01T00:00:00Z",
    }))
    async with make_client(recorder) as client:
        result = await client.validate_license("KEY-1", app_id="app_1")

    assert recorder.last.method == "POST"
    assert recorder.last.url.path == "/licenses/validate"
    assert recorder.body() == {"licenseKey": "KEY-1", "appId": "app_1"}
    assert result.valid is True
    assert result.license["features"] == ["export"]
    assert result.expires_at == "2030-01-01T00:00:00Z"


@pytest.mark.asyncio
async def test_create_license_sends_camel_case_and_skips_none():
    recorder = Recorder(httpx.Response(201, json={"id": "lic_1"}))
    async with make_client(recorder) as client:
        await client.create_license("app_1", "a@b.c", features=["pro"])

    assert recorder.body() == {"appId": "app_1", "userEmail": "a@b.c", "features": ["pro"]}


@pytest.mark.asyncio
async def test_list_licenses_params():
    recorder = Recorder(httpx.Response(200, json={
        "data": [{"id": "lic_1"}], "page": 2, "limit": 10, "total": 25, "totalPages": 3,
    }))
    async with make_client(recorder) as client:
        page = await client.list_licenses(
            ListOptions(page=2, limit=10, sort_by="createdAt", sort_order="desc"),
            status="active"
        )

    params = recorder.last.url.params
    assert params["page"] == "2"
    assert params["limit"] == "10"
    assert params["sortBy"] == "createdAt"
    assert params["sortOrder"] == "desc"
    assert params["status"] == "active"
    assert "appId" not in params
    assert page.data == [{"id": "lic_1"}]
    assert page.total_pages == 3
    assert page.has_next_page and page.has_previous_page


@pytest.mark.asyncio
async def test_list_defaults():
    recorder = Recorder(httpx.Response(200, json={"data": [], "page": 1, "limit": 20, "total": 0, "totalPages": 0}))
    async with make_client(recorder) as client:
        page = await client.list_applications()

    assert recorder.last.url.params["page"] == "1"
    assert recorder.last.url.params["limit"] == "20"
    assert not page.has_next_page


@pytest.mark.asyncio
async def test_empty_response_returns_none():
    recorder = Recorder(httpx.Response(204))
    async with make_client(recorder) as client:
        assert await client.delete_license("lic_1") is None

    assert recorder.last.method == "DELETE"
    assert recorder.last.url.path == "/licenses/lic_1"


@pytest.mark.asyncio
async def test_license_actions_paths():
    recorder = Recorder(httpx.Response(204))
    async with make_client(recorder) as client:
        await client.revoke_license("lic_1", reason="fraud")
        await client.activate_license("lic_1")
        await client.extend_license("lic_1", "2031-01-01")

    assert [r.url.path for r in recorder.requests] == [
        "/licenses/lic_1/revoke",
        "/licenses/lic_1/activate",
        "/licenses/lic_1/extend",
    ]
    assert all(r.method == "PATCH" for r in recorder.requests)
    assert recorder.body(0) == {"reason": "fraud"}
    assert recorder.body(2) == {"expiresAt": "2031-01-01"}


@pytest.mark.asyncio
async def test_usage_stats_default_period():
    recorder = Recorder(httpx.Response(200, json={}))
    async with make_client(recorder) as client:
        await client.get_usage_stats(app_id="app_1")

    assert recorder.last.url.path == "/analytics/usage"
    assert recorder.last.url.params["period"] == "30d"
    assert recorder.last.url.params["appId"] == "app_1"


@pytest.mark.asyncio
@pytest.mark.parametrize("status, error_class", [
    (400, ValidationError),
    (401, AuthenticationError),
    (403, AuthenticationError),
    (404, NotFoundError),
    (422, ValidationError),
])
async def test_client_errors_are_not_retried(status, error_class):
    recorder = Recorder(httpx.Response(status, json={"error": "nope", "code": "E_NOPE"}))
    async with make_client(recorder) as client:
        with pytest.raises(error_class) as exc_info:
            await client.get_license("lic_1")

    assert len(recorder.requests) == 1
    assert exc_info.value.message == "nope"
    assert exc_info.value.code == "E_NOPE"
    assert exc_info.value.status_code == status


@pytest.mark.asyncio
async def test_server_error_retried_then_succeeds():
    recorder = Recorder(
        httpx.Response(503, json={"error": "unavailable"}),
        httpx.Response(502),
        httpx.Response(200, json={"id": "lic_1"}),
    )
    async with make_client(recorder) as client:
        assert await client.get_license("lic_1") == {"id": "lic_1"}

    assert len(recorder.requests) == 3


@pytest.mark.asyncio
async def test_retries_are_bounded():
    recorder = Recorder(httpx.Response(500, json={"error": "boom"}))
    async with make_client(recorder, retry_attempts=2) as client:
        with pytest.raises(ServerError, match="boom"):
            await client.get_license("lic_1")

    assert len(recorder.requests) == 3


@pytest.mark.asyncio
async def test_rate_limit_error_carries_headers():
    recorder = Recorder(httpx.Response(
        429,
        json={"error": "slow down"},
        headers={
            "Retry-After": "0",
            "X-RateLimit-Limit": "100",
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": "1700000000",
        },
    ))
    async with make_client(recorder, retry_attempts=1) as client:
        with pytest.raises(RateLimitError) as exc_info:
            await client.get_analytics()

    error = exc_info.value
    assert len(recorder.requests) == 2
    assert error.retry_after == 0
    assert error.limit == 100
    assert error.remaining == 0
    assert error.reset == 1700000000


@pytest.mark.asyncio
async def test_network_error_is_retried_and_classified():
    recorder = Recorder(httpx.ConnectError("connection refused"))
    async with make_client(recorder, retry_attempts=1) as client:
        with pytest.raises(NetworkError) as exc_info:
            await client.get_system_status()

    assert len(recorder.requests) == 2
    assert exc_info.value.code == "NETWORK_ERROR"
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
async def test_timeout_is_classified():
    recorder = Recorder(
        httpx.ReadTimeout("too slow"),
        httpx.Response(200, json={"status": "ok"}),
    )
    async with make_client(recorder) as client:
        assert await client.get_health_check() == {"status": "ok"}

    recorder = Recorder(httpx.Response(408))
    async with make_client(recorder, retry_attempts=0) as client:
        with pytest.raises(RequestTimeoutError):
            await client.get_health_check()


@pytest.mark.asyncio
async def test_invalid_json_response():
    recorder = Recorder(httpx.Response(200, content=b"<html>"))
    async with make_client(recorder) as client:
        with pytest.raises(LicenseChainError, match="Invalid JSON response"):
            await client.get_health_check()


@pytest.mark.asyncio
async def test_update_config():
    recorder = Recorder(httpx.Response(200, json={}))
    async with make_client(recorder) as client:
        client.update_config(api_key="lc_new", base_url="https://other.test", retry_attempts=5)
        await client.get_user_profile()

        assert client.get_config().retry_attempts == 5
        with pytest.raises(ConfigurationError):
            client.update_config(colour="blue")
        with pytest.raises(ConfigurationError):
            client.update_config(api_key="")

    assert recorder.last.url == "https://other.test/auth/me"
    assert recorder.last.headers["authorization"] == "Bearer lc_new"


@pytest.mark.asyncio
async def test_auth_endpoints():
    recorder = Recorder(httpx.Response(200, json={"token": "t", "refreshToken": "r"}))
    async with make_client(recorder) as client:
        await client.login("a@b.c", "pw")
        await client.refresh_token("r")
        await client.change_password("old", "new")

    assert recorder.body(0) == {"email": "a@b.c", "password": "pw"}
    assert recorder.body(1) == {"refreshToken": "r"}
    assert recorder.requests[2].method == "PATCH"
    assert recorder.body(2) == {"currentPassword": "old", "newPassword": "new"}


@pytest.mark.asyncio
@pytest.mark.parametrize("option", ["retry_attempts", "timeout", "retry_delay", "base_url"])
async def test_update_config_rejects_none(option):
    recorder = Recorder(httpx.Response(200, json={"status": "ok"}))
    async with make_client(recorder) as client:
        with pytest.raises(ConfigurationError, match=option):
            client.update_config(**{option: None})

        assert await client.get_health_check() == {"status": "ok"}


@pytest.mark.asyncio
async def test_list_with_null_fields():
    recorder = Recorder(httpx.Response(200, json={"data": None, "page": None, "total": None}))
    async with make_client(recorder) as client:
        page = await client.list_webhooks()

    assert page.data == []
    assert page.page == 1
    assert page.total == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [[{"id": "lic_1"}], "ok", 7])
async def test_non_object_bodies_raise_sdk_errors(body):
    recorder = Recorder(httpx.Response(200, json=body))
    async with make_client(recorder) as client:
        with pytest.raises(LicenseChainError, match="expected an object"):
            await client.validate_license("KEY-1")
        with pytest.raises(LicenseChainError, match="expected an object"):
            await client.list_licenses()


@pytest.mark.asyncio
async def test_empty_validation_body_is_invalid_result():
    recorder = Recorder(httpx.Response(204))
    async with make_client(recorder) as client:
        result = await client.validate_license("KEY-1")

    assert result.valid is False
