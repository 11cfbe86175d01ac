import json

import httpx
import pytest

from auth0_cli.cli.importer.client import (
    ManagementAPIError,
    ManagementAuthError,
    ManagementClient,
    ManagementConflictError,
    ManagementNotFoundError,
)
from auth0_cli.cli.importer.settings import Auth0Settings


def make_settings(**kwargs) -> Auth0Settings:
    values = {"domain": "travel0.us.auth0.com", "access_token": "static-token"}
    values.update(kwargs)
    return Auth0Settings(**values)


def transport_for(handler, seen: list) -> httpx.MockTransport:
    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    return httpx.MockTransport(_handler)


# -----------------------------------------------------------------------------
# Settings
# -----------------------------------------------------------------------------


def test_settings_urls():
    s = make_settings()

    assert s.base_url == "https://travel0.us.auth0.com"
    assert s.api_url == "https://travel0.us.auth0.com/api/v2"
    assert s.token_url == "https://travel0.us.auth0.com/oauth/token"
    assert s.audience == "https://travel0.us.auth0.com/api/v2/"


def test_settings_keeps_explicit_scheme():
    assert make_settings(domain="http://localhost:8080/").base_url == "http://localhost:8080"


def test_settings_env_and_overrides(monkeypatch):
    monkeypatch.setenv("AUTH0_DOMAIN", "env.auth0.com")
    monkeypatch.setenv("AUTH0_CLIENT_ID", "env-id")
    monkeypatch.delenv("AUTH0_ACCESS_TOKEN", raising=False)

    s = Auth0Settings().with_overrides(client_secret="cli-secret")

    assert s.domain == "env.auth0.com"
    assert s.has_client_credentials
    assert not s.has_access_token
    # The import config only fills a missing domain
    assert s.with_default_domain("config.auth0.com").domain == "env.auth0.com"


def test_settings_default_domain_from_config(monkeypatch):
    monkeypatch.delenv("AUTH0_DOMAIN", raising=False)

    s = Auth0Settings().with_default_domain("config.auth0.com")

    assert s.domain == "config.auth0.com"


# -----------------------------------------------------------------------------
# Authentication
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_authenticate_client_credentials():
    seen = []

    def handler(request):
        return httpx.Response(200, json={"access_token": "m2m-token", "expires_in": 86400})

    settings = make_settings(access_token=None, client_id="id", client_secret="secret")
    async with ManagementClient(settings, transport=transport_for(handler, seen)) as client:
        await client.authenticate()
        headers = await client._headers()

    assert headers["Authorization"] == "Bearer m2m-token"
    assert str(seen[0].url) == "https://travel0.us.auth0.com/oauth/token"
    body = json.loads(seen[0].content)
    assert body == {
        "grant_type": "client_credentials",
        "client_id": "id",
        "client_secret": "secret",
        "audience": "https://travel0.us.auth0.com/api/v2/",
    }


@pytest.mark.asyncio
async def test_authenticate_rejected_credentials():
    def handler(request):
        return httpx.Response(401, json={"error": "access_denied"})

    settings = make_settings(access_token=None, client_id="id", client_secret="bad")
    async with ManagementClient(settings, transport=transport_for(handler, [])) as client:
        with pytest.raises(ManagementAuthError) as exc:
            await client.authenticate()

    assert exc.value.status_code == 401


@pytest.mark.asyncio
async def test_authenticate_static_token_makes_no_request():
    seen = []
    async with ManagementClient(
        make_settings(), transport=transport_for(lambda r: httpx.Response(500), seen)
    ) as client:
        await client.authenticate()
        headers = await client._headers()

    assert headers["Authorization"] == "Bearer static-token"
    assert seen == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"domain": None}, "No tenant domain"),
        ({"access_token": None, "client_id": None, "client_secret": None}, "No credentials"),
    ],
)
async def test_authenticate_missing_settings(monkeypatch, overrides, message):
    for name in ("AUTH0_DOMAIN", "AUTH0_CLIENT_ID", "AUTH0_CLIENT_SECRET", "AUTH0_ACCESS_TOKEN"):
        monkeypatch.delenv(name, raising=False)

    async with ManagementClient(make_settings(**overrides)) as client:
        with pytest.raises(ManagementAuthError, match=message):
            await client.authenticate()


# -----------------------------------------------------------------------------
# Collections
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_page_sends_pagination_and_reads_totals():
    seen = []

    def handler(request):
        return httpx.Response(
            200,
            json={"clients": [{"name": "a"}], "start": 0, "limit": 1, "total": 2},
        )

    async with ManagementClient(make_settings(), transport=transport_for(handler, seen)) as client:
        items, has_next = await client.list_page("/clients", "clients", 0, 1)

    assert items == [{"name": "a"}]
    assert has_next is True
    request = seen[0]
    assert request.url.path == "/api/v2/clients"
    assert request.url.params["page"] == "0"
    assert request.url.params["per_page"] == "1"
    assert request.url.params["include_totals"] == "true"
    assert request.headers["Authorization"] == "Bearer static-token"


@pytest.mark.asyncio
async def test_list_page_last_page():
    def handler(request):
        return httpx.Response(
            200, json={"roles": [{"name": "b"}], "start": 100, "limit": 100, "total": 101}
        )

    async with ManagementClient(make_settings(), transport=transport_for(handler, [])) as client:
        items, has_next = await client.list_page("/roles", "roles", 1, 100)

    assert items == [{"name": "b"}]
    assert has_next is False


@pytest.mark.asyncio
async def test_list_page_bare_list_response():
    def handler(request):
        return httpx.Response(200, json=[{"name": "a"}])

    async with ManagementClient(make_settings(), transport=transport_for(handler, [])) as client:
        items, has_next = await client.list_page("/roles", "roles", 0, 100)

    assert items == [{"name": "a"}]
    assert has_next is False


@pytest.mark.asyncio
async def test_create_update_delete_requests():
    seen = []

    def handler(request):
        if request.method == "POST":
            return httpx.Response(201, json={"id": "rol_1", "name": "admin"})
        if request.method == "PATCH":
            return httpx.Response(200, json={"id": "rol_1", "description": "d"})
        return httpx.Response(204)

    async with ManagementClient(make_settings(), transport=transport_for(handler, seen)) as client:
        created = await client.create("/roles", {"name": "admin"})
        updated = await client.update("/roles", "rol_1", {"description": "d"})
        deleted = await client.delete("/roles", "rol_1")

    assert created == {"id": "rol_1", "name": "admin"}
    assert updated["description"] == "d"
    assert deleted is None
    assert [(r.method, r.url.path) for r in seen] == [
        ("POST", "/api/v2/roles"),
        ("PATCH", "/api/v2/roles/rol_1"),
        ("DELETE", "/api/v2/roles/rol_1"),
    ]
    assert json.loads(seen[1].content) == {"description": "d"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, error_cls",
    [
        (401, ManagementAuthError),
        (403, ManagementAuthError),
        (404, ManagementNotFoundError),
        (409, ManagementConflictError),
        (400, ManagementAPIError),
        (429, ManagementAPIError),
    ],
)
async def test_error_status_mapping(status, error_cls):
    def handler(request):
        return httpx.Response(
            status, json={"statusCode": status, "error": "Err", "message": "went wrong"}
        )

    async with ManagementClient(make_settings(), transport=transport_for(handler, [])) as client:
        with pytest.raises(error_cls) as exc:
            await client.create("/roles", {"name": "admin"})

    assert exc.value.status_code == status
    assert exc.value.response["message"] == "went wrong"


@pytest.mark.asyncio
async def test_transport_errors_are_wrapped():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with ManagementClient(make_settings(), transport=transport_for(handler, [])) as client:
        with pytest.raises(ManagementAPIError, match="GET /clients failed"):
            await client.list_page("/clients", "clients", 0, 100)
