"""Pytest configuration and fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from auth0_cli.cli.importer.client import ManagementAPIError
from auth0_cli.cli.importer.settings import Auth0Settings


_ID_FIELDS = {"/clients": "client_id", "/resource-servers": "id", "/roles": "id"}


class FakeManagementClient:
    """In-memory stand-in for ManagementClient.

    Holds one list of raw items per collection path and records every call in
    ``calls`` so tests can assert on order and payloads.
    """

    def __init__(self, store: dict[str, list[dict[str, Any]]] | None = None):
        self.settings = Auth0Settings(domain="travel0.us.auth0.com")
        self.store: dict[str, list[dict[str, Any]]] = {
            path: [dict(item) for item in items] for path, items in (store or {}).items()
        }
        self.calls: list[tuple[Any, ...]] = []
        self.failures: dict[tuple[str, str], ManagementAPIError] = {}
        self._next_id = 0

    def fail(self, operation: str, path: str, status_code: int = 400) -> None:
        """Make every ``operation`` call on ``path`` raise."""
        self.failures[(operation, path)] = ManagementAPIError(
            f"Unexpected response {status_code}: Bad Request", status_code=status_code
        )

    def _check(self, operation: str, path: str) -> None:
        error = self.failures.get((operation, path))
        if error is not None:
            raise error

    def _find(self, path: str, resource_id: str) -> dict[str, Any]:
        id_field = _ID_FIELDS[path]
        for item in self.store.get(path, []):
            if item.get(id_field) == resource_id:
                return item
        raise ManagementAPIError(f"Resource not found: {path}/{resource_id}", status_code=404)

    def items(self, path: str) -> list[dict[str, Any]]:
        return self.store.get(path, [])

    def mutations(self) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] in ("create", "update", "delete")]

    async def __aenter__(self) -> "FakeManagementClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    async def authenticate(self) -> None:
        self.calls.append(("authenticate",))

    async def list_page(
        self, path: str, key: str, page: int, per_page: int
    ) -> tuple[list[dict[str, Any]], bool]:
        self.calls.append(("list", path, page, per_page))
        self._check("list", path)
        items = self.store.get(path, [])
        start = page * per_page
        return [dict(i) for i in items[start : start + per_page]], len(items) > start + per_page

    async def create(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("create", path, payload))
        self._check("create", path)
        self._next_id += 1
        item = dict(payload)
        item[_ID_FIELDS[path]] = f"new-{self._next_id}"
        self.store.setdefault(path, []).append(item)
        return dict(item)

    async def update(
        self, path: str, resource_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        self.calls.append(("update", path, resource_id, payload))
        self._check("update", path)
        item = self._find(path, resource_id)
        for name, value in payload.items():
            if value is None:
                item.pop(name, None)
            else:
                item[name] = value
        return dict(item)

    async def delete(self, path: str, resource_id: str) -> None:
        self.calls.append(("delete", path, resource_id))
        self._check("delete", path)
        item = self._find(path, resource_id)
        self.store[path].remove(item)


@pytest.fixture
def fake_client() -> FakeManagementClient:
    """Tenant with the resources Auth0 creates by itself plus a few of ours."""
    return FakeManagementClient(
        {
            "/clients": [
                {"client_id": "all-apps", "name": "All Applications"},
                {
                    "client_id": "billing-id",
                    "name": "billing-app",
                    "app_type": "regular_web",
                    "description": "Client for staging",
                    "callbacks": ["https://billing.staging.example.com/callback"],
                },
                {"client_id": "legacy-id", "name": "legacy-app", "app_type": "spa"},
            ],
            "/resource-servers": [
                {
                    "id": "mgmt-api",
                    "name": "Auth0 Management API",
                    "identifier": "https://travel0.us.auth0.com/api/v2/",
                },
            ],
            "/roles": [
                {"id": "rol_admin", "name": "admin", "description": "Administrators"},
            ],
        }
    )


@pytest.fixture
def write_config(tmp_path: Path):
    """Write a JSON import config and return its path."""

    def _write(data: dict[str, Any] | str) -> Path:
        path = tmp_path / "config.json"
        path.write_text(data if isinstance(data, str) else json.dumps(data))
        return path

    return _write


@pytest.fixture
def write_yaml(tmp_path: Path):
    """Write a YAML tenant declaration and return its path."""

    def _write(text: str) -> Path:
        path = tmp_path / "tenant.yaml"
        path.write_text(text)
        return path

    return _write
