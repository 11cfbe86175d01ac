"""Management API resource models and the per-kind descriptors.

Each resource kind the import command reconciles (Applications, APIs, Roles)
is described by a ResourceKind: where it lives in the Management API, how it
is keyed, which fields take part in the diff, and how a YAML declaration maps
onto it. The reconciler in sync.py only ever talks to the descriptor.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict

from auth0_cli.cli.importer.models import TenantConfig

# The tenant-wide application the dashboard shows for "All Applications".
ALL_APPLICATIONS = "All Applications"


class Auth0Resource(BaseModel):
    """Base for Management API payloads.

    Every attribute is optional: None means "not specified". Attributes the
    models do not name are kept as extras so a round trip loses nothing.
    """

    model_config = ConfigDict(extra="allow")


class Application(Auth0Resource):
    """An application (`/clients`)."""

    client_id: str | None = None
    name: str | None = None
    description: str | None = None
    app_type: str | None = None
    token_endpoint_auth_method: str | None = None

    callbacks: list[str] | None = None
    allowed_origins: list[str] | None = None
    web_origins: list[str] | None = None
    allowed_logout_urls: list[str] | None = None
    grant_types: list[str] | None = None

    is_first_party: bool | None = None
    is_token_endpoint_ip_header_trusted: bool | None = None
    oidc_conformant: bool | None = None
    sso_disabled: bool | None = None
    cross_origin_auth: bool | None = None
    custom_login_page_on: bool | None = None


class ResourceServerScope(Auth0Resource):
    """A permission exposed by an API."""

    value: str | None = None
    description: str | None = None


class ResourceServer(Auth0Resource):
    """An API (`/resource-servers`)."""

    id: str | None = None
    name: str | None = None
    identifier: str | None = None
    scopes: list[ResourceServerScope] | None = None

    signing_alg: str | None = None
    signing_secret: str | None = None
    token_dialect: str | None = None
    token_lifetime: int | None = None
    token_lifetime_for_web: int | None = None

    allow_offline_access: bool | None = None
    enforce_policies: bool | None = None
    skip_consent_for_verifiable_first_party_clients: bool | None = None


class Role(Auth0Resource):
    """A role (`/roles`)."""

    id: str | None = None
    name: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class ResourceKind:
    """Everything the reconciler needs to know about one resource kind."""

    name: str  # plural display name, e.g. "Applications"
    label: str  # singular, used in messages
    path: str  # Management API collection path
    list_key: str  # collection key in the include_totals envelope
    model: type[Auth0Resource]
    key_field: str  # natural key
    id_field: str  # server-assigned id
    scalar_fields: tuple[str, ...]
    list_fields: tuple[str, ...] = ()
    # Fields where an empty string in YAML means "not provided"
    blank_as_unset: tuple[str, ...] = ()
    # Natural keys the API manages itself and that must never be deleted
    protected_keys: frozenset[str] = field(default_factory=frozenset)
    protects_management_api: bool = False
    declarations: Callable[[TenantConfig], list[BaseModel]] = lambda tenant: []

    def key_of(self, resource: Auth0Resource) -> str:
        return getattr(resource, self.key_field) or ""

    def id_of(self, resource: Auth0Resource) -> str | None:
        return getattr(resource, self.id_field)

    def parse(self, data: dict[str, Any]) -> Auth0Resource:
        """Build a resource from a Management API response item."""
        return self.model.model_validate(data)

    def from_declaration(self, declaration: BaseModel) -> Auth0Resource:
        """Map one YAML declaration onto the remote resource shape."""
        data = declaration.model_dump(include=set(self.model.model_fields))
        for name in self.blank_as_unset:
            if data.get(name) == "":
                data[name] = None
        return self.model.model_validate(data)

    def map_declared(self, tenant: TenantConfig) -> list[Auth0Resource]:
        """Map every declaration of this kind."""
        return [self.from_declaration(d) for d in self.declarations(tenant)]

    def protected(self, management_api_identifier: str | None = None) -> set[str]:
        """Natural keys to drop from the delete set."""
        keys = set(self.protected_keys)
        if self.protects_management_api and management_api_identifier:
            keys.add(management_api_identifier)
        return keys

    def describe(self, resource: Auth0Resource) -> str:
        """Compact JSON of key and id, for one-line mutation reports."""
        printable: dict[str, Any] = {}
        for name in ("name", self.key_field, self.id_field):
            value = getattr(resource, name, None)
            if value is not None:
                printable[name] = value
        try:
            return json.dumps(printable)
        except (TypeError, ValueError):
            return self.key_of(resource)


APPLICATIONS = ResourceKind(
    name="Applications",
    label="application",
    path="/clients",
    list_key="clients",
    model=Application,
    key_field="name",
    id_field="client_id",
    scalar_fields=(
        "description",
        "app_type",
        "is_first_party",
        "is_token_endpoint_ip_header_trusted",
        "oidc_conformant",
        "sso_disabled",
        "cross_origin_auth",
        "custom_login_page_on",
        "token_endpoint_auth_method",
    ),
    list_fields=(
        "callbacks",
        "allowed_origins",
        "web_origins",
        "allowed_logout_urls",
        "grant_types",
    ),
    blank_as_unset=("token_endpoint_auth_method",),
    protected_keys=frozenset({ALL_APPLICATIONS}),
    declarations=lambda tenant: list(tenant.clients),
)

APIS = ResourceKind(
    name="APIs",
    label="API",
    path="/resource-servers",
    list_key="resource_servers",
    model=ResourceServer,
    key_field="identifier",
    id_field="id",
    scalar_fields=(
        "name",
        "signing_alg",
        "signing_secret",
        "allow_offline_access",
        "token_lifetime",
        "token_lifetime_for_web",
        "skip_consent_for_verifiable_first_party_clients",
        "enforce_policies",
        "token_dialect",
    ),
    list_fields=("scopes",),
    blank_as_unset=("token_dialect", "signing_secret"),
    protects_management_api=True,
    declarations=lambda tenant: list(tenant.resource_servers),
)

ROLES = ResourceKind(
    name="Roles",
    label="role",
    path="/roles",
    list_key="roles",
    model=Role,
    key_field="name",
    id_field="id",
    scalar_fields=("description",),
    declarations=lambda tenant: list(tenant.roles),
)

# Reconciliation order of the import command
RESOURCE_KINDS: tuple[ResourceKind, ...] = (APPLICATIONS, APIS, ROLES)
