"""Pydantic models for the import config (JSON) and tenant declaration (YAML).

Example config.json:
    {
      "AUTH0_DOMAIN": "travel0.us.auth0.com",
      "AUTH0_KEYWORD_REPLACE_MAPPINGS": {"ENV": "prod"},
      "AUTH0_ALLOW_DELETE": false
    }

Example tenant.yaml (the Auth0 Deploy CLI format; unknown keys are ignored):
    clients:
      - name: billing-app
        app_type: regular_web
        description: Client for ##ENV##
        callbacks:
          - https://billing.##ENV##.example.com/callback
    resourceServers:
      - name: Billing API
        identifier: https://billing.##ENV##.example.com/api
        scopes:
          - value: read:invoices
            description: Read invoices
    roles:
      - name: billing-admin
        description: Administers billing
        permissions:
          - permission_name: read:invoices
            resource_server_identifier: https://billing.##ENV##.example.com/api
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator



class ImportConfigError(ValueError):
    """The JSON config file is missing or malformed."""


class TenantConfigError(ValueError):
    """The YAML declaration is missing, malformed or inconsistent.

    Carries every problem found, not just the first one.
    """

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


def replace_keywords(value: str, mappings: dict[str, str]) -> str:
    """Replace ##KEY## tokens in a string using the configured mappings."""
    if not mappings or "##" not in value:
        return value
    return _keyword_pattern(mappings).sub(lambda m: mappings[m.group(1)], value)


def _keyword_pattern(mappings: dict[str, str]) -> re.Pattern[str]:
    """Match ##KEY## for the configured keys only, longest key first."""
    keys = sorted(mappings, key=len, reverse=True)
    return re.compile("##(" + "|".join(re.escape(k) for k in keys) + ")##")


def _replace_keywords_deep(value: Any, mappings: dict[str, str]) -> Any:
    """Recursively replace keywords in every string of a data structure."""
    if isinstance(value, str):
        return replace_keywords(value, mappings)
    if isinstance(value, list):
        return [_replace_keywords_deep(v, mappings) for v in value]
    if isinstance(value, dict):
        return {k: _replace_keywords_deep(v, mappings) for k, v in value.items()}
    return value


class ImportConfig(BaseModel):
    """Process-wide import policy, loaded once from JSON."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    domain: str | None = Field(
        default=None,
        alias="AUTH0_DOMAIN",
        description="Tenant domain, used when none is given on the CLI or environment",
    )
    keyword_replace_mappings: dict[str, str] = Field(
        default_factory=dict,
        alias="AUTH0_KEYWORD_REPLACE_MAPPINGS",
        description="Replacements for ##KEY## tokens in the declaration",
    )
    allow_delete: bool = Field(
        default=False,
        alias="AUTH0_ALLOW_DELETE",
        description="Clear remote fields that the declaration leaves out",
    )

    @field_validator("keyword_replace_mappings", mode="before")
    @classmethod
    def stringify_replacements(cls, v: Any) -> Any:
        """JSON allows numbers and booleans as replacement values."""
        if v is None:
            return {}
        if not isinstance(v, dict):
            return v
        out: dict[str, Any] = {}
        for key, value in v.items():
            if isinstance(value, bool):
                out[key] = json.dumps(value)
            elif isinstance(value, (int, float)):
                out[key] = str(value)
            else:
                out[key] = value
        return out

    @classmethod
    def from_json(cls, path: str | Path) -> "ImportConfig":
        """Load the import config from a JSON file."""
        p = Path(path)
        if not p.exists():
            raise ImportConfigError(f"Config file not found: {path}")

        try:
            text = p.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ImportConfigError(f"Unable to read config file {path}: {e}") from e

        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise ImportConfigError(f"Invalid JSON in config file {path}: {e}") from e

        if not isinstance(raw, dict):
            raise ImportConfigError(f"Config file must be a JSON object: {path}")

        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise ImportConfigError(f"Invalid config file {path}: {e}") from e


class ClientDeclaration(BaseModel):
    """An application as declared in the `clients` section."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., description="Application name (natural key)")
    app_type: str | None = None
    description: str | None = None
    token_endpoint_auth_method: str | None = None

    allowed_logout_urls: list[str] | None = None
    callbacks: list[str] | None = None
    web_origins: list[str] | None = None
    allowed_origins: list[str] | None = None
    grant_types: list[str] | None = None

    cross_origin_auth: bool | None = None
    custom_login_page_on: bool | None = None
    is_first_party: bool | None = None
    is_token_endpoint_ip_header_trusted: bool | None = None
    oidc_conformant: bool | None = None
    sso_disabled: bool | None = None


class ScopeDeclaration(BaseModel):
    """A permission (scope) exposed by an API."""

    model_config = ConfigDict(extra="ignore")

    value: str
    description: str | None = None


class ResourceServerDeclaration(BaseModel):
    """An API as declared in the `resourceServers` section."""

    model_config = ConfigDict(extra="ignore")

    identifier: str = Field(..., description="API audience (natural key)")
    name: str | None = None
    scopes: list[ScopeDeclaration] | None = None

    signing_alg: str | None = None
    signing_secret: str | None = None
    token_dialect: str | None = None
    token_lifetime: int | None = None
    token_lifetime_for_web: int | None = None

    allow_offline_access: bool | None = None
    enforce_policies: bool | None = None
    skip_consent_for_verifiable_first_party_clients: bool | None = None


class PermissionDeclaration(BaseModel):
    """A permission granted to a role."""

    model_config = ConfigDict(extra="ignore")

    permission_name: str
    resource_server_identifier: str


class RoleDeclaration(BaseModel):
    """A role as declared in the `roles` section."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., description="Role name (natural key)")
    description: str | None = None
    permissions: list[PermissionDeclaration] | None = None


class TenantConfig(BaseModel):
    """Desired state of a tenant, parsed from YAML after keyword replacement."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    clients: list[ClientDeclaration] = Field(default_factory=list)
    resource_servers: list[ResourceServerDeclaration] = Field(
        default_factory=list,
        alias="resourceServers",
    )
    roles: list[RoleDeclaration] = Field(default_factory=list)

    @field_validator("clients", "resource_servers", "roles", mode="before")
    @classmethod
    def null_section_is_empty(cls, v: Any) -> Any:
        """`clients:` with no entries parses to None."""
        return [] if v is None else v

    @classmethod
    def from_yaml(
        cls,
        path: str | Path,
        config: ImportConfig | None = None,
    ) -> "TenantConfig":
        """Load the declaration, apply keyword replacement and check duplicates."""
        p = Path(path)
        if not p.exists():
            raise TenantConfigError(f"Input file not found: {path}")

        try:
            text = p.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise TenantConfigError(f"Unable to read input file {path}: {e}") from e

        try:
            raw = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise TenantConfigError(f"Invalid YAML in input file {path}: {e}") from e

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise TenantConfigError(f"Input file must be a YAML mapping: {path}")

        mappings = config.keyword_replace_mappings if config else {}
        resolved = _replace_keywords_deep(raw, mappings)

        try:
            tenant = cls.model_validate(resolved)
        except ValidationError as e:
            raise TenantConfigError(
                [
                    f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
                    for err in e.errors()
                ]
            ) from e

        duplicates = tenant.find_duplicates()
        if duplicates:
            raise TenantConfigError(duplicates)

        return tenant

    def find_duplicates(self) -> list[str]:
        """Return one message per repeated natural key, across all sections."""
        errors: list[str] = []

        sections = [
            ("client", "name", [c.name for c in self.clients]),
            ("resourceServer", "identifier", [rs.identifier for rs in self.resource_servers]),
            ("role", "name", [r.name for r in self.roles]),
        ]
        for section, key_name, keys in sections:
            seen: set[str] = set()
            for key in keys:
                if key in seen:
                    errors.append(f"found duplicate {key_name} in {section}: {key}")
                seen.add(key)

        return errors
