"""Auth0 Management API connection settings.

Settings can be provided via:
1. Environment variables (AUTH0_*)
2. CLI arguments (--domain, --client-id, etc.)
3. The AUTH0_DOMAIN key of the import config file (domain only)
"""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Auth0Settings(BaseSettings):
    """Auth0 tenant connection and authentication settings."""

    model_config = SettingsConfigDict(
        env_prefix="AUTH0_",
        extra="ignore",
    )

    # Connection
    domain: str | None = Field(
        default=None,
        description="Tenant domain, e.g. travel0.us.auth0.com",
    )
    timeout: float = Field(
        default=30.0,
        description="HTTP request timeout in seconds",
    )

    # Machine-to-machine application credentials
    client_id: str | None = Field(
        default=None,
        description="Client ID of an application authorized for the Management API",
    )
    client_secret: str | None = Field(
        default=None,
        description="Client secret of that application",
    )

    # Pre-issued Management API token (takes precedence)
    access_token: str | None = Field(
        default=None,
        description="Management API access token",
    )

    @property
    def base_url(self) -> str:
        """Get the tenant base URL."""
        host = (self.domain or "").strip().rstrip("/")
        if host.startswith(("http://", "https://")):
            return host
        return f"https://{host}"

    @property
    def api_url(self) -> str:
        """Get the Management API v2 URL."""
        return f"{self.base_url}/api/v2"

    @property
    def token_url(self) -> str:
        """Get the OAuth token endpoint of the tenant."""
        return f"{self.base_url}/oauth/token"

    @property
    def audience(self) -> str:
        """Management API audience, which is also the API's own identifier."""
        return f"{self.base_url}/api/v2/"

    @property
    def has_client_credentials(self) -> bool:
        """Check if client credentials are available."""
        return bool(self.client_id and self.client_secret)

    @property
    def has_access_token(self) -> bool:
        """Check if a static access token is available."""
        return bool(self.access_token)

    def with_overrides(
        self,
        *,
        domain: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        access_token: str | None = None,
    ) -> "Auth0Settings":
        """Create a new settings instance with CLI overrides applied."""
        return Auth0Settings(
            domain=domain or self.domain,
            timeout=self.timeout,
            client_id=client_id or self.client_id,
            client_secret=client_secret or self.client_secret,
            access_token=access_token or self.access_token,
        )

    def with_default_domain(self, domain: str | None) -> "Auth0Settings":
        """Fill in the domain from the import config if none was given.

        Environment and CLI values win over the config file.
        """
        if self.domain or not domain:
            return self

        logger.debug("Using domain from import config: %s", domain)
        return self.with_overrides(domain=domain)
