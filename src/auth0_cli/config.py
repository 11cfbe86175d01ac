"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """CLI-wide settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="AUTH0_CLI_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service
    service_name: str = "auth0-cli"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Audit trail of tenant mutations
    audit_enabled: bool = True
    audit_json: bool = False


settings = Settings()


@lru_cache
def get_settings() -> Settings:
    """Accessor for the module-level settings singleton."""
    return settings
