"""Import command.

Commands:
    auth0 import --config config.json --input tenant.yaml
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from auth0_cli.audit import AuditLogger, configure_audit_logging
from auth0_cli.cli.importer.client import (
    ManagementAPIError,
    ManagementAuthError,
    ManagementClient,
    ResourceOperationError,
)
from auth0_cli.cli.importer.models import (
    ImportConfig,
    ImportConfigError,
    TenantConfig,
    TenantConfigError,
)
from auth0_cli.cli.importer.settings import Auth0Settings
from auth0_cli.cli.importer.sync import (
    ImportAbortedError,
    ImportChanges,
    format_summary,
    run_import,
)
from auth0_cli.config import get_settings
from auth0_cli.logs import configure_logging

logger = logging.getLogger(__name__)
console = Console()


def _build_settings(
    domain: str | None,
    client_id: str | None,
    client_secret: str | None,
    access_token: str | None,
    config: ImportConfig,
) -> Auth0Settings:
    """Build settings from environment, CLI overrides and the import config."""
    base = Auth0Settings()
    settings = base.with_overrides(
        domain=domain,
        client_id=client_id,
        client_secret=client_secret,
        access_token=access_token,
    )
    return settings.with_default_domain(config.domain)


def _fail(message: str) -> typer.Exit:
    typer.secho(message, fg=typer.colors.RED, err=True)
    return typer.Exit(1)


def import_command(
    config_path: Annotated[
        Path,
        typer.Option(
            "--config",
            "-c",
            help="Path to the JSON config file.",
            prompt="Config file path",
            dir_okay=False,
        ),
    ],
    input_path: Annotated[
        Path,
        typer.Option(
            "--input",
            "-i",
            help="Path to the input YAML file.",
            prompt="Input file path",
            dir_okay=False,
        ),
    ],
    # Connection options
    domain: Annotated[
        Optional[str],
        typer.Option("--domain", "-d", help="Tenant domain"),
    ] = None,
    client_id: Annotated[
        Optional[str],
        typer.Option("--client-id", help="Machine-to-machine client ID"),
    ] = None,
    client_secret: Annotated[
        Optional[str],
        typer.Option("--client-secret", help="Machine-to-machine client secret"),
    ] = None,
    access_token: Annotated[
        Optional[str],
        typer.Option("--access-token", help="Management API access token"),
    ] = None,
    # Import options
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run", "-n", help="Show what would be done without making changes"
        ),
    ] = False,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Skip confirmation before deleting resources"),
    ] = False,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Output the summary in JSON format"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output"),
    ] = False,
) -> None:
    """Import tenant resources and settings from a YAML file.

    YAML files produced by the Auth0 Deploy CLI are supported. Applications,
    APIs and roles are created, updated or deleted so the tenant matches the
    file.

    Example:
        auth0 import --config config.json --input tenant.yaml
        auth0 import -c config.json -i tenant.yaml --dry-run
    """
    configure_logging(verbose)
    app_settings = get_settings()

    # Configuration errors are reported before any network call
    try:
        config = ImportConfig.from_json(config_path)
        tenant = TenantConfig.from_yaml(input_path, config)
    except ImportConfigError as e:
        raise _fail(f"Error loading config: {e}")
    except TenantConfigError as e:
        typer.secho("Error loading input file:", fg=typer.colors.RED, err=True)
        for err in e.errors:
            typer.secho(f"  ! {err}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    settings = _build_settings(
        domain=domain,
        client_id=client_id,
        client_secret=client_secret,
        access_token=access_token,
        config=config,
    )
    configure_audit_logging(
        log_level="DEBUG" if verbose else app_settings.log_level,
        json_format=app_settings.audit_json,
        service_name=app_settings.service_name,
        tenant=settings.domain,
    )

    typer.echo(f"Importing to tenant: {settings.domain or '<unset>'}")
    typer.echo(f"Config file: {config_path}")
    typer.echo(f"Input file: {input_path}")
    typer.echo(
        f"Declared: {len(tenant.clients)} applications, "
        f"{len(tenant.resource_servers)} APIs, {len(tenant.roles)} roles"
    )
    if dry_run:
        typer.secho("[DRY RUN] No changes will be applied", fg=typer.colors.YELLOW)

    try:
        changes = asyncio.run(
            _async_import(
                settings=settings,
                config=config,
                tenant=tenant,
                dry_run=dry_run,
                force=force,
                audit=AuditLogger(enabled=app_settings.audit_enabled),
            )
        )
    except ImportAbortedError as e:
        raise _fail(f"Aborted: {e}")
    except ManagementAuthError as e:
        raise _fail(f"Authentication failed: {e}")
    except ResourceOperationError as e:
        raise _fail(f"Import failed: {e}")
    except ManagementAPIError as e:
        raise _fail(f"Management API error: {e}")

    _render(changes, as_json)


async def _async_import(
    settings: Auth0Settings,
    config: ImportConfig,
    tenant: TenantConfig,
    dry_run: bool,
    force: bool,
    audit: AuditLogger,
) -> list[ImportChanges]:
    """Run the async import."""
    async with ManagementClient(settings) as client:
        await client.authenticate()

        return await run_import(
            client,
            config,
            tenant,
            management_api_identifier=settings.audience,
            echo=typer.echo,
            confirm=None if force else typer.confirm,
            audit=audit,
            dry_run=dry_run,
        )


def _render(changes: list[ImportChanges], as_json: bool) -> None:
    """Print the per-kind summary."""
    if as_json:
        payload = {
            "resources": [asdict(c) for c in changes],
            "additions": sum(c.creates for c in changes),
            "changes": sum(c.updates for c in changes),
            "deletions": sum(c.deletes for c in changes),
        }
        typer.echo(json.dumps(payload, indent=2))
        return

    typer.echo()
    console.print(format_summary(changes))
