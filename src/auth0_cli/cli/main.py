"""Auth0 CLI - Main entrypoint.

Usage:
    auth0 import --config config.json --input tenant.yaml
"""

from __future__ import annotations

import typer

from auth0_cli.cli.importer.commands import import_command

app = typer.Typer(
    name="auth0",
    help="Manage Auth0 tenants from the command line",
    add_completion=True,
)


@app.callback()
def main() -> None:
    """Manage Auth0 tenants from the command line."""


app.command("import")(import_command)


def create_app() -> None:
    """CLI entrypoint."""
    app()


if __name__ == "__main__":
    create_app()
