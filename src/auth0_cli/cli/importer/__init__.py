"""Tenant import.

Reconciles applications, APIs and roles declared in a YAML file against an
Auth0 tenant through the Management API.
"""

from auth0_cli.cli.importer.settings import Auth0Settings
from auth0_cli.cli.importer.models import ImportConfig, TenantConfig
from auth0_cli.cli.importer.client import ManagementClient
from auth0_cli.cli.importer.resources import RESOURCE_KINDS, ResourceKind
from auth0_cli.cli.importer.sync import ImportChanges, ReconciliationPlan, run_import

__all__ = [
    "Auth0Settings",
    "ImportConfig",
    "TenantConfig",
    "ManagementClient",
    "RESOURCE_KINDS",
    "ResourceKind",
    "ImportChanges",
    "ReconciliationPlan",
    "run_import",
]
