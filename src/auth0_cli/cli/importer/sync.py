"""Reconciliation of declared tenant resources against the Management API.

For every resource kind the same pipeline runs:

    load existing -> map declared -> classify -> diff -> apply

Classification partitions by natural key: declared resources without a remote
match are created, remote resources with a declared match are updated, and
remote resources nobody declared are deleted (except the few the API manages
itself). Diffing turns each matched pair into a minimal PATCH body, honoring
the AUTH0_ALLOW_DELETE policy for fields the declaration leaves out.

Mutations run deletes first, then updates, then creates. The first failure
stops the run; nothing already applied is rolled back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable

from pydantic import BaseModel
from rich.table import Table

from auth0_cli.audit import AuditLogger
from auth0_cli.cli.importer.client import (
    ManagementAPIError,
    ManagementClient,
    ResourceOperationError,
)
from auth0_cli.cli.importer.models import ImportConfig, TenantConfig
from auth0_cli.cli.importer.pagination import fetch_all
from auth0_cli.cli.importer.resources import RESOURCE_KINDS, Auth0Resource, ResourceKind

logger = logging.getLogger(__name__)

Echo = Callable[[str], None]
Confirm = Callable[[str], bool]


class ImportAbortedError(Exception):
    """The user declined a confirmation prompt."""


@dataclass
class ImportChanges:
    """Counts of mutations applied (or planned) for one resource kind."""

    resource: str
    creates: int = 0
    updates: int = 0
    deletes: int = 0

    @property
    def total(self) -> int:
        return self.creates + self.updates + self.deletes


@dataclass
class ReconciliationPlan:
    """Create/update/delete sets for one resource kind, keyed by natural key.

    ``updates`` holds the existing remote resources (after diffing, the
    patched copies); ``patches`` holds the PATCH body for each of them, empty
    when the resource already matches the declaration.
    """

    kind: ResourceKind
    creates: dict[str, Auth0Resource] = field(default_factory=dict)
    updates: dict[str, Auth0Resource] = field(default_factory=dict)
    deletes: dict[str, Auth0Resource] = field(default_factory=dict)

    # Every declared resource, keyed the same way
    declared: dict[str, Auth0Resource] = field(default_factory=dict)
    patches: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def pending_updates(self) -> dict[str, Auth0Resource]:
        """Matched resources whose patch is not empty."""
        return {key: res for key, res in self.updates.items() if self.patches.get(key)}

    @property
    def has_changes(self) -> bool:
        return bool(self.creates or self.pending_updates or self.deletes)

    def changes(self) -> ImportChanges:
        return ImportChanges(
            resource=self.kind.name,
            creates=len(self.creates),
            updates=len(self.pending_updates),
            deletes=len(self.deletes),
        )

    def summary(self) -> str:
        """Get a human-readable summary of the plan."""
        lines = []
        name = self.kind.name

        if self.deletes:
            lines.append(f"{name} to delete: {len(self.deletes)}")
            for key in self.deletes:
                lines.append(f"  - {key}")

        pending = self.pending_updates
        if pending:
            lines.append(f"{name} to update: {len(pending)}")
            for key in pending:
                fields = ", ".join(sorted(self.patches[key]))
                lines.append(f"  ~ {key} ({fields})")

        if self.creates:
            lines.append(f"{name} to create: {len(self.creates)}")
            for key in self.creates:
                lines.append(f"  + {key}")

        if not lines:
            lines.append(f"{name}: no changes needed")

        return "\n".join(lines)


# -----------------------------------------------------------------------------
# Loader
# -----------------------------------------------------------------------------


async def load_existing(client: ManagementClient, kind: ResourceKind) -> list[Auth0Resource]:
    """Fetch every remote resource of a kind."""

    async def fetch_page(page: int, per_page: int) -> tuple[list[Any], bool]:
        items, has_next = await client.list_page(kind.path, kind.list_key, page, per_page)
        return [kind.parse(item) for item in items], has_next

    try:
        return await fetch_all(fetch_page)
    except ManagementAPIError as e:
        raise ResourceOperationError(
            f"Unable to list {kind.name.lower()}: {e}",
            operation="list",
            resource=kind.name,
            status_code=e.status_code,
        ) from e


# -----------------------------------------------------------------------------
# Classifier
# -----------------------------------------------------------------------------


def classify(
    kind: ResourceKind,
    existing: Iterable[Auth0Resource],
    declared: Iterable[Auth0Resource],
    protected: Iterable[str] = (),
) -> ReconciliationPlan:
    """Partition existing and declared resources by natural key.

    A later declaration with the same key replaces an earlier one.
    """
    plan = ReconciliationPlan(kind=kind)

    for resource in declared:
        plan.declared[kind.key_of(resource)] = resource
    plan.creates = dict(plan.declared)

    for resource in existing:
        key = kind.key_of(resource)
        if key in plan.creates:
            plan.updates[key] = resource
        else:
            plan.deletes[key] = resource

    for key in plan.updates:
        del plan.creates[key]

    for key in protected:
        plan.deletes.pop(key, None)

    return plan


# -----------------------------------------------------------------------------
# Differ
# -----------------------------------------------------------------------------


def _comparable(item: Any) -> Any:
    """Reduce a list element to what the diff compares."""
    if isinstance(item, BaseModel):
        return {
            name: "" if value is None else value
            for name, value in item.model_dump(include=set(type(item).model_fields)).items()
        }
    return item


def lists_differ(current: list[Any] | None, desired: list[Any]) -> bool:
    """Length first, then element by element."""
    current = current or []
    if len(current) != len(desired):
        return True
    return any(_comparable(a) != _comparable(b) for a, b in zip(current, desired))


def _wire(value: Any) -> Any:
    """JSON form of a patch value."""
    if isinstance(value, list):
        return [_wire(v) for v in value]
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_none=True)
    return value


def diff_resource(
    kind: ResourceKind,
    existing: Auth0Resource,
    declared: Auth0Resource | None,
    allow_delete: bool,
) -> tuple[Auth0Resource, dict[str, Any]]:
    """Compute the minimal patch turning ``existing`` into ``declared``.

    Returns the patched copy of ``existing`` and the PATCH body.
    """
    if declared is None:
        return existing, {}

    update: dict[str, Any] = {}
    patch: dict[str, Any] = {}

    for name in kind.scalar_fields:
        current = getattr(existing, name)
        desired = getattr(declared, name)
        if desired is None:
            if allow_delete:
                update[name] = None
                if current is not None:
                    patch[name] = None
            continue
        if current != desired:
            update[name] = desired
            patch[name] = _wire(desired)

    for name in kind.list_fields:
        current = getattr(existing, name)
        desired = getattr(declared, name)
        if desired is None:
            if allow_delete:
                update[name] = None
                # The Management API clears arrays with [], not null
                if current:
                    patch[name] = []
            continue
        if lists_differ(current, desired):
            update[name] = list(desired)
            patch[name] = _wire(desired)

    if not update:
        return existing, patch
    return existing.model_copy(update=update), patch


def diff_plan(plan: ReconciliationPlan, allow_delete: bool) -> ReconciliationPlan:
    """Diff every matched pair of a plan in place."""
    for key, existing in list(plan.updates.items()):
        updated, patch = diff_resource(
            plan.kind, existing, plan.declared.get(key), allow_delete
        )
        plan.updates[key] = updated
        plan.patches[key] = patch
    return plan


# -----------------------------------------------------------------------------
# Executor
# -----------------------------------------------------------------------------


def _require_id(kind: ResourceKind, resource: Auth0Resource, operation: str) -> str:
    resource_id = kind.id_of(resource)
    if not resource_id:
        raise ResourceOperationError(
            f"Unable to {operation} {kind.label} '{kind.key_of(resource)}': "
            f"missing {kind.id_field}",
            operation=operation,
            resource=kind.name,
            key=kind.key_of(resource),
        )
    return resource_id


async def apply_plan(
    client: ManagementClient,
    plan: ReconciliationPlan,
    *,
    echo: Echo = logger.info,
    audit: AuditLogger | None = None,
    dry_run: bool = False,
) -> ImportChanges:
    """Apply a plan: deletes, then updates, then creates.

    The first failing call raises ResourceOperationError; later operations of
    the plan are not attempted.
    """
    kind = plan.kind
    audit = audit or AuditLogger(enabled=False)

    def said(done: str, planned: str) -> str:
        return f"Would {planned}" if dry_run else done

    async def run(operation: str, key: str, call: Callable[[], Awaitable[Any]]) -> Any:
        if dry_run:
            return None
        try:
            return await call()
        except ManagementAPIError as e:
            audit.log_failure(kind.name, operation, key, str(e))
            raise ResourceOperationError(
                f"Unable to {operation} {kind.label} '{key}': {e}",
                operation=operation,
                resource=kind.name,
                key=key,
                status_code=e.status_code,
            ) from e

    # 1. Deletes
    for key, resource in plan.deletes.items():
        resource_id = _require_id(kind, resource, "delete")
        await run("delete", key, lambda: client.delete(kind.path, resource_id))
        audit.log_mutation(kind.name, "delete", key, resource_id, dry_run=dry_run)
        echo(f"{said('Deleted', 'delete')} {kind.label}: {kind.describe(resource)}")

    # 2. Updates (only those with something to change)
    for key, resource in plan.pending_updates.items():
        patch = plan.patches[key]
        resource_id = _require_id(kind, resource, "update")
        await run("update", key, lambda: client.update(kind.path, resource_id, patch))
        audit.log_mutation(
            kind.name, "update", key, resource_id, changed_fields=list(patch), dry_run=dry_run
        )
        echo(f"{said('Updated', 'update')} {kind.label}: {kind.describe(resource)}")

    # 3. Creates
    for key, resource in list(plan.creates.items()):
        payload = resource.model_dump(mode="json", exclude_none=True)
        created = await run("create", key, lambda: client.create(kind.path, payload))
        if created:
            # Keep the server-assigned fields (id, client_id, secrets, ...)
            resource = kind.parse({**payload, **created})
            plan.creates[key] = resource
        audit.log_mutation(kind.name, "create", key, kind.id_of(resource), dry_run=dry_run)
        echo(f"{said('Created', 'create')} {kind.label}: {kind.describe(resource)}")

    return plan.changes()


# -----------------------------------------------------------------------------
# Orchestration
# -----------------------------------------------------------------------------


async def plan_kind(
    client: ManagementClient,
    kind: ResourceKind,
    tenant: TenantConfig,
    config: ImportConfig,
    management_api_identifier: str | None = None,
) -> ReconciliationPlan:
    """Load, map, classify and diff one resource kind.

    ``management_api_identifier`` defaults to the audience of the client's
    tenant, so the Management API itself is never scheduled for deletion.
    """
    if management_api_identifier is None:
        management_api_identifier = client.settings.audience

    existing = await load_existing(client, kind)
    declared = kind.map_declared(tenant)
    logger.info(
        "%s: %d existing, %d declared", kind.name, len(existing), len(declared)
    )

    plan = classify(
        kind,
        existing,
        declared,
        protected=kind.protected(management_api_identifier),
    )
    return diff_plan(plan, config.allow_delete)


async def run_import(
    client: ManagementClient,
    config: ImportConfig,
    tenant: TenantConfig,
    *,
    kinds: Iterable[ResourceKind] = RESOURCE_KINDS,
    management_api_identifier: str | None = None,
    echo: Echo = logger.info,
    confirm: Confirm | None = None,
    audit: AuditLogger | None = None,
    dry_run: bool = False,
) -> list[ImportChanges]:
    """Reconcile every resource kind in turn.

    A failure in one kind aborts the run before the following kinds are
    touched. ``confirm`` is asked before a kind deletes anything; declining
    raises ImportAbortedError.
    """
    results: list[ImportChanges] = []

    for kind in kinds:
        plan = await plan_kind(client, kind, tenant, config, management_api_identifier)
        echo(plan.summary())

        if plan.deletes and confirm is not None and not dry_run:
            keys = ", ".join(plan.deletes)
            question = (
                f"Delete {len(plan.deletes)} {kind.name.lower()} "
                f"missing from the input file ({keys})?"
            )
            if not confirm(question):
                raise ImportAbortedError(f"Import aborted before changing {kind.name.lower()}")

        results.append(
            await apply_plan(client, plan, echo=echo, audit=audit, dry_run=dry_run)
        )

    return results


def format_summary(changes: list[ImportChanges]) -> Table:
    """Per-kind counts plus totals as a rich table."""
    table = Table(title="Import summary")
    table.add_column("RESOURCE", style="cyan")
    table.add_column("ADDITIONS", justify="right", style="green")
    table.add_column("CHANGES", justify="right", style="yellow")
    table.add_column("DELETIONS", justify="right", style="red")

    for c in changes:
        table.add_row(c.resource, str(c.creates), str(c.updates), str(c.deletes))

    table.add_row(
        "TOTAL",
        str(sum(c.creates for c in changes)),
        str(sum(c.updates for c in changes)),
        str(sum(c.deletes for c in changes)),
        style="bold",
    )
    return table
