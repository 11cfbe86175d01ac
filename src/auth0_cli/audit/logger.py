"""Structured audit logging for tenant mutations."""

import logging
from typing import Any

import structlog

from auth0_cli.logs import resolve_level


def configure_audit_logging(
    *,
    log_level: str | int,
    json_format: bool,
    service_name: str,
    tenant: str | None = None,
) -> None:
    """Configure structlog for the mutation audit trail.

    Every event carries the service name and, when known, the tenant domain
    the import is running against.
    """
    # Resolve log level via stdlib logging (NOT structlog)
    level = resolve_level(log_level)

    logging.basicConfig(level=level)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.clear_contextvars()
    context = {"service": service_name}
    if tenant:
        context["tenant"] = tenant
    structlog.contextvars.bind_contextvars(**context)


class AuditLogger:
    """Audit logger for create/update/delete calls against a tenant."""

    def __init__(
        self,
        enabled: bool = True,
        logger: Any = None,
    ):
        """Initialize audit logger.

        Args:
            enabled: Whether audit logging is enabled
            logger: Optional custom logger
        """
        self._enabled = enabled
        self._logger = logger or structlog.get_logger("audit")

    def log_mutation(
        self,
        resource: str,
        operation: str,
        key: str,
        resource_id: str | None = None,
        changed_fields: list[str] | None = None,
        dry_run: bool = False,
    ) -> None:
        """Log a single mutation applied (or planned) against the tenant.

        Args:
            resource: Resource kind, e.g. "Applications"
            operation: "create", "update" or "delete"
            key: Natural key of the resource
            resource_id: Server-assigned id, when known
            changed_fields: Fields sent in an update patch
            dry_run: Whether the mutation was only planned
        """
        if not self._enabled:
            return

        log_data: dict[str, Any] = {
            "event": "resource_mutation",
            "resource": resource,
            "operation": operation,
            "key": key,
        }

        if resource_id:
            log_data["resource_id"] = resource_id

        if changed_fields:
            log_data["changed_fields"] = sorted(changed_fields)

        if dry_run:
            log_data["dry_run"] = True

        # Deletions are the destructive case
        if operation == "delete":
            self._logger.warning(**log_data)
        else:
            self._logger.info(**log_data)

    def log_failure(
        self,
        resource: str,
        operation: str,
        key: str,
        error: str,
    ) -> None:
        """Log a mutation that the Management API rejected."""
        if not self._enabled:
            return

        self._logger.error(
            event="resource_mutation_failed",
            resource=resource,
            operation=operation,
            key=key,
            error=error,
        )
