# src/logging/context.py — v1
"""Contextual logging support — attach tenant, operation and job_id to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per tenant session and operation.
_tenant: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "tenant", default=None
)
_operation: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "operation", default=None
)
_job_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "job_id", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    tenant: str | None = None
    operation: str | None = None
    job_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        tenant=_tenant.get(),
        operation=_operation.get(),
        job_id=_job_id.get(),
    )


def set_tenant_context(tenant: str) -> None:
    """Set tenant-level context (called when a session is entered)."""
    _tenant.set(tenant)


def set_operation_context(operation: str, job_id: str | None = None) -> None:
    """Set operation-level context (called per administrative operation)."""
    _operation.set(operation)
    _job_id.set(job_id)


def set_job_context(job_id: str | None) -> None:
    """Attach the remote job id once the backend has issued it."""
    _job_id.set(job_id)


def clear_operation_context() -> None:
    """Drop operation-level context, keeping the tenant."""
    _operation.set(None)
    _job_id.set(None)


def clear_context() -> None:
    """Reset all context variables."""
    _tenant.set(None)
    _operation.set(None)
    _job_id.set(None)
