# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

Every package imports these types from here.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# === TENANT ===


class Tenant(BaseModel):
    """A configured identity-governance tenant."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    display_name: str = ""

    @property
    def label(self) -> str:
        return self.display_name or self.name


# === JOBS ===


class JobKind(str, Enum):
    """Long-running backend operations that can be started on a source."""

    ACCOUNT_AGGREGATION = "aggregation"
    ENTITLEMENT_AGGREGATION = "entitlement-aggregation"
    ACCOUNT_RESET = "reset"
    ENTITLEMENT_RESET = "entitlement-reset"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    WARNING = "warning"
    FAILURE = "failure"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset({JobStatus.SUCCESS, JobStatus.WARNING, JobStatus.FAILURE})

# Backend completionStatus -> JobStatus. Unknown values are treated as failures.
_COMPLETION_STATUS_MAP: dict[str, JobStatus] = {
    "SUCCESS": JobStatus.SUCCESS,
    "WARNING": JobStatus.WARNING,
    "ERROR": JobStatus.FAILURE,
    "TERMINATED": JobStatus.FAILURE,
    "TEMPERROR": JobStatus.FAILURE,
    "TEMP_ERROR": JobStatus.FAILURE,
}


def status_from_completion(completion_status: str | None, launched: Any = None) -> JobStatus:
    """Map a backend task ``completionStatus`` onto a JobStatus.

    A task without completion status is still running, or pending when it
    has not been launched yet.
    """
    if not completion_status:
        return JobStatus.RUNNING if launched else JobStatus.PENDING
    return _COMPLETION_STATUS_MAP.get(completion_status.upper(), JobStatus.FAILURE)


class JobMessage(BaseModel):
    """Diagnostic message attached to a terminal job."""

    key: str = ""
    text: str = ""
    type: str = "INFO"


class Job(BaseModel):
    """Remote job snapshot as returned by the task-status endpoint."""

    id: str
    target_id: str = ""
    kind: JobKind | None = None
    status: JobStatus = JobStatus.PENDING
    messages: list[JobMessage] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


# === OUTCOMES ===


class OutcomeCategory(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    FAILURE = "failure"
    CANCELLED = "cancelled"

    @classmethod
    def from_status(cls, status: JobStatus) -> OutcomeCategory:
        """Classify a terminal job status."""
        if status == JobStatus.SUCCESS:
            return cls.SUCCESS
        if status == JobStatus.WARNING:
            return cls.WARNING
        if status == JobStatus.FAILURE:
            return cls.FAILURE
        raise ValueError(f"Job status {status.value!r} is not terminal")


class OutcomeReport(BaseModel):
    """Categorized, formatted result of one administrative operation."""

    model_config = ConfigDict(frozen=True)

    category: OutcomeCategory
    text: str = ""


# === COLLECTIONS ===


class PageResult(BaseModel):
    """One window of a remote listing."""

    items: list[dict[str, Any]] = Field(default_factory=list)
    total_count: int | None = None


class Resource(BaseModel):
    """Minimal view of a remote resource (source, role, access profile...)."""

    id: str
    name: str
    type: str = ""
    attributes: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict[str, Any], type_: str = "") -> Resource:
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            type=type_ or str(data.get("type") or ""),
            attributes=data,
        )
