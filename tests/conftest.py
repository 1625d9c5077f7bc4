# tests/conftest.py — v1
"""Shared test fixtures for all unit tests.

Provides an in-memory identity client, a recording presenter, settings
tuned for fast polling and an open tenant session. No network I/O.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import pytest

from iscadmin.cache.single_flight import LookupNotFound
from iscadmin.client.base_client import BaseIdentityClient
from iscadmin.config.settings import Settings
from iscadmin.core.models import (
    Job,
    JobKind,
    JobMessage,
    JobStatus,
    OutcomeReport,
    PageResult,
    Resource,
    Tenant,
)
from iscadmin.jobs.presenter import ProgressScope
from iscadmin.session.tenant_session import TenantSession


# === FAKES ===


class FakeIdentityClient(BaseIdentityClient):
    """In-memory client. Job statuses are served in order, the last one repeating."""

    def __init__(self) -> None:
        self.collections: dict[str, list[dict[str, Any]]] = {}
        self.resources: dict[str, list[Resource]] = {}
        self.ids_by_name: dict[tuple[str, str], str] = {}
        self.job_statuses: dict[JobKind, list[JobStatus]] = {}
        self.job_messages: dict[JobKind, list[JobMessage]] = {}

        self.started: list[tuple[JobKind, str, dict[str, Any]]] = []
        self.status_calls: list[str] = []
        self.page_calls: list[tuple[str, str, int, int, bool]] = []
        self.lookup_calls: list[tuple[str, str]] = []
        self.close_count = 0
        self._jobs: dict[str, tuple[JobKind, str, int]] = {}

    async def fetch_page(self, collection, filters, limit, offset, need_total) -> PageResult:
        self.page_calls.append((collection, filters, limit, offset, need_total))
        items = self.collections.get(collection, [])
        return PageResult(
            items=items[offset:offset + limit],
            total_count=len(items) if need_total else None,
        )

    async def start_job(self, kind, target_id, **options) -> str:
        self.started.append((kind, target_id, options))
        job_id = f"job-{len(self.started)}"
        self._jobs[job_id] = (kind, target_id, 0)
        return job_id

    async def get_job_status(self, job_id) -> Job:
        self.status_calls.append(job_id)
        kind, target_id, served = self._jobs[job_id]
        statuses = self.job_statuses.get(kind, [JobStatus.SUCCESS])
        status = statuses[min(served, len(statuses) - 1)]
        self._jobs[job_id] = (kind, target_id, served + 1)
        messages = self.job_messages.get(kind, []) if status.is_terminal else []
        return Job(id=job_id, target_id=target_id, status=status, messages=messages)

    async def resolve_id_by_name(self, collection, name) -> str:
        self.lookup_calls.append((collection, name))
        try:
            return self.ids_by_name[(collection, name)]
        except KeyError:
            raise LookupNotFound(collection, name) from None

    async def list_resources(self, collection) -> list[Resource]:
        return list(self.resources.get(collection, []))

    async def close(self) -> None:
        self.close_count += 1


class RecordingPresenter:
    """Presenter that answers confirmations from a script and records everything."""

    def __init__(self, answers: list[bool] | None = None, cancel: bool = False) -> None:
        self.answers = list(answers or [])
        self.cancel = cancel
        self.questions: list[str] = []
        self.reports: list[OutcomeReport] = []
        self.scopes: list[ProgressScope] = []

    async def confirm(self, question: str) -> bool:
        self.questions.append(question)
        return self.answers.pop(0) if self.answers else True

    def show(self, report: OutcomeReport) -> None:
        self.reports.append(report)

    @asynccontextmanager
    async def progress(self, title: str):
        scope = ProgressScope(title)
        if self.cancel:
            scope.token.cancel()
        self.scopes.append(scope)
        yield scope


# === FIXTURES ===


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        tenant="acme",
        page_size=4,
        poll_interval_s=0.01,
        poll_timeout_s=5.0,
    )


@pytest.fixture
def tenant() -> Tenant:
    return Tenant(id="tenant-1", name="acme", display_name="Acme Corp")


@pytest.fixture
def fake_client() -> FakeIdentityClient:
    return FakeIdentityClient()


@pytest.fixture
def session(tenant: Tenant, settings: Settings, fake_client: FakeIdentityClient) -> TenantSession:
    return TenantSession(tenant, settings, client_factory=lambda t, s: fake_client)


@pytest.fixture
def presenter() -> RecordingPresenter:
    return RecordingPresenter()


@pytest.fixture
def hr_source() -> Resource:
    return Resource(id="src-hr", name="HR", type="DelimitedFile")


@pytest.fixture
def failed_job() -> Job:
    return Job(
        id="job-9",
        target_id="src-hr",
        status=JobStatus.FAILURE,
        messages=[
            JobMessage(key="CONNECTOR_ERROR", text="Connection refused", type="ERROR"),
        ],
    )


@pytest.fixture
def make_presenter():
    return RecordingPresenter
