# tests/integration/conftest.py — v1
"""Shared fixtures for integration tests.

``FakeTenantApi`` is an httpx MockTransport handler emulating the subset
of the tenant REST API the package uses (search, collections, source jobs
and task status). The full HTTP client stack runs against it; no network.
"""

from __future__ import annotations

import json
import re
from typing import Any

import httpx
import pytest

from iscadmin.client.http_client import TOTAL_COUNT_HEADER, HttpIdentityClient
from iscadmin.config.settings import Settings
from iscadmin.core.models import Tenant
from iscadmin.session.tenant_session import SessionRegistry

BASE_URL = "https://acme.api.identitynow.com"

_INDEX_TO_COLLECTION = {"accessprofiles": "access-profiles", "roles": "roles"}
_NAME_FILTER_RE = re.compile(r'^name eq "(.*)"$')


class FakeTenantApi:
    """In-memory tenant. Tasks report ``task_statuses[kind]`` in order, last repeating."""

    def __init__(self) -> None:
        self.collections: dict[str, list[dict[str, Any]]] = {}
        self.task_statuses: dict[str, list[str | None]] = {}
        self.task_messages: dict[str, list[dict[str, Any]]] = {}
        self.requests: list[httpx.Request] = []
        self._tasks: dict[str, tuple[str, str, int]] = {}

    # --- routing ---

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/v3/search" and request.method == "POST":
            return self._search(request)
        if path.startswith("/beta/task-status/"):
            return self._task_status(path.rsplit("/", 1)[1])
        for kind, pattern in (
            ("load-accounts", r"^/beta/sources/([^/]+)/load-accounts$"),
            ("load-entitlements", r"^/beta/sources/([^/]+)/load-entitlements$"),
            ("remove-accounts", r"^/beta/sources/([^/]+)/remove-accounts$"),
            ("reset-entitlements", r"^/beta/entitlements/reset/sources/([^/]+)$"),
        ):
            match = re.match(pattern, path)
            if match and request.method == "POST":
                return self._start(kind, match.group(1))
        match = re.match(r"^/(?:v3|beta)/(.+)$", path)
        if match and request.method == "GET":
            return self._list(match.group(1), request)
        return httpx.Response(404, json={"error": f"no route {path}"})

    # --- handlers ---

    def _search(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        items = self.collections.get(_INDEX_TO_COLLECTION[body["indices"][0]], [])
        limit = int(request.url.params["limit"])
        offset = int(request.url.params["offset"])
        headers = {}
        if request.url.params.get("count") == "true":
            headers[TOTAL_COUNT_HEADER] = str(len(items))
        return httpx.Response(200, json=items[offset:offset + limit], headers=headers)

    def _list(self, collection: str, request: httpx.Request) -> httpx.Response:
        items = self.collections.get(collection, [])
        name_filter = request.url.params.get("filters")
        if name_filter:
            match = _NAME_FILTER_RE.match(name_filter)
            name = match.group(1).replace('\\"', '"') if match else None
            items = [i for i in items if i.get("name") == name]
        return httpx.Response(200, json=items)

    def _start(self, kind: str, source_id: str) -> httpx.Response:
        task_id = f"task-{len(self._tasks) + 1}"
        self._tasks[task_id] = (kind, source_id, 0)
        if kind.startswith("load-"):
            return httpx.Response(202, json={"task": {"id": task_id}})
        return httpx.Response(202, json={"id": task_id})

    def _task_status(self, task_id: str) -> httpx.Response:
        if task_id not in self._tasks:
            return httpx.Response(404, json={"error": "unknown task"})
        kind, source_id, served = self._tasks[task_id]
        statuses = self.task_statuses.get(kind, ["SUCCESS"])
        status = statuses[min(served, len(statuses) - 1)]
        self._tasks[task_id] = (kind, source_id, served + 1)
        return httpx.Response(
            200,
            json={
                "id": task_id,
                "target": {"id": source_id},
                "launched": "2024-01-01T00:00:00Z",
                "completionStatus": status,
                "messages": self.task_messages.get(kind, []) if status else [],
            },
        )

    # --- inspection ---

    def started(self) -> list[str]:
        return [kind for kind, _, _ in self._tasks.values()]


@pytest.fixture
def api() -> FakeTenantApi:
    return FakeTenantApi()


@pytest.fixture
def int_settings() -> Settings:
    return Settings(
        _env_file=None,
        tenant="acme",
        base_url=BASE_URL,
        access_token="token",
        page_size=4,
        poll_interval_s=0.01,
        poll_timeout_s=5.0,
    )


@pytest.fixture
def registry(api: FakeTenantApi, int_settings: Settings) -> SessionRegistry:
    def factory(tenant: Tenant, settings: Settings) -> HttpIdentityClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(api))
        return HttpIdentityClient(settings.base_url, settings.access_token, http_client=http)

    return SessionRegistry(int_settings, client_factory=factory)


@pytest.fixture
def acme() -> Tenant:
    return Tenant(id="tenant-acme", name="acme", display_name="Acme Corp")
