# tests/unit/client/test_http_client.py — v1
"""Tests for client/http_client.py using httpx.MockTransport."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from iscadmin.cache.single_flight import LookupNotFound
from iscadmin.client.base_client import FetchFailure
from iscadmin.client.http_client import TOTAL_COUNT_HEADER, HttpIdentityClient
from iscadmin.core.models import JobKind, JobStatus

BASE_URL = "https://acme.api.identitynow.com"


def _client(handler, token="secret") -> tuple[HttpIdentityClient, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def recording(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(recording))
    return HttpIdentityClient(BASE_URL, token, http_client=http), requests


class TestFetchPage:
    def test_search_request_and_total(self):
        def handler(request):
            return httpx.Response(
                200,
                json=[{"id": "r1", "name": "Admins"}],
                headers={TOTAL_COUNT_HEADER: "42"},
            )

        client, requests = _client(handler)
        page = asyncio.run(client.fetch_page("roles", "*", 4, 8, True))

        assert page.total_count == 42
        assert page.items == [{"id": "r1", "name": "Admins"}]
        request = requests[0]
        assert request.method == "POST"
        assert request.url.path == "/v3/search"
        assert request.url.params["limit"] == "4"
        assert request.url.params["offset"] == "8"
        assert request.url.params["count"] == "true"
        assert request.headers["Authorization"] == "Bearer secret"
        body = json.loads(request.content)
        assert body["indices"] == ["roles"]
        assert body["query"] == {"query": "*"}

    def test_access_profiles_index(self):
        client, requests = _client(lambda r: httpx.Response(200, json=[]))
        page = asyncio.run(client.fetch_page("access-profiles", "*", 4, 0, False))

        assert json.loads(requests[0].content)["indices"] == ["accessprofiles"]
        assert requests[0].url.params["count"] == "false"
        assert page.total_count is None

    def test_invalid_total_header(self):
        client, _ = _client(
            lambda r: httpx.Response(200, json=[], headers={TOTAL_COUNT_HEADER: "many"})
        )
        with pytest.raises(FetchFailure):
            asyncio.run(client.fetch_page("roles", "*", 4, 0, True))

    def test_http_error_becomes_fetch_failure(self):
        client, _ = _client(lambda r: httpx.Response(503, json={"error": "down"}))
        with pytest.raises(FetchFailure) as excinfo:
            asyncio.run(client.fetch_page("roles", "*", 4, 0, True))
        assert excinfo.value.status_code == 503

    def test_transport_error_becomes_fetch_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client, _ = _client(handler)
        with pytest.raises(FetchFailure) as excinfo:
            asyncio.run(client.fetch_page("roles", "*", 4, 0, True))
        assert excinfo.value.status_code is None
        assert isinstance(excinfo.value.__cause__, httpx.ConnectError)

    def test_unknown_collection(self):
        client, requests = _client(lambda r: httpx.Response(200, json=[]))
        with pytest.raises(ValueError):
            asyncio.run(client.fetch_page("sources", "*", 4, 0, True))
        assert requests == []


class TestJobs:
    def test_account_aggregation(self):
        client, requests = _client(
            lambda r: httpx.Response(202, json={"task": {"id": "task-1"}})
        )
        job_id = asyncio.run(
            client.start_job(JobKind.ACCOUNT_AGGREGATION, "src-hr", disable_optimization=True)
        )

        assert job_id == "task-1"
        request = requests[0]
        assert request.url.path == "/beta/sources/src-hr/load-accounts"
        assert b'name="disableOptimization"' in request.content
        assert b"true" in request.content

    @pytest.mark.parametrize(
        "kind,path,body",
        [
            (JobKind.ENTITLEMENT_AGGREGATION, "/beta/sources/s1/load-entitlements",
             {"task": {"id": "t-9"}}),
            (JobKind.ACCOUNT_RESET, "/beta/sources/s1/remove-accounts", {"id": "t-9"}),
            (JobKind.ENTITLEMENT_RESET, "/beta/entitlements/reset/sources/s1", {"id": "t-9"}),
        ],
    )
    def test_job_endpoints(self, kind, path, body):
        client, requests = _client(lambda r: httpx.Response(202, json=body))
        assert asyncio.run(client.start_job(kind, "s1")) == "t-9"
        assert requests[0].method == "POST"
        assert requests[0].url.path == path

    def test_missing_job_id(self):
        client, _ = _client(lambda r: httpx.Response(202, json={}))
        with pytest.raises(FetchFailure):
            asyncio.run(client.start_job(JobKind.ACCOUNT_RESET, "s1"))

    def test_running_status(self):
        client, requests = _client(
            lambda r: httpx.Response(
                200,
                json={"id": "t-1", "target": {"id": "s1"}, "launched": "2024-01-01T00:00:00Z",
                      "completionStatus": None, "messages": []},
            )
        )
        job = asyncio.run(client.get_job_status("t-1"))
        assert requests[0].url.path == "/beta/task-status/t-1"
        assert job.status == JobStatus.RUNNING
        assert job.target_id == "s1"

    def test_error_status_with_messages(self):
        client, _ = _client(
            lambda r: httpx.Response(
                200,
                json={
                    "id": "t-1",
                    "completionStatus": "ERROR",
                    "messages": [
                        {"type": "ERROR", "key": "CONNECTOR_ERROR",
                         "localizedText": {"locale": "en-US", "message": "Connection refused"}},
                    ],
                },
            )
        )
        job = asyncio.run(client.get_job_status("t-1"))
        assert job.status == JobStatus.FAILURE
        assert job.messages[0].key == "CONNECTOR_ERROR"
        assert job.messages[0].text == "Connection refused"
        assert job.messages[0].type == "ERROR"


class TestLookups:
    def test_resolve_id_by_name(self):
        client, requests = _client(
            lambda r: httpx.Response(200, json=[{"id": "ap-1", "name": "Finance"}])
        )
        assert asyncio.run(client.resolve_id_by_name("access-profiles", "Finance")) == "ap-1"
        request = requests[0]
        assert request.url.path == "/v3/access-profiles"
        assert request.url.params["filters"] == 'name eq "Finance"'

    def test_resolve_escapes_quotes(self):
        client, requests = _client(lambda r: httpx.Response(200, json=[{"id": "x"}]))
        asyncio.run(client.resolve_id_by_name("roles", 'Say "hi"'))
        assert requests[0].url.params["filters"] == 'name eq "Say \\"hi\\""'

    def test_resolve_not_found(self):
        client, _ = _client(lambda r: httpx.Response(200, json=[]))
        with pytest.raises(LookupNotFound):
            asyncio.run(client.resolve_id_by_name("roles", "Ghost"))

    def test_list_resources_uses_beta_for_rules(self):
        client, requests = _client(
            lambda r: httpx.Response(200, json=[{"id": "r1", "name": "Rule", "type": "BuildMap"}])
        )
        resources = asyncio.run(client.list_resources("connector-rules"))
        assert requests[0].url.path == "/beta/connector-rules"
        assert resources[0].name == "Rule"
        assert resources[0].type == "BuildMap"


class TestAuthAndLifecycle:
    def test_async_token_provider(self):
        async def token():
            return "fresh"

        client, requests = _client(lambda r: httpx.Response(200, json=[]), token=token)
        asyncio.run(client.list_resources("sources"))
        assert requests[0].headers["Authorization"] == "Bearer fresh"

    def test_no_token_no_header(self):
        client, requests = _client(lambda r: httpx.Response(200, json=[]), token="")
        asyncio.run(client.list_resources("sources"))
        assert "Authorization" not in requests[0].headers

    def test_injected_client_not_closed(self):
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        client = HttpIdentityClient(BASE_URL, http_client=http)
        asyncio.run(client.close())
        assert not http.is_closed

    def test_owned_client_closed(self):
        client = HttpIdentityClient(BASE_URL)

        async def run():
            async with client:
                pass

        asyncio.run(run())
        assert client._client.is_closed
