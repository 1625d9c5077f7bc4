# src/client/http_client.py — v1
"""httpx implementation of BaseIdentityClient against the v3/beta REST API."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Union

import httpx

from iscadmin.cache.single_flight import LookupNotFound
from iscadmin.client.base_client import BaseIdentityClient, FetchFailure
from iscadmin.core.models import (
    Job,
    JobKind,
    JobMessage,
    PageResult,
    Resource,
    status_from_completion,
)

logger = logging.getLogger(__name__)

TOTAL_COUNT_HEADER = "X-Total-Count"

TokenProvider = Union[str, Callable[[], Awaitable[str]]]

# Collection name -> search index.
_SEARCH_INDICES: dict[str, str] = {
    "access-profiles": "accessprofiles",
    "roles": "roles",
    "entitlements": "entitlements",
    "identities": "identities",
}

# Collections only exposed by the beta API.
_BETA_COLLECTIONS = frozenset({"connector-rules"})

# Job kind -> (endpoint template, path to the job id in the response body).
_JOB_ENDPOINTS: dict[JobKind, tuple[str, tuple[str, ...]]] = {
    JobKind.ACCOUNT_AGGREGATION: ("/beta/sources/{id}/load-accounts", ("task", "id")),
    JobKind.ENTITLEMENT_AGGREGATION: ("/beta/sources/{id}/load-entitlements", ("task", "id")),
    JobKind.ACCOUNT_RESET: ("/beta/sources/{id}/remove-accounts", ("id",)),
    JobKind.ENTITLEMENT_RESET: ("/beta/entitlements/reset/sources/{id}", ("id",)),
}


class HttpIdentityClient(BaseIdentityClient):
    """Client for one tenant of the identity platform.

    Args:
        base_url: Tenant API root, e.g. ``https://acme.api.identitynow.com``.
        access_token: Bearer token, or an async callable returning one.
        timeout: Per-request timeout in seconds.
        http_client: Pre-built client (tests inject one with a MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        access_token: TokenProvider = "",
        *,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    async def _auth_headers(self) -> dict[str, str]:
        token = self._access_token
        if callable(token):
            token = await token()
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url}{path}"
        headers = {"Accept": "application/json", **(await self._auth_headers())}
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchFailure(
                f"{method} {path} returned {exc.response.status_code}",
                status_code=exc.response.status_code,
                url=url,
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchFailure(f"{method} {path} failed: {exc}", url=url) from exc
        return response

    @staticmethod
    def _dig(data: Any, path: tuple[str, ...]) -> Any:
        for key in path:
            if not isinstance(data, dict):
                return None
            data = data.get(key)
        return data

    @staticmethod
    def _collection_path(collection: str) -> str:
        version = "beta" if collection in _BETA_COLLECTIONS else "v3"
        return f"/{version}/{collection}"

    @staticmethod
    def _parse_messages(raw: Any) -> list[JobMessage]:
        messages: list[JobMessage] = []
        for item in raw or []:
            if not isinstance(item, dict):
                continue
            localized = item.get("localizedText") or {}
            text = localized.get("message") if isinstance(localized, dict) else None
            messages.append(
                JobMessage(
                    key=str(item.get("key") or ""),
                    text=str(text or item.get("key") or ""),
                    type=str(item.get("type") or "INFO"),
                )
            )
        return messages

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    async def fetch_page(
        self,
        collection: str,
        filters: str,
        limit: int,
        offset: int,
        need_total: bool,
    ) -> PageResult:
        index = _SEARCH_INDICES.get(collection)
        if index is None:
            raise ValueError(f"Collection {collection!r} is not searchable")

        response = await self._request(
            "POST",
            "/v3/search",
            params={
                "limit": limit,
                "offset": offset,
                "count": "true" if need_total else "false",
            },
            json={"indices": [index], "query": {"query": filters}, "sort": ["name"]},
        )

        total: int | None = None
        raw_total = response.headers.get(TOTAL_COUNT_HEADER)
        if raw_total is not None:
            try:
                total = int(raw_total)
            except ValueError:
                raise FetchFailure(
                    f"Invalid {TOTAL_COUNT_HEADER} header: {raw_total!r}", url=str(response.url)
                ) from None

        items = response.json()
        if not isinstance(items, list):
            raise FetchFailure("Search did not return a list", url=str(response.url))
        return PageResult(items=items, total_count=total)

    async def start_job(self, kind: JobKind, target_id: str, **options: Any) -> str:
        template, id_path = _JOB_ENDPOINTS[kind]
        path = template.format(id=target_id)

        kwargs: dict[str, Any] = {}
        if kind == JobKind.ACCOUNT_AGGREGATION:
            disable = bool(options.get("disable_optimization", False))
            kwargs["files"] = {"disableOptimization": (None, "true" if disable else "false")}

        response = await self._request("POST", path, **kwargs)
        job_id = self._dig(response.json(), id_path)
        if not job_id:
            raise FetchFailure(f"POST {path} returned no job id", url=str(response.url))

        logger.info("Started %s job %s on %s", kind.value, job_id, target_id)
        return str(job_id)

    async def get_job_status(self, job_id: str) -> Job:
        response = await self._request("GET", f"/beta/task-status/{job_id}")
        data = response.json()
        return Job(
            id=str(data.get("id") or job_id),
            target_id=str(self._dig(data, ("target", "id")) or ""),
            status=status_from_completion(data.get("completionStatus"), data.get("launched")),
            messages=self._parse_messages(data.get("messages")),
        )

    async def resolve_id_by_name(self, collection: str, name: str) -> str:
        escaped = name.replace("\\", "\\\\").replace('"', '\\"')
        response = await self._request(
            "GET",
            self._collection_path(collection),
            params={"filters": f'name eq "{escaped}"', "limit": 1},
        )
        results = response.json()
        if not results:
            raise LookupNotFound(collection, name)
        return str(results[0]["id"])

    async def list_resources(self, collection: str) -> list[Resource]:
        response = await self._request("GET", self._collection_path(collection))
        return [Resource.from_api(item) for item in response.json()]

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["HttpIdentityClient", "TOTAL_COUNT_HEADER"]
