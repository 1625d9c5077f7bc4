# src/client/base_client.py — v1
"""Abstract identity-platform client interface.

Transport and authentication belong to implementations; the rest of the
package only talks to this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from iscadmin.core.models import Job, JobKind, PageResult, Resource


class FetchFailure(Exception):
    """A listing, lookup, job-start or job-status request failed."""

    def __init__(self, message: str, status_code: int | None = None, url: str = ""):
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class BaseIdentityClient(ABC):
    """Unified interface to one tenant of the identity platform."""

    @abstractmethod
    async def fetch_page(
        self,
        collection: str,
        filters: str,
        limit: int,
        offset: int,
        need_total: bool,
    ) -> PageResult:
        """Fetch one window of a listing.

        ``total_count`` is only guaranteed when ``need_total`` is True.
        """

    @abstractmethod
    async def start_job(self, kind: JobKind, target_id: str, **options: Any) -> str:
        """Start a long-running job on ``target_id`` and return the job id."""

    @abstractmethod
    async def get_job_status(self, job_id: str) -> Job:
        """Current status of a job, with diagnostics once terminal."""

    @abstractmethod
    async def resolve_id_by_name(self, collection: str, name: str) -> str:
        """Id of the resource called ``name``.

        Raises:
            LookupNotFound: If no such resource exists.
        """

    @abstractmethod
    async def list_resources(self, collection: str) -> list[Resource]:
        """Unpaged listing (sources, transforms, workflows, ...)."""

    @abstractmethod
    async def close(self) -> None:
        """Release transport resources."""

    async def __aenter__(self) -> BaseIdentityClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
