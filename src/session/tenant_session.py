# src/session/tenant_session.py — v1
"""Per-tenant session: clients, name caches and paged folder state.

A session is opened when a tenant is selected and closed when the tenant
is removed. Everything long-lived for a tenant hangs off it; nothing is
module-global.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from iscadmin.cache.name_caches import create_access_profile_cache, create_role_cache
from iscadmin.cache.single_flight import SingleFlightCache
from iscadmin.client.base_client import BaseIdentityClient
from iscadmin.config.settings import Settings
from iscadmin.core.models import Tenant
from iscadmin.paging.loader import PaginatedCollectionLoader

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Tenant, Settings], BaseIdentityClient]


class SessionError(Exception):
    """Raised on use of a closed session or an unknown tenant."""


def default_client_factory(tenant: Tenant, settings: Settings) -> BaseIdentityClient:
    """HTTP client for ``tenant``, honouring an explicit ISC_BASE_URL."""
    from iscadmin.client.http_client import HttpIdentityClient

    base_url = settings.base_url or f"https://{tenant.name}.api.identitynow.com"
    return HttpIdentityClient(
        base_url, settings.access_token, timeout=settings.http_timeout_s
    )


class TenantSession:
    """Long-lived state of one tenant.

    Args:
        tenant: The tenant this session belongs to.
        settings: Application settings.
        client_factory: Builds a new client for the tenant. Called once for
            the session's own client and once per administrative operation.
    """

    def __init__(
        self,
        tenant: Tenant,
        settings: Settings,
        client_factory: ClientFactory = default_client_factory,
    ) -> None:
        self.tenant = tenant
        self.settings = settings
        self._client_factory = client_factory
        self._client: BaseIdentityClient | None = None
        self._access_profile_ids: SingleFlightCache[str, str] | None = None
        self._role_ids: SingleFlightCache[str, str] | None = None
        self._loaders: dict[str, PaginatedCollectionLoader[Any]] = {}
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise SessionError(f"Session for tenant {self.tenant.name!r} is closed")

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def client(self) -> BaseIdentityClient:
        """The session's shared client (listings, lookups)."""
        self._check_open()
        if self._client is None:
            self._client = self._client_factory(self.tenant, self.settings)
        return self._client

    def new_client(self) -> BaseIdentityClient:
        """A fresh client scoped to a single operation; the caller closes it."""
        self._check_open()
        return self._client_factory(self.tenant, self.settings)

    @property
    def access_profile_ids(self) -> SingleFlightCache[str, str]:
        self._check_open()
        if self._access_profile_ids is None:
            self._access_profile_ids = create_access_profile_cache(self.client)
        return self._access_profile_ids

    @property
    def role_ids(self) -> SingleFlightCache[str, str]:
        self._check_open()
        if self._role_ids is None:
            self._role_ids = create_role_cache(self.client)
        return self._role_ids

    def loader(
        self,
        collection: str,
        factory: Callable[[], PaginatedCollectionLoader[Any]] | None = None,
    ) -> PaginatedCollectionLoader[Any]:
        """Paged state of ``collection``, created on first use.

        Args:
            collection: Collection name, e.g. ``"roles"``.
            factory: Builds the loader; defaults to raw dict items.
        """
        self._check_open()
        loader = self._loaders.get(collection)
        if loader is None:
            if factory is None:
                client = self.client

                async def fetch(filters: str, limit: int, offset: int, need_total: bool):
                    return await client.fetch_page(collection, filters, limit, offset, need_total)

                loader = PaginatedCollectionLoader(
                    fetch,
                    page_size=self.settings.page_size,
                    filters=self.settings.default_filters,
                    name=collection,
                )
            else:
                loader = factory()
            self._loaders[collection] = loader
        return loader

    def reset_loaders(self) -> None:
        """Force a full re-page of every collection on next expansion."""
        for loader in self._loaders.values():
            loader.reset()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._loaders.clear()
        self._access_profile_ids = None
        self._role_ids = None
        if self._client is not None:
            await self._client.close()
            self._client = None
        logger.info("Closed session for tenant %s", self.tenant.name)


class SessionRegistry:
    """Open tenant sessions, keyed by tenant id."""

    def __init__(
        self,
        settings: Settings,
        client_factory: ClientFactory = default_client_factory,
    ) -> None:
        self._settings = settings
        self._client_factory = client_factory
        self._sessions: dict[str, TenantSession] = {}

    def open(self, tenant: Tenant) -> TenantSession:
        """Session for ``tenant``, reusing an open one."""
        session = self._sessions.get(tenant.id)
        if session is None:
            session = TenantSession(tenant, self._settings, self._client_factory)
            self._sessions[tenant.id] = session
            logger.info("Opened session for tenant %s", tenant.name)
        return session

    def get(self, tenant_id: str) -> TenantSession:
        try:
            return self._sessions[tenant_id]
        except KeyError:
            raise SessionError(f"No open session for tenant {tenant_id!r}") from None

    async def remove(self, tenant_id: str) -> None:
        session = self._sessions.pop(tenant_id, None)
        if session is None:
            raise SessionError(f"No open session for tenant {tenant_id!r}")
        await session.close()

    async def close_all(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            await session.close()

    def __contains__(self, tenant_id: object) -> bool:
        return tenant_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
