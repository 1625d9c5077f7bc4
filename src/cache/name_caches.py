# src/cache/name_caches.py — v1
"""Name -> id caches backed by the identity client."""

from __future__ import annotations

from typing import TYPE_CHECKING

from iscadmin.cache.single_flight import SingleFlightCache

if TYPE_CHECKING:
    from iscadmin.client.base_client import BaseIdentityClient


def create_name_to_id_cache(
    client: BaseIdentityClient, collection: str
) -> SingleFlightCache[str, str]:
    """Build a cache resolving ``collection`` resource names to their ids.

    Args:
        client: Long-lived client of the owning tenant session.
        collection: API collection, e.g. ``"access-profiles"`` or ``"roles"``.
    """

    async def resolve(name: str) -> str:
        return await client.resolve_id_by_name(collection, name)

    return SingleFlightCache(resolve, name=f"{collection}-name-to-id")


def create_access_profile_cache(client: BaseIdentityClient) -> SingleFlightCache[str, str]:
    return create_name_to_id_cache(client, "access-profiles")


def create_role_cache(client: BaseIdentityClient) -> SingleFlightCache[str, str]:
    return create_name_to_id_cache(client, "roles")
