# src/cache/single_flight.py — v1
"""Single-flight key -> value cache.

Concurrent ``get`` calls for the same key share one outstanding resolution:
the resolver runs at most once at a time per key and every waiting caller
receives the same value or the same error. Resolved values live as long as
the cache instance. A failed resolution is forgotten so the next ``get``
retries from scratch.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Hashable, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class LookupNotFound(LookupError):
    """A name lookup found no matching remote resource."""

    def __init__(self, collection: str, name: str):
        self.collection = collection
        self.name = name
        super().__init__(f"No {collection} named {name!r}")


class SingleFlightCache(Generic[K, V]):
    """Cache whose misses are resolved once, however many callers race on them.

    Args:
        resolver: Async callable mapping a key to its value. May raise.
        name: Label used in log messages.
    """

    def __init__(self, resolver: Callable[[K], Awaitable[V]], name: str = "cache") -> None:
        self._resolver = resolver
        self._name = name
        self._entries: dict[K, asyncio.Task[V]] = {}

    async def get(self, key: K) -> V:
        """Return the value for ``key``, resolving it if needed.

        Raises:
            Whatever the resolver raised for the shared resolution attempt.
        """
        task = self._entries.get(key)
        if task is None:
            logger.debug("%s: miss for %r, resolving", self._name, key)
            task = asyncio.ensure_future(self._resolve(key))
            task.add_done_callback(_consume_exception)
            self._entries[key] = task
        elif not task.done():
            logger.debug("%s: joining in-flight resolution for %r", self._name, key)
        # shield: a cancelled caller must not cancel the resolution other callers share
        return await asyncio.shield(task)

    async def _resolve(self, key: K) -> V:
        try:
            return await self._resolver(key)
        except BaseException:
            if self._entries.get(key) is asyncio.current_task():
                del self._entries[key]
            logger.debug("%s: resolution failed for %r, entry dropped", self._name, key)
            raise

    def __contains__(self, key: object) -> bool:
        """True only for keys with a resolved value."""
        task = self._entries.get(key)  # type: ignore[call-overload]
        return task is not None and task.done() and not task.cancelled() and task.exception() is None

    def __len__(self) -> int:
        return sum(1 for key in self._entries if key in self)


def _consume_exception(task: asyncio.Task) -> None:
    # Marks the exception as retrieved when every caller has gone away.
    if not task.cancelled():
        task.exception()
