# src/paging/loader.py — v1
"""Windowed loader for large remote collections.

Materializes a listing ``page_size`` items at a time. The accumulated
sequence ends with a continuation marker while more items are available,
or is replaced by a single empty-state marker when the collection is empty.
Calls to ``load_more`` on one loader are serialized.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

from iscadmin.client.base_client import FetchFailure
from iscadmin.core.models import PageResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

# fetch_page(filters, limit, offset, need_total)
FetchPage = Callable[[str, int, int, bool], Awaitable[PageResult]]

DEFAULT_PAGE_SIZE = 250
MATCH_ALL = "*"


@dataclass(frozen=True)
class LoadMoreMarker:
    """Trailing element: another window can be fetched on demand."""

    label: str = "Load more"


@dataclass(frozen=True)
class EmptyMarker:
    """Sole element of an empty collection."""

    label: str = "No data found"


class PaginatedCollectionLoader(Generic[T]):
    """Incrementally page through a remote listing.

    Args:
        fetch_page: Async callable ``(filters, limit, offset, need_total)``.
        page_size: Fixed window size.
        filters: Opaque query passed through to ``fetch_page``.
        make_item: Converts one raw listing entry into an accumulated item.
        make_continuation: Builds the continuation marker.
        make_empty: Builds the empty-state marker from its label.
        empty_label: Label of the empty-state marker.
        name: Label used in log messages.
    """

    def __init__(
        self,
        fetch_page: FetchPage,
        page_size: int = DEFAULT_PAGE_SIZE,
        filters: str = MATCH_ALL,
        *,
        make_item: Callable[[dict[str, Any]], T] | None = None,
        make_continuation: Callable[[], Any] | None = None,
        make_empty: Callable[[str], Any] | None = None,
        empty_label: str = "No data found",
        name: str = "collection",
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be > 0")
        self._fetch_page = fetch_page
        self._limit = page_size
        self._filters = filters
        self._make_item = make_item or (lambda raw: raw)  # type: ignore[assignment,return-value]
        self._make_continuation = make_continuation or LoadMoreMarker
        self._make_empty = make_empty or EmptyMarker
        self._empty_label = empty_label
        self._name = name

        self._lock = asyncio.Lock()
        self._generation = 0
        self._offset = 0
        self._total: int | None = None
        self._items: list[T] = []
        self._marker: Any = None
        self._stalled = False

    # --- State ---

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def total(self) -> int | None:
        return self._total

    @property
    def filters(self) -> str:
        return self._filters

    @property
    def items(self) -> list[T]:
        """Fetched items, in fetch order, without markers."""
        return list(self._items)

    @property
    def has_more(self) -> bool:
        if self._total is None or self._stalled:
            return False
        return self._total > len(self._items)

    @property
    def loaded(self) -> bool:
        return self._total is not None

    @property
    def accumulated(self) -> list[Any]:
        """Fetched items followed by the continuation or empty-state marker, if any."""
        if self._marker is None:
            return list(self._items)
        if self._total == 0:
            return [self._marker]
        return [*self._items, self._marker]

    # --- Operations ---

    async def load_more(self) -> list[Any]:
        """Fetch the next window and return the accumulated sequence.

        A fetch error propagates and leaves the loader unchanged.
        """
        return await self._load(first_window_only=False)

    async def children(self) -> list[Any]:
        """Accumulated sequence, loading the first window on first use."""
        return await self._load(first_window_only=True)

    async def _load(self, first_window_only: bool) -> list[Any]:
        async with self._lock:
            if first_window_only and self.loaded:
                return self.accumulated
            if self.loaded and not self.has_more:
                logger.debug("%s: nothing more to load", self._name)
                return self.accumulated

            generation = self._generation
            need_total = self._total is None
            page = await self._fetch_page(self._filters, self._limit, self._offset, need_total)

            if generation != self._generation:
                logger.debug("%s: reset during fetch, discarding window", self._name)
                return self.accumulated

            if need_total and page.total_count is None:
                raise FetchFailure(f"{self._name}: listing returned no total count")
            new_items = [self._make_item(raw) for raw in page.items]

            if need_total:
                self._total = page.total_count

            # Drop the trailing continuation / empty-state marker.
            self._marker = None

            if self._total == 0:
                self._items = []
                self._marker = self._make_empty(self._empty_label)
                return self.accumulated

            if not new_items:
                if self.has_more:
                    logger.warning(
                        "%s: empty window at offset %d with %d/%s loaded, stopping",
                        self._name, self._offset, len(self._items), self._total,
                    )
                    self._stalled = True
                return self.accumulated

            self._items.extend(new_items)
            self._offset += self._limit

            if self.has_more:
                self._marker = self._make_continuation()

            logger.debug(
                "%s: loaded %d/%s items", self._name, len(self._items), self._total
            )
            return self.accumulated

    def reset(self) -> None:
        """Forget everything so the next ``load_more`` starts over at offset 0."""
        self._generation += 1
        self._offset = 0
        self._total = None
        self._items = []
        self._marker = None
        self._stalled = False
