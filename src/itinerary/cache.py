"""Per-day item cache with revision tracking for optimistic updates."""

import asyncio
import itertools
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Optional, Sequence

from cachetools import TTLCache

from models import ItineraryItem
from .ordering import SortAssignment, sort_items

logger = logging.getLogger(__name__)


@dataclass
class _DayLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


def detached_copy(item: ItineraryItem, **changes) -> ItineraryItem:
    """Copy an item without its session state so local edits never get flushed."""
    return ItineraryItem.model_validate({**item.model_dump(), **changes})


class DayItemCache:
    """
    Source of truth for the items of each day, keyed by day id.

    Every local change gives the day a new revision. A fetch remembers the
    revision it started at; if the day moved on before the response
    arrived, the response is stale and gets dropped.

    Revisions are stamps from one counter shared by all days, so a day
    whose revision expired never gets an old value back. Locks are kept
    only while someone holds or waits for them.
    """

    def __init__(self, maxsize: int = 512, ttl: float = 5 * 60):
        self._items: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._revisions: TTLCache = TTLCache(maxsize=maxsize * 4, ttl=ttl * 4)
        self._stamps = itertools.count(1)
        self._locks: dict[int, _DayLock] = {}

    def revision(self, day_id: int) -> int:
        return self._revisions.get(day_id, 0)

    def _bump(self, day_id: int) -> None:
        self._revisions[day_id] = next(self._stamps)

    @asynccontextmanager
    async def lock(self, day_id: int) -> AsyncIterator[None]:
        """Serializes read-modify-write cycles on one day."""
        entry = self._locks.setdefault(day_id, _DayLock())
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[day_id]

    def get(self, day_id: int) -> Optional[list[ItineraryItem]]:
        items = self._items.get(day_id)
        return list(items) if items is not None else None

    def begin_fetch(self, day_id: int) -> int:
        return self.revision(day_id)

    def store(self, day_id: int, items: Sequence[ItineraryItem], token: int) -> bool:
        """Store fetched items unless a newer local change happened meanwhile."""
        if token != self.revision(day_id):
            logger.warning(
                f"Dropping stale items for day {day_id} "
                f"(fetched at revision {token}, now {self.revision(day_id)})"
            )
            return False
        self._items[day_id] = sort_items(items)
        return True

    def apply_assignments(
        self, day_id: int, assignments: Sequence[SortAssignment]
    ) -> list[ItineraryItem]:
        """Optimistically apply new sort positions to the cached day."""
        current = self._items.get(day_id, [])
        orders = {a.item_id: a.sort_order for a in assignments}
        updated = [
            detached_copy(item, sort_order=orders[item.id]) if item.id in orders else item
            for item in current
        ]
        self._bump(day_id)
        self._items[day_id] = sort_items(updated)
        return list(self._items[day_id])

    def invalidate(self, day_id: int) -> None:
        self._bump(day_id)
        self._items.pop(day_id, None)

    async def load(
        self,
        day_id: int,
        fetch: Callable[[int], Awaitable[list[ItineraryItem]]],
        refresh: bool = False,
    ) -> list[ItineraryItem]:
        """Return the cached day, fetching it when missing or when refresh is set."""
        if not refresh:
            cached = self.get(day_id)
            if cached is not None:
                return cached

        token = self.begin_fetch(day_id)
        items = await fetch(day_id)
        if self.store(day_id, items, token):
            return self.get(day_id)
        return self.get(day_id) or sort_items(items)
