"""
Sort-position assignment for itinerary items within a single day.

Positions are spaced by STRIDE so most inserts land in an existing gap
without touching siblings. Accommodation is pinned to a sentinel position
so lodging anchors the bottom of the day.
"""

import logging
from dataclasses import dataclass, field
from datetime import time
from typing import Iterable, Optional, Protocol, Sequence

from models import ItemCategory

logger = logging.getLogger(__name__)

STRIDE = 1024
ACCOMMODATION_SORT_ORDER = 9000.0


class Sortable(Protocol):
    id: Optional[int]
    category: ItemCategory
    sort_order: float
    start_time: Optional[time]


class DegenerateGapError(ArithmeticError):
    """No value fits strictly between two adjacent sort positions."""

    def __init__(self, preceding: float, following: float):
        super().__init__(f"No room between sort positions {preceding} and {following}")
        self.preceding = preceding
        self.following = following


class UnknownItemError(KeyError):
    """An item id that is not part of the day being ordered."""

    def __init__(self, item_id: int):
        super().__init__(item_id)
        self.item_id = item_id

    def __str__(self) -> str:
        return f"Item {self.item_id} is not in this day"


@dataclass(frozen=True)
class SortAssignment:
    """A new sort position for one item."""

    item_id: int
    sort_order: float


@dataclass
class InsertPlan:
    """Where a new item goes, plus any renumbering needed to make room."""

    sort_order: float
    renumbered: list[SortAssignment] = field(default_factory=list)


def is_accommodation(item: Sortable) -> bool:
    return item.category == ItemCategory.accommodation


def display_key(item: Sortable) -> tuple:
    """
    Sort key for presentation order within a day.

    sort_order first; on equal positions accommodation sinks below everything
    else, then timed items come before untimed ones in start-time order.
    """
    return (
        item.sort_order,
        is_accommodation(item),
        item.start_time is None,
        item.start_time or time.min,
    )


def sort_items(items: Iterable[Sortable]) -> list:
    return sorted(items, key=display_key)


def append_sort_order(
    existing_count: int,
    category: ItemCategory,
    stride: Optional[int] = STRIDE,
    sentinel: float = ACCOMMODATION_SORT_ORDER,
    current_max: Optional[float] = None,
) -> float:
    """
    Sort position for an item appended to the end of a day.

    Args:
        existing_count: Number of items already in the day
        category: Category of the new item
        stride: Spacing between positions; falsy for legacy contiguous numbering
        sentinel: Position reserved for accommodation
        current_max: Highest non-accommodation position in the day, if known

    Returns:
        The sort position for the new item
    """
    if category == ItemCategory.accommodation:
        return sentinel
    step = stride or 1
    position = float((existing_count + 1) * step)
    # Deletions can leave the count behind the highest position
    if current_max is not None and position <= current_max:
        position = current_max + step
    return position


def insert_between(
    preceding: Optional[float],
    following: Optional[float],
    stride: int = STRIDE,
) -> float:
    """
    Sort position strictly between two neighbours.

    A missing preceding neighbour means the start of the day (lower bound 0).
    A missing following neighbour places the item one stride after preceding.

    Raises:
        DegenerateGapError: If the midpoint collapses onto either bound.
    """
    lower = preceding if preceding is not None else 0.0
    if following is None:
        return lower + stride

    midpoint = (lower + following) / 2
    if not lower < midpoint < following:
        raise DegenerateGapError(lower, following)
    return midpoint


def renumber(
    items: Sequence[Sortable],
    stride: int = STRIDE,
    ceiling: Optional[float] = None,
) -> list[SortAssignment]:
    """
    Spread the non-accommodation items of a day out to multiples of stride.

    With a ceiling the spacing shrinks so every position, plus one more
    step for a following insert, stays below it.
    """
    movable = [item for item in sort_items(items) if not is_accommodation(item)]
    step = float(stride)
    if ceiling is not None and (len(movable) + 1) * step >= ceiling:
        step = ceiling / (len(movable) + 1)
    return [
        SortAssignment(item_id=item.id, sort_order=(index + 1) * step)
        for index, item in enumerate(movable)
    ]


def _position(
    preceding: Optional[float],
    following: Optional[float],
    stride: int,
    sentinel: float,
) -> float:
    # The last non-accommodation slot is capped below the sentinel
    if following is None:
        position = insert_between(preceding, None, stride)
        if position < sentinel:
            return position
        following = sentinel
    return insert_between(preceding, following, stride)


def _neighbours(
    movable: Sequence[Sortable], after_item_id: Optional[int], orders: dict
) -> tuple[Optional[float], Optional[float]]:
    if after_item_id is None:
        return None, (orders[movable[0].id] if movable else None)

    ids = [item.id for item in movable]
    index = ids.index(after_item_id)
    preceding = orders[ids[index]]
    following = orders[ids[index + 1]] if index + 1 < len(ids) else None
    return preceding, following


def plan_insert_after(
    items: Sequence[Sortable],
    after_item_id: Optional[int],
    stride: int = STRIDE,
    sentinel: float = ACCOMMODATION_SORT_ORDER,
) -> InsertPlan:
    """
    Plan the sort position of a new item inserted after another one.

    `after_item_id=None` inserts at the start of the day. Inserting after an
    accommodation item places the new item after the last non-accommodation
    item, i.e. just above the accommodation block. When the gap is exhausted
    the day's non-accommodation items are renumbered first.

    Raises:
        UnknownItemError: If after_item_id is not an item of this day.
    """
    ordered = sort_items(items)
    if after_item_id is not None and after_item_id not in {i.id for i in ordered}:
        raise UnknownItemError(after_item_id)

    movable = [item for item in ordered if not is_accommodation(item)]
    if after_item_id is not None and after_item_id not in {i.id for i in movable}:
        after_item_id = movable[-1].id if movable else None
        if after_item_id is None:
            return InsertPlan(sort_order=_position(None, None, stride, sentinel))

    orders = {item.id: item.sort_order for item in movable}
    preceding, following = _neighbours(movable, after_item_id, orders)
    try:
        return InsertPlan(sort_order=_position(preceding, following, stride, sentinel))
    except DegenerateGapError as e:
        logger.info(f"Sort gap exhausted ({e}), renumbering {len(movable)} items")

    renumbered = renumber(movable, stride, ceiling=sentinel)
    orders = {a.item_id: a.sort_order for a in renumbered}
    preceding, following = _neighbours(movable, after_item_id, orders)
    return InsertPlan(
        sort_order=_position(preceding, following, stride, sentinel),
        renumbered=renumbered,
    )


def plan_append(
    items: Sequence[Sortable],
    category: ItemCategory,
    stride: Optional[int] = STRIDE,
    sentinel: float = ACCOMMODATION_SORT_ORDER,
) -> InsertPlan:
    """
    Plan the sort position of an item added to the end of a day.

    Uses append_sort_order while it stays below the sentinel. Past that the
    item goes into the gap between the last non-accommodation item and the
    sentinel, renumbering the day when that gap is exhausted.
    """
    if category == ItemCategory.accommodation:
        return InsertPlan(sort_order=sentinel)

    movable = [item for item in sort_items(items) if not is_accommodation(item)]
    current_max = max((item.sort_order for item in movable), default=None)
    position = append_sort_order(len(items), category, stride, sentinel, current_max)
    if position < sentinel:
        return InsertPlan(sort_order=position)

    try:
        return InsertPlan(sort_order=insert_between(current_max, sentinel))
    except DegenerateGapError as e:
        logger.info(f"No room above the accommodation sentinel ({e}), renumbering")

    renumbered = renumber(movable, stride or STRIDE, ceiling=sentinel)
    last = renumbered[-1].sort_order if renumbered else None
    return InsertPlan(
        sort_order=insert_between(last, sentinel), renumbered=renumbered
    )


def reorder(
    items: Sequence[Sortable],
    moved_item_id: int,
    target_index: int,
    sentinel: float = ACCOMMODATION_SORT_ORDER,
) -> list[SortAssignment]:
    """
    Move one item to a new display index and renumber the whole day.

    Non-accommodation items get contiguous positions 1..n in the new order.
    Accommodation items stay on the sentinel; an assignment is only emitted
    for one whose stored position has drifted off it.

    Raises:
        UnknownItemError: If moved_item_id is not an item of this day.
    """
    ordered = sort_items(items)
    ids = [item.id for item in ordered]
    if moved_item_id not in ids:
        raise UnknownItemError(moved_item_id)

    target_index = max(0, min(target_index, len(ordered) - 1))
    moved = ordered.pop(ids.index(moved_item_id))
    ordered.insert(target_index, moved)

    assignments = []
    position = 0
    for item in ordered:
        if is_accommodation(item):
            if item.sort_order != sentinel:
                assignments.append(SortAssignment(item_id=item.id, sort_order=sentinel))
            continue
        position += 1
        assignments.append(SortAssignment(item_id=item.id, sort_order=float(position)))
    return assignments
