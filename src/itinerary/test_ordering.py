"""Unit tests for sort-position assignment."""

from dataclasses import dataclass
from datetime import time
from typing import Optional

import math

import pytest

from itinerary.ordering import (
    ACCOMMODATION_SORT_ORDER,
    STRIDE,
    DegenerateGapError,
    UnknownItemError,
    append_sort_order,
    insert_between,
    plan_append,
    plan_insert_after,
    renumber,
    reorder,
    sort_items,
)
from models import ItemCategory


@dataclass
class Row:
    id: int
    sort_order: float
    category: ItemCategory = ItemCategory.activity
    start_time: Optional[time] = None


def day_of(*orders: float) -> list[Row]:
    return [Row(id=i + 1, sort_order=order) for i, order in enumerate(orders)]


class TestAppend:
    def test_appends_are_strictly_increasing(self):
        orders = [append_sort_order(count, ItemCategory.food) for count in range(20)]
        assert orders == sorted(orders)
        assert len(set(orders)) == len(orders)
        assert orders[:3] == [1024.0, 2048.0, 3072.0]

    @pytest.mark.parametrize("count", [0, 1, 7, 42])
    def test_accommodation_takes_the_sentinel(self, count: int):
        assert append_sort_order(count, ItemCategory.accommodation) == 9000

    def test_legacy_contiguous_numbering(self):
        assert append_sort_order(2, ItemCategory.note, stride=None) == 3.0

    def test_append_stays_above_the_current_maximum(self):
        """After deletions the count lags behind the highest position."""
        order = append_sort_order(1, ItemCategory.activity, current_max=4096.0)
        assert order == 4096.0 + STRIDE


class TestInsertBetween:
    def test_midpoint(self):
        value = insert_between(1024, 2048)
        assert 1024 < value < 2048

    def test_start_of_day_uses_zero_as_lower_bound(self):
        assert insert_between(None, 1024) == 512

    def test_end_of_day_adds_a_stride(self):
        assert insert_between(2048, None) == 2048 + STRIDE

    def test_collapsed_gap_raises(self):
        with pytest.raises(DegenerateGapError):
            insert_between(1.0, 1.0)


class TestPlanInsertAfter:
    def test_inserts_into_gap_without_renumbering(self):
        plan = plan_insert_after(day_of(1024, 2048, 3072), after_item_id=1)
        assert plan.sort_order == 1536
        assert plan.renumbered == []

    def test_at_start_of_day(self):
        plan = plan_insert_after(day_of(1024, 2048), after_item_id=None)
        assert plan.sort_order == 512

    def test_after_last_item(self):
        plan = plan_insert_after(day_of(1024, 2048), after_item_id=2)
        assert plan.sort_order == 2048 + STRIDE

    def test_repeated_inserts_eventually_renumber(self):
        """Halving the same gap must end in a renumber, never a bound value."""
        items = day_of(1024, 1025)
        next_id = 3
        for _ in range(200):
            plan = plan_insert_after(items, after_item_id=1)
            if plan.renumbered:
                break
            assert 1024 < plan.sort_order < items[1].sort_order
            items = [items[0], Row(id=next_id, sort_order=plan.sort_order), *items[1:]]
            next_id += 1
        else:
            pytest.fail("Gap never degenerated")

        orders = {a.item_id: a.sort_order for a in plan.renumbered}
        values = sorted(orders.values())
        step = values[0]
        assert values == [(i + 1) * step for i in range(len(items))]
        assert values[-1] < ACCOMMODATION_SORT_ORDER
        assert orders[1] < plan.sort_order < orders[items[1].id]

    def test_after_accommodation_goes_above_the_accommodation_block(self):
        items = day_of(1024, 2048) + [
            Row(id=9, sort_order=ACCOMMODATION_SORT_ORDER, category=ItemCategory.accommodation)
        ]
        plan = plan_insert_after(items, after_item_id=9)
        assert plan.sort_order == 2048 + STRIDE

    def test_unknown_item(self):
        with pytest.raises(UnknownItemError):
            plan_insert_after(day_of(1024), after_item_id=99)

    def test_after_last_item_stays_below_the_sentinel(self):
        plan = plan_insert_after(day_of(1024, 8500), after_item_id=2)
        assert plan.sort_order == 8750


def hotel(item_id: int = 99) -> Row:
    return Row(
        id=item_id,
        sort_order=ACCOMMODATION_SORT_ORDER,
        category=ItemCategory.accommodation,
    )


class TestPlanAppend:
    def test_empty_day(self):
        assert plan_append([], ItemCategory.activity).sort_order == STRIDE

    def test_accommodation_takes_the_sentinel(self):
        plan = plan_append(day_of(1024, 2048), ItemCategory.accommodation)
        assert plan.sort_order == ACCOMMODATION_SORT_ORDER

    def test_hotel_does_not_push_appends_past_the_sentinel(self):
        """With lodging and eight activities the next one still goes above the lodging."""
        items = day_of(*(STRIDE * n for n in range(1, 9))) + [hotel()]
        plan = plan_append(items, ItemCategory.activity)

        assert 8192 < plan.sort_order < ACCOMMODATION_SORT_ORDER
        assert plan.sort_order == 8596
        assert plan.renumbered == []

    def test_every_append_sorts_before_the_hotel(self):
        items = [hotel()]
        for item_id in range(1, 30):
            plan = plan_append(items, ItemCategory.food)
            assert plan.renumbered == []
            items.append(Row(id=item_id, sort_order=plan.sort_order))
            assert sort_items(items)[-1].id == 99
            assert sort_items(items)[-2].id == item_id

    def test_exhausted_gap_below_the_sentinel_renumbers(self):
        items = day_of(1024, math.nextafter(ACCOMMODATION_SORT_ORDER, 0)) + [hotel()]
        plan = plan_append(items, ItemCategory.activity)

        assert [(a.item_id, a.sort_order) for a in plan.renumbered] == [
            (1, 1024.0),
            (2, 2048.0),
        ]
        assert plan.sort_order == (2048 + ACCOMMODATION_SORT_ORDER) / 2


class TestReorder:
    def test_move_to_front_renumbers_contiguously(self):
        items = day_of(1024, 2048, 3072, 4096, 5120) + [
            Row(id=6, sort_order=9000, category=ItemCategory.accommodation)
        ]
        assignments = reorder(items, moved_item_id=4, target_index=0)

        assert [(a.item_id, a.sort_order) for a in assignments] == [
            (4, 1.0),
            (1, 2.0),
            (2, 3.0),
            (3, 4.0),
            (5, 5.0),
        ]

    def test_drifted_accommodation_is_put_back_on_the_sentinel(self):
        items = day_of(1, 2) + [
            Row(id=3, sort_order=3, category=ItemCategory.accommodation)
        ]
        assignments = reorder(items, moved_item_id=2, target_index=0)
        assert (3, 9000) in [(a.item_id, a.sort_order) for a in assignments]

    def test_target_index_is_clamped(self):
        assignments = reorder(day_of(1, 2, 3), moved_item_id=1, target_index=99)
        assert [a.item_id for a in assignments] == [2, 3, 1]

    def test_unknown_item(self):
        with pytest.raises(UnknownItemError):
            reorder(day_of(1, 2), moved_item_id=7, target_index=0)


def test_renumber_skips_accommodation():
    items = day_of(1, 1.5) + [
        Row(id=3, sort_order=9000, category=ItemCategory.accommodation)
    ]
    assert [(a.item_id, a.sort_order) for a in renumber(items)] == [
        (1, 1024.0),
        (2, 2048.0),
    ]


def test_renumber_shrinks_the_step_below_a_ceiling():
    assignments = renumber(day_of(*range(1, 12)), ceiling=ACCOMMODATION_SORT_ORDER)
    assert [a.sort_order for a in assignments] == [750.0 * n for n in range(1, 12)]


def test_sort_items_breaks_ties_by_accommodation_then_time():
    items = [
        Row(id=1, sort_order=9000, category=ItemCategory.accommodation),
        Row(id=2, sort_order=9000),
        Row(id=3, sort_order=9000, start_time=time(8, 0)),
        Row(id=4, sort_order=0),
    ]
    assert [i.id for i in sort_items(items)] == [4, 3, 2, 1]
