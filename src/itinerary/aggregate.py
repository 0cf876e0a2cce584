"""Trip/day invariants and synthesis of companion items."""

import logging
from datetime import date, timedelta
from typing import Optional, Sequence

from models import (
    ItemCategory,
    ItineraryItem,
    TripDay,
    dump_details,
)
from .ordering import ACCOMMODATION_SORT_ORDER

logger = logging.getLogger(__name__)

CONTINUATION_STAY_PREFIX = "🏨 住宿: "


class DaySequenceError(ValueError):
    """A trip's days do not cover its date range contiguously."""


def day_dates(start_date: date, end_date: date) -> list[date]:
    """Every calendar date in [start_date, end_date]."""
    if end_date < start_date:
        raise ValueError(f"Trip ends ({end_date}) before it starts ({start_date})")
    span = (end_date - start_date).days + 1
    return [start_date + timedelta(days=i) for i in range(span)]


def verify_day_sequence(
    days: Sequence[TripDay], start_date: date, end_date: date
) -> None:
    """
    Check that days are numbered 1..n without gaps and match the date range.

    Raises:
        DaySequenceError: On a count, numbering or date mismatch.
    """
    expected = (end_date - start_date).days + 1
    if len(days) != expected:
        raise DaySequenceError(f"Expected {expected} days, got {len(days)}")

    for index, day in enumerate(sorted(days, key=lambda d: d.day_number)):
        if day.day_number != index + 1:
            raise DaySequenceError(f"Day numbering gap at position {index + 1}")
        if day.day_date != start_date + timedelta(days=index):
            raise DaySequenceError(
                f"Day {day.day_number} has date {day.day_date}, expected "
                f"{start_date + timedelta(days=index)}"
            )


def arrival_target_day(
    days: Sequence[TripDay], day_id: int, offset: int
) -> Optional[TripDay]:
    """The day `offset` days after `day_id`, or None when past the trip's end."""
    ordered = sorted(days, key=lambda d: d.day_number)
    index = next((i for i, d in enumerate(ordered) if d.id == day_id), None)
    if index is None:
        return None
    target = index + offset
    if target < 0 or target >= len(ordered):
        return None
    return ordered[target]


def continuation_stay_days(
    days: Sequence[TripDay], checkin: Optional[date], checkout: Optional[date]
) -> list[TripDay]:
    """
    Days that need a continuation-stay card: nights 2..n of the stay.

    The stay is anchored on the day whose date equals checkin exactly.
    Nights running past the end of the trip are dropped.
    """
    if not checkin or not checkout or checkin == checkout:
        return []

    ordered = sorted(days, key=lambda d: d.day_number)
    start = next((i for i, d in enumerate(ordered) if d.day_date == checkin), None)
    if start is None:
        logger.info(f"No trip day matches check-in date {checkin}, skipping stays")
        return []

    nights = abs((checkout - checkin).days)
    return ordered[start + 1 : start + nights]


def build_arrival_card(origin: ItineraryItem, target_day: TripDay) -> ItineraryItem:
    """Companion card on the arrival day of a transport leg that crosses days."""
    details = origin.transport_details.model_copy(
        update={
            "is_arrival_card": True,
            "original_start_time": origin.start_time,
            "arrival_day_offset": 0,
        }
    )
    return ItineraryItem(
        trip_id=target_day.trip_id,
        trip_day_id=target_day.id,
        name=origin.name,
        category=ItemCategory.transport,
        location_name=origin.location_name,
        address=origin.address,
        website=origin.website,
        cost=origin.cost,
        notes=origin.notes,
        start_time=origin.end_time,
        end_time=origin.end_time,
        currency=origin.currency,
        sort_order=0,
        details=dump_details(details),
        derived_from_item_id=origin.id,
    )


def build_continuation_stay(
    origin: ItineraryItem,
    day: TripDay,
    sentinel: float = ACCOMMODATION_SORT_ORDER,
) -> ItineraryItem:
    details = origin.accommodation_details.model_copy(
        update={"is_generated_stay": True}
    )
    return ItineraryItem(
        trip_id=day.trip_id,
        trip_day_id=day.id,
        name=f"{CONTINUATION_STAY_PREFIX}{origin.name}",
        category=ItemCategory.accommodation,
        location_name=origin.location_name,
        address=origin.address,
        currency=origin.currency,
        sort_order=sentinel,
        details=dump_details(details),
        derived_from_item_id=origin.id,
    )
