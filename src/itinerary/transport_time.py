"""
Duration and arrival-time derivation for transport legs.

Everything here is a pure function of its inputs. Route lookups happen in the
caller; their results (or None on failure) are passed in. Bad or inconsistent
inputs degrade to "no duration" instead of raising.
"""

import math
from dataclasses import dataclass
from datetime import time
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from models import TransportDetails, TransportSubType

MINUTES_PER_DAY = 24 * 60
DEFAULT_TRANSIT_MARGIN = Decimal("1.2")

AUTO_MARKER = "🤖 "
CAR_MARKER = "🚗 "
TRANSIT_MARKER = "🚌 "
WALKING_MARKER = "🚶 "

TimeLike = Union[time, str, None]


class RouteMode(str, Enum):
    driving = "driving"
    transit = "transit"
    walking = "walking"


@dataclass(frozen=True)
class DurationEstimate:
    """A derived duration. `is_auto` marks one computed from known timezones."""

    minutes: int
    text: str
    is_auto: bool = False


@dataclass(frozen=True)
class TransitEstimate:
    raw_minutes: int
    inflated_minutes: int
    buffer_minutes: int
    duration: DurationEstimate
    end_time: Optional[time] = None
    # None leaves the stored offset untouched
    arrival_day_offset: Optional[int] = None


@dataclass(frozen=True)
class SuggestedArrival:
    end_time: time
    arrival_day_offset: int


def parse_time(value: TimeLike) -> Optional[time]:
    """Parse "HH:MM" or "HH:MM:SS"; anything unparseable yields None."""
    if value is None or isinstance(value, time):
        return value
    try:
        parts = [int(p) for p in str(value).strip().split(":")]
        if len(parts) == 2:
            return time(parts[0], parts[1])
        if len(parts) == 3:
            return time(parts[0], parts[1], parts[2])
    except ValueError:
        return None
    return None


def minutes_of_day(t: time) -> int:
    return t.hour * 60 + t.minute


def add_minutes(start: time, minutes: int) -> tuple[time, int]:
    """Add minutes to a wall-clock time, returning (time, days wrapped)."""
    days, remainder = divmod(minutes_of_day(start) + minutes, MINUTES_PER_DAY)
    return time(remainder // 60, remainder % 60), days


def format_duration(minutes: int) -> str:
    return f"{minutes // 60}h {minutes % 60}m"


def flight_duration(
    start: TimeLike,
    end: TimeLike,
    arrival_day_offset: int = 0,
    dep_offset: Optional[int] = None,
    arr_offset: Optional[int] = None,
) -> Optional[DurationEstimate]:
    """
    Elapsed time of a flight or train leg across timezones.

    Unknown UTC offsets are treated as 0, i.e. both ends in the same zone.
    A negative elapsed time means the inputs disagree and yields None.
    """
    start, end = parse_time(start), parse_time(end)
    if start is None or end is None:
        return None

    departure_utc = minutes_of_day(start) - (dep_offset or 0)
    arrival_utc = (
        minutes_of_day(end)
        + (arrival_day_offset or 0) * MINUTES_PER_DAY
        - (arr_offset or 0)
    )
    elapsed = arrival_utc - departure_utc
    if elapsed < 0:
        return None

    is_auto = dep_offset is not None and arr_offset is not None
    text = format_duration(elapsed)
    return DurationEstimate(
        minutes=elapsed,
        text=f"{AUTO_MARKER}{text}" if is_auto else text,
        is_auto=is_auto,
    )


def car_duration(
    route_minutes: Optional[int], buffer_minutes: Optional[int]
) -> Optional[DurationEstimate]:
    total = (route_minutes or 0) + (buffer_minutes or 0)
    if total <= 0:
        return None
    return DurationEstimate(minutes=total, text=f"{CAR_MARKER}{format_duration(total)}")


def estimate_transit(
    duration_seconds: Optional[int],
    start: TimeLike = None,
    mode: RouteMode = RouteMode.transit,
    margin: Decimal = DEFAULT_TRANSIT_MARGIN,
) -> Optional[TransitEstimate]:
    """
    Inflate a public transit (or walking fallback) route by a safety margin.

    Args:
        duration_seconds: Raw leg duration from the route lookup
        start: Departure time; without it no end time is suggested
        mode: Route mode that produced the duration
        margin: Multiplier applied to the raw minutes, rounded up

    Returns:
        TransitEstimate, or None when there is no usable duration
    """
    if not duration_seconds or duration_seconds <= 0:
        return None

    raw = math.ceil(duration_seconds / 60)
    inflated = math.ceil(Decimal(raw) * Decimal(margin))
    marker = WALKING_MARKER if mode == RouteMode.walking else TRANSIT_MARKER
    duration = DurationEstimate(
        minutes=inflated, text=f"{marker}{format_duration(inflated)}"
    )

    start = parse_time(start)
    if start is None:
        return TransitEstimate(raw, inflated, inflated - raw, duration)

    end_time, wrapped = add_minutes(start, inflated)
    return TransitEstimate(
        raw,
        inflated,
        inflated - raw,
        duration,
        end_time=end_time,
        arrival_day_offset=1 if wrapped else None,
    )


def apply_suggested_time(
    start: TimeLike,
    route_minutes: Optional[int],
    buffer_minutes: Optional[int],
) -> Optional[SuggestedArrival]:
    """End time = start + route + buffer, with offset 1 if that passes midnight."""
    start = parse_time(start)
    if start is None:
        return None
    total = (route_minutes or 0) + (buffer_minutes or 0)
    end_time, wrapped = add_minutes(start, total)
    return SuggestedArrival(end_time=end_time, arrival_day_offset=1 if wrapped else 0)


def derive_transport(
    details: TransportDetails, start: TimeLike, end: TimeLike
) -> TransportDetails:
    """Recompute the duration text stored on a transport leg."""
    match details.sub_type:
        case TransportSubType.flight_train:
            estimate = flight_duration(
                start,
                end,
                details.arrival_day_offset,
                details.dep_offset,
                details.arr_offset,
            )
        case TransportSubType.car_bus:
            estimate = car_duration(
                details.route_duration_minutes, details.buffer_minutes
            )
        case _:
            # Public transit text comes from route resolution
            return details

    text = estimate.text if estimate else ""
    return details.model_copy(update={"duration_text": text})
