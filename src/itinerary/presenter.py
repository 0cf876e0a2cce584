"""Maps stored items to the card kind used for display, plus display helpers."""

from datetime import date, time
from enum import Enum
from typing import Optional, Sequence

from pydantic import BaseModel

from models import ItemCategory, ItineraryItem, TripDay
from .transport_time import MINUTES_PER_DAY, TimeLike, minutes_of_day, parse_time


class CardKind(str, Enum):
    transport = "transport"
    arrival = "arrival"
    accommodation = "accommodation"
    continuation_stay = "continuation_stay"
    note = "note"
    general = "general"


def classify(item: ItineraryItem) -> CardKind:
    match item.category:
        case ItemCategory.transport:
            return CardKind.arrival if item.is_arrival_card else CardKind.transport
        case ItemCategory.accommodation:
            if item.is_generated_stay:
                return CardKind.continuation_stay
            return CardKind.accommodation
        case ItemCategory.note:
            return CardKind.note
        case _:
            return CardKind.general


def format_display_time(value: TimeLike, is_24hr: bool = True) -> str:
    """Format a wall-clock time as HH:MM, or 上午/下午 hh:mm in 12h mode."""
    t = parse_time(value)
    if t is None:
        return "--:--"
    if is_24hr:
        return f"{t.hour:02d}:{t.minute:02d}"
    period = "下午" if t.hour >= 12 else "上午"
    hour = t.hour % 12 or 12
    return f"{period} {hour:02d}:{t.minute:02d}"


def general_duration(start: TimeLike, end: TimeLike) -> str:
    """Duration of a non-transport item; an end before the start wraps past midnight."""
    start, end = parse_time(start), parse_time(end)
    if start is None or end is None:
        return ""
    diff = minutes_of_day(end) - minutes_of_day(start)
    if diff < 0:
        diff += MINUTES_PER_DAY
    hours, minutes = divmod(diff, 60)
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    return " ".join(parts)


def opening_hours_for(day: date, opening_hours: Optional[str]) -> Optional[str]:
    """Pick the line of a weekly opening-hours text that applies to a date."""
    if not opening_hours:
        return None
    english = day.strftime("%A")
    chinese = "星期" + "一二三四五六日"[day.weekday()]
    for line in opening_hours.split("\n"):
        if english in line or chinese in line:
            return line
    return None


def card_times(item: ItineraryItem) -> tuple[Optional[time], Optional[time]]:
    """Times shown on a card. Arrival cards show their own start as the arrival."""
    if item.is_arrival_card:
        return item.transport_details.original_start_time, item.start_time
    return item.start_time, item.end_time


class ItemCard(BaseModel):
    """Display-ready view of one item, formatted for the trip's clock setting."""

    item_id: int
    kind: CardKind
    start_text: str
    end_text: str
    duration_text: str = ""
    opening_hours_today: Optional[str] = None


def present_item(item: ItineraryItem, day_date: date, is_24hr: bool = True) -> ItemCard:
    start, end = card_times(item)
    transport = item.transport_details
    duration = transport.duration_text if transport else general_duration(start, end)
    return ItemCard(
        item_id=item.id,
        kind=classify(item),
        start_text=format_display_time(start, is_24hr),
        end_text=format_display_time(end, is_24hr),
        duration_text=duration,
        opening_hours_today=opening_hours_for(day_date, item.opening_hours),
    )


def present_day(
    items: Sequence[ItineraryItem], day: TripDay, is_24hr: bool = True
) -> list[ItemCard]:
    return [present_item(item, day.day_date, is_24hr) for item in items]
