"""Category-specific detail payloads stored on itinerary items."""

from datetime import date, time
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ItemCategory(str, Enum):
    activity = "activity"
    food = "food"
    accommodation = "accommodation"
    transport = "transport"
    note = "note"
    other = "other"


class TransportSubType(str, Enum):
    flight_train = "flight_train"
    car_bus = "car_bus"
    public = "public"


class Traveler(BaseModel):
    """A passenger on a transport leg."""

    name: str = ""
    seat: str = ""
    booking_ref: str = ""
    cost: Optional[Decimal] = None


class TransportDetails(BaseModel):
    """Details for a transport leg (flight, train, car or public transit)."""

    model_config = ConfigDict(extra="ignore")

    sub_type: TransportSubType = TransportSubType.flight_train
    company: str = ""
    vehicle_number: str = ""
    departure_terminal: str = ""
    arrival_terminal: str = ""
    arrival_location: str = ""
    # UTC offsets in minutes, only known when resolved from a place lookup
    dep_offset: Optional[int] = None
    arr_offset: Optional[int] = None
    duration_text: str = ""
    arrival_day_offset: int = 0
    distance_text: str = ""
    route_duration_minutes: int = Field(default=0, ge=0)
    buffer_minutes: int = Field(default=0, ge=0)
    checkin_time: str = ""
    checkin_counter: str = ""
    lounge_name: str = ""
    travelers: list[Traveler] = Field(default_factory=list)
    is_arrival_card: bool = False
    original_start_time: Optional[time] = None


class AccommodationDetails(BaseModel):
    """Details for a lodging stay."""

    model_config = ConfigDict(extra="ignore")

    checkin_date: Optional[date] = None
    checkout_date: Optional[date] = None
    agent: str = ""
    phone: str = ""
    is_paid: bool = False
    currency: str = "TWD"
    is_generated_stay: bool = False

    @property
    def nights(self) -> int:
        if not self.checkin_date or not self.checkout_date:
            return 0
        return abs((self.checkout_date - self.checkin_date).days)


ItemDetails = Union[TransportDetails, AccommodationDetails]

_DETAILS_BY_CATEGORY: dict[ItemCategory, type[BaseModel]] = {
    ItemCategory.transport: TransportDetails,
    ItemCategory.accommodation: AccommodationDetails,
}


def parse_details(category: ItemCategory, raw: Any) -> Optional[ItemDetails]:
    """
    Validate a loosely-typed details payload against the shape for its category.

    Categories without a details shape always yield None.

    Raises:
        pydantic.ValidationError: If the payload does not match the category's shape.
    """
    model = _DETAILS_BY_CATEGORY.get(ItemCategory(category))
    if model is None:
        return None
    if raw is None:
        return model()
    if isinstance(raw, model):
        return raw
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    return model.model_validate(raw)


def dump_details(details: Optional[ItemDetails]) -> Optional[dict]:
    """Serialize a details payload for the JSON column."""
    if details is None:
        return None
    return details.model_dump(mode="json")
