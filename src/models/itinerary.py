"""Itinerary item model for trip planning."""

from datetime import datetime, time, timezone
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field as PydanticField, model_validator
from sqlalchemy import JSON
from sqlmodel import Field, SQLModel, Column, DateTime, Index, Text

from .details import (
    AccommodationDetails,
    ItemCategory,
    ItemDetails,
    TransportDetails,
    dump_details,
    parse_details,
)
from .trip import TripDay


class ItineraryItem(SQLModel, table=True):
    """A single itinerary entry belonging to one trip day."""

    __tablename__: str = "itinerary_item"

    id: Optional[int] = Field(default=None, primary_key=True)
    trip_id: int = Field(foreign_key="trip.id", index=True, ondelete="CASCADE")
    trip_day_id: int = Field(foreign_key="trip_day.id", index=True, ondelete="CASCADE")
    category: ItemCategory = Field(default=ItemCategory.activity)
    name: str = Field(max_length=255)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    location_name: Optional[str] = Field(default=None, max_length=255)
    address: Optional[str] = Field(default=None, max_length=500)
    phone: Optional[str] = Field(default=None, max_length=64)
    website: Optional[str] = Field(default=None, max_length=500)
    rating: Optional[float] = None
    opening_hours: Optional[str] = Field(default=None, sa_column=Column(Text))
    cost: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    currency: str = Field(default="TWD", max_length=8)
    notes: Optional[str] = Field(default=None, sa_column=Column(Text))
    attachment_url: Optional[str] = Field(default=None, max_length=1000)
    attachment_type: Optional[str] = Field(default=None, max_length=16)
    is_reserved: bool = Field(default=False)
    reservation_agent: Optional[str] = Field(default=None, max_length=255)
    reservation_advance_time: Optional[str] = Field(default=None, max_length=255)
    sort_order: float = Field(default=0)
    # Category-specific payload, see models.details
    details: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    # Set on synthesized arrival cards and continuation stays
    derived_from_item_id: Optional[int] = Field(
        default=None,
        foreign_key="itinerary_item.id",
        ondelete="CASCADE",
        index=True,
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    __table_args__ = (
        Index("idx_itinerary_item_day_order", "trip_day_id", "sort_order"),
    )

    @property
    def is_accommodation(self) -> bool:
        return self.category == ItemCategory.accommodation

    @property
    def transport_details(self) -> Optional[TransportDetails]:
        if self.category != ItemCategory.transport:
            return None
        return parse_details(ItemCategory.transport, self.details)

    @property
    def accommodation_details(self) -> Optional[AccommodationDetails]:
        if self.category != ItemCategory.accommodation:
            return None
        return parse_details(ItemCategory.accommodation, self.details)

    @property
    def is_arrival_card(self) -> bool:
        t = self.transport_details
        return bool(t and t.is_arrival_card)

    @property
    def is_generated_stay(self) -> bool:
        a = self.accommodation_details
        return bool(a and a.is_generated_stay)

    @property
    def is_companion(self) -> bool:
        """True for records synthesized from another item."""
        return self.derived_from_item_id is not None


class ItemDraft(BaseModel):
    """Validated input for a new itinerary item."""

    category: ItemCategory = ItemCategory.activity
    name: str = PydanticField(min_length=1, max_length=255)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    location_name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    rating: Optional[float] = None
    opening_hours: Optional[str] = None
    cost: Decimal = Decimal("0")
    currency: str = "TWD"
    notes: Optional[str] = None
    attachment_url: Optional[str] = None
    attachment_type: Optional[str] = None
    is_reserved: bool = False
    reservation_agent: Optional[str] = None
    reservation_advance_time: Optional[str] = None
    details: Optional[ItemDetails] = None

    @model_validator(mode="before")
    @classmethod
    def validate_details_for_category(cls, data: Any) -> Any:
        if isinstance(data, dict):
            category = data.get("category", ItemCategory.activity)
            data = {**data, "details": parse_details(category, data.get("details"))}
        return data

    def to_item(self, day: TripDay, sort_order: float) -> ItineraryItem:
        fields = self.model_dump(exclude={"details"})
        return ItineraryItem(
            **fields,
            trip_id=day.trip_id,
            trip_day_id=day.id,
            sort_order=sort_order,
            details=dump_details(self.details),
        )


class ItemPatch(BaseModel):
    """Partial update of an itinerary item. Only set fields are applied."""

    name: Optional[str] = PydanticField(default=None, min_length=1, max_length=255)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    location_name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    rating: Optional[float] = None
    opening_hours: Optional[str] = None
    cost: Optional[Decimal] = None
    currency: Optional[str] = None
    notes: Optional[str] = None
    is_reserved: Optional[bool] = None
    reservation_agent: Optional[str] = None
    reservation_advance_time: Optional[str] = None
    details: Optional[dict] = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)
