"""Trip and day models for itinerary planning."""

import re
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field as PydanticField, field_validator, model_validator
from sqlmodel import Field, SQLModel, Column, DateTime, Index

LIST_SEPARATOR = re.compile(r"[,，]")
UNKNOWN_COUNTRY = "XX"
DEFAULT_MEMBER_ROLE = "editor"


class Trip(SQLModel, table=True):
    """
    A trip spanning an inclusive date range.
    A non-null share_token makes the trip publicly readable.
    """

    __tablename__: str = "trip"

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: str = Field(max_length=255, index=True)
    title: str = Field(max_length=255)
    start_date: date
    end_date: date
    budget_goal: Optional[Decimal] = Field(
        default=None,
        max_digits=12,
        decimal_places=2,
    )
    is_24hr: bool = Field(default=True, description="Display times in 24h format")
    share_token: Optional[str] = Field(
        default=None,
        max_length=64,
        unique=True,
        index=True,
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    @property
    def is_public(self) -> bool:
        return self.share_token is not None

    @property
    def day_count(self) -> int:
        """Inclusive number of calendar days in the trip."""
        return (self.end_date - self.start_date).days + 1


class TripDay(SQLModel, table=True):
    """
    One calendar day of a trip.
    `revision` is bumped on every reorder write so concurrent reorders can be detected.
    """

    __tablename__: str = "trip_day"

    id: Optional[int] = Field(default=None, primary_key=True)
    trip_id: int = Field(foreign_key="trip.id", index=True, ondelete="CASCADE")
    day_number: int
    day_date: date
    title: Optional[str] = Field(default=None, max_length=255)
    revision: int = Field(default=0)

    __table_args__ = (
        Index("idx_trip_day_trip_number", "trip_id", "day_number", unique=True),
    )


class TripDestination(SQLModel, table=True):
    """A place a trip visits, shown on the trip list."""

    __tablename__: str = "trip_destination"

    id: Optional[int] = Field(default=None, primary_key=True)
    trip_id: int = Field(foreign_key="trip.id", index=True, ondelete="CASCADE")
    location_name: str = Field(max_length=255)
    country_code: str = Field(default=UNKNOWN_COUNTRY, max_length=8)


class TripMember(SQLModel, table=True):
    """A companion invited to a trip by email."""

    __tablename__: str = "trip_member"

    id: Optional[int] = Field(default=None, primary_key=True)
    trip_id: int = Field(foreign_key="trip.id", index=True, ondelete="CASCADE")
    email: str = Field(max_length=255)
    role: str = Field(default=DEFAULT_MEMBER_ROLE, max_length=32)


def split_names(value: object) -> object:
    """Split a comma separated string (ASCII or full-width commas) into names."""
    if isinstance(value, str):
        return [part.strip() for part in LIST_SEPARATOR.split(value) if part.strip()]
    if isinstance(value, list):
        value = [part.strip() if isinstance(part, str) else part for part in value]
        return [part for part in value if part != ""]
    return value


class TripCreate(BaseModel):
    """Input for creating a trip together with its days."""

    owner_id: str = PydanticField(min_length=1, max_length=255)
    title: str = PydanticField(min_length=1, max_length=255)
    start_date: date
    end_date: date
    budget_goal: Optional[Decimal] = PydanticField(default=None, ge=0)
    is_24hr: bool = True
    destinations: list[str] = PydanticField(default_factory=list)
    members: list[str] = PydanticField(default_factory=list)

    @field_validator("destinations", "members", mode="before")
    @classmethod
    def split_lists(cls, value):
        return split_names(value)

    @model_validator(mode="after")
    def check_date_range(self) -> "TripCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class TripSettingsUpdate(BaseModel):
    """Editable trip settings. Only fields that are set get written."""

    title: Optional[str] = PydanticField(default=None, min_length=1, max_length=255)
    budget_goal: Optional[Decimal] = PydanticField(default=None, ge=0)
    is_24hr: Optional[bool] = None
    members: Optional[list[str]] = None

    @field_validator("members", mode="before")
    @classmethod
    def split_members(cls, value):
        return split_names(value)

    def changes(self) -> dict:
        """Trip columns to write; members are replaced separately."""
        return self.model_dump(exclude_unset=True, exclude={"members"})
