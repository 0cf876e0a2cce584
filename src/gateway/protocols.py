from datetime import date
from typing import Any, Optional, Protocol, Sequence

from pydantic import BaseModel

from itinerary.ordering import SortAssignment
from itinerary.transport_time import RouteMode
from models import ItineraryItem, Trip, TripDay, TripDestination, TripMember


class RouteResult(BaseModel):
    """A resolved route between two places."""

    distance_text: str
    duration_seconds: int
    mode: RouteMode


class PersistenceGateway(Protocol):
    """Data access used by the planner. Every call is an await point."""

    async def create_trip(self, trip: Trip) -> Trip: ...

    async def list_trips(self, owner_id: str) -> list[Trip]: ...

    async def get_trip(self, trip_id: int) -> Optional[Trip]: ...

    async def get_trip_by_share_token(self, share_token: str) -> Optional[Trip]: ...

    async def update_trip(self, trip_id: int, patch: dict[str, Any]) -> Trip: ...

    async def delete_trip(self, trip_id: int) -> None: ...

    async def create_destinations(
        self, trip_id: int, names: Sequence[str]
    ) -> list[TripDestination]: ...

    async def list_destinations(self, trip_id: int) -> list[TripDestination]: ...

    async def list_members(self, trip_id: int) -> list[TripMember]: ...

    async def replace_members(
        self, trip_id: int, emails: Sequence[str]
    ) -> list[TripMember]:
        """Delete the trip's members and insert the given ones in one transaction."""
        ...

    async def create_days(self, trip_id: int, dates: Sequence[date]) -> list[TripDay]: ...

    async def list_days(self, trip_id: int) -> list[TripDay]: ...

    async def get_day(self, day_id: int) -> Optional[TripDay]: ...

    async def update_day(self, day_id: int, patch: dict[str, Any]) -> TripDay: ...

    async def list_items(self, day_id: int) -> list[ItineraryItem]: ...

    async def list_trip_items(self, trip_id: int) -> list[ItineraryItem]: ...

    async def get_item(self, item_id: int) -> Optional[ItineraryItem]: ...

    async def list_derived_items(self, item_id: int) -> list[ItineraryItem]: ...

    async def create_item(self, item: ItineraryItem) -> ItineraryItem: ...

    async def update_item(self, item_id: int, patch: dict[str, Any]) -> None: ...

    async def batch_upsert_items(
        self,
        day_id: int,
        assignments: Sequence[SortAssignment],
        expected_revision: Optional[int] = None,
    ) -> int:
        """Write all sort positions or none; returns the day's new revision."""
        ...

    async def delete_item(self, item_id: int) -> None: ...


class AttachmentUploader(Protocol):
    async def upload(self, data: bytes, content_type: str, filename: str) -> str:
        """Store a file and return its public URL."""
        ...


class RouteLookup(Protocol):
    async def compute_route(
        self, origin: str, destination: str, mode: RouteMode
    ) -> Optional[RouteResult]:
        """Resolve a route, or None when the lookup fails."""
        ...
