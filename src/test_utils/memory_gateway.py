"""In-memory PersistenceGateway for planner tests."""

import itertools
from datetime import date
from typing import Any, Optional, Sequence, TypeVar

from sqlmodel import SQLModel

from gateway import NotFoundError, PersistenceError, StaleRevisionError
from itinerary.ordering import SortAssignment
from models import ItineraryItem, Trip, TripDay, TripDestination, TripMember

T = TypeVar("T", bound=SQLModel)


def _copy(obj: T) -> T:
    return type(obj).model_validate(obj.model_dump())


class InMemoryGateway:
    """
    Stores trips, days, items, destinations and members in dicts and hands
    out copies, like a real backend would. Set `batch_error` or
    `failing_days` to make writes fail.
    """

    def __init__(self):
        self.trips: dict[int, Trip] = {}
        self.days: dict[int, TripDay] = {}
        self.items: dict[int, ItineraryItem] = {}
        self.destinations: dict[int, TripDestination] = {}
        self.members: dict[int, TripMember] = {}
        self._ids = itertools.count(1)

        self.batch_error: Optional[PersistenceError] = None
        self.failing_days: set[int] = set()
        self.batch_calls: list[list[SortAssignment]] = []
        self.list_calls = 0

    def _get(self, store: dict[int, T], kind: str, key: int) -> T:
        if key not in store:
            raise NotFoundError(kind, key)
        return store[key]

    # Trips

    async def create_trip(self, trip: Trip) -> Trip:
        trip = _copy(trip)
        trip.id = next(self._ids)
        self.trips[trip.id] = trip
        return _copy(trip)

    async def list_trips(self, owner_id: str) -> list[Trip]:
        trips = [t for t in self.trips.values() if t.owner_id == owner_id]
        return [_copy(t) for t in sorted(trips, key=lambda t: t.start_date)]

    async def get_trip(self, trip_id: int) -> Optional[Trip]:
        trip = self.trips.get(trip_id)
        return _copy(trip) if trip else None

    async def get_trip_by_share_token(self, share_token: str) -> Optional[Trip]:
        for trip in self.trips.values():
            if trip.share_token == share_token:
                return _copy(trip)
        return None

    async def update_trip(self, trip_id: int, patch: dict[str, Any]) -> Trip:
        trip = self._get(self.trips, "Trip", trip_id)
        for field, value in patch.items():
            setattr(trip, field, value)
        return _copy(trip)

    async def delete_trip(self, trip_id: int) -> None:
        self._get(self.trips, "Trip", trip_id)
        self.items = {k: v for k, v in self.items.items() if v.trip_id != trip_id}
        self.days = {k: v for k, v in self.days.items() if v.trip_id != trip_id}
        self.destinations = {
            k: v for k, v in self.destinations.items() if v.trip_id != trip_id
        }
        self.members = {k: v for k, v in self.members.items() if v.trip_id != trip_id}
        del self.trips[trip_id]

    # Destinations and members

    async def create_destinations(
        self, trip_id: int, names: Sequence[str]
    ) -> list[TripDestination]:
        created = []
        for name in names:
            destination = TripDestination(
                id=next(self._ids), trip_id=trip_id, location_name=name, country_code="XX"
            )
            self.destinations[destination.id] = destination
            created.append(_copy(destination))
        return created

    async def list_destinations(self, trip_id: int) -> list[TripDestination]:
        return [_copy(d) for d in self.destinations.values() if d.trip_id == trip_id]

    async def list_members(self, trip_id: int) -> list[TripMember]:
        return [_copy(m) for m in self.members.values() if m.trip_id == trip_id]

    async def replace_members(
        self, trip_id: int, emails: Sequence[str]
    ) -> list[TripMember]:
        self._get(self.trips, "Trip", trip_id)
        self.members = {k: v for k, v in self.members.items() if v.trip_id != trip_id}
        created = []
        for email in emails:
            member = TripMember(id=next(self._ids), trip_id=trip_id, email=email, role="editor")
            self.members[member.id] = member
            created.append(_copy(member))
        return created

    # Days

    async def create_days(self, trip_id: int, dates: Sequence[date]) -> list[TripDay]:
        days = []
        for index, day_date in enumerate(dates):
            day = TripDay(
                id=next(self._ids),
                trip_id=trip_id,
                day_number=index + 1,
                day_date=day_date,
                title=f"Day {index + 1}",
                revision=0,
            )
            self.days[day.id] = day
            days.append(_copy(day))
        return days

    async def list_days(self, trip_id: int) -> list[TripDay]:
        days = [d for d in self.days.values() if d.trip_id == trip_id]
        return [_copy(d) for d in sorted(days, key=lambda d: d.day_number)]

    async def get_day(self, day_id: int) -> Optional[TripDay]:
        day = self.days.get(day_id)
        return _copy(day) if day else None

    async def update_day(self, day_id: int, patch: dict[str, Any]) -> TripDay:
        day = self._get(self.days, "TripDay", day_id)
        for field, value in patch.items():
            setattr(day, field, value)
        return _copy(day)

    # Items

    async def list_items(self, day_id: int) -> list[ItineraryItem]:
        self.list_calls += 1
        items = [i for i in self.items.values() if i.trip_day_id == day_id]
        return [_copy(i) for i in sorted(items, key=lambda i: i.sort_order)]

    async def list_trip_items(self, trip_id: int) -> list[ItineraryItem]:
        items = [i for i in self.items.values() if i.trip_id == trip_id]
        return [_copy(i) for i in sorted(items, key=lambda i: i.sort_order)]

    async def get_item(self, item_id: int) -> Optional[ItineraryItem]:
        item = self.items.get(item_id)
        return _copy(item) if item else None

    async def list_derived_items(self, item_id: int) -> list[ItineraryItem]:
        return [
            _copy(i) for i in self.items.values() if i.derived_from_item_id == item_id
        ]

    async def create_item(self, item: ItineraryItem) -> ItineraryItem:
        if item.trip_day_id in self.failing_days:
            raise PersistenceError(f"Item creation on day {item.trip_day_id} failed")
        item = _copy(item)
        item.id = next(self._ids)
        self.items[item.id] = item
        return _copy(item)

    async def update_item(self, item_id: int, patch: dict[str, Any]) -> None:
        item = self._get(self.items, "ItineraryItem", item_id)
        for field, value in patch.items():
            setattr(item, field, value)

    async def batch_upsert_items(
        self,
        day_id: int,
        assignments: Sequence[SortAssignment],
        expected_revision: Optional[int] = None,
    ) -> int:
        self.batch_calls.append(list(assignments))
        if self.batch_error is not None:
            raise self.batch_error

        day = self._get(self.days, "TripDay", day_id)
        if expected_revision is not None and day.revision != expected_revision:
            raise StaleRevisionError(day_id, expected_revision, day.revision)
        for assignment in assignments:
            item = self._get(self.items, "ItineraryItem", assignment.item_id)
            if item.trip_day_id != day_id:
                raise NotFoundError(f"ItineraryItem in day {day_id}", item.id)

        for assignment in assignments:
            self.items[assignment.item_id].sort_order = assignment.sort_order
        day.revision += 1
        return day.revision

    async def delete_item(self, item_id: int) -> None:
        self._get(self.items, "ItineraryItem", item_id)
        del self.items[item_id]
