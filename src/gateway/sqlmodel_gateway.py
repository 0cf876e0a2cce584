"""Persistence gateway backed by a SQL database through SQLModel."""

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, AsyncIterator, Optional, Sequence, TypeVar

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from itinerary.ordering import SortAssignment
from models import ItineraryItem, Trip, TripDay, TripDestination, TripMember
from .errors import NotFoundError, PersistenceError, StaleRevisionError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=SQLModel)


class SQLModelGateway:
    """
    Gateway over an AsyncSession.

    Returned objects are expunged from the session, so a later rollback
    never expires an object the caller is still holding.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def _transaction(self, action: str) -> AsyncIterator[None]:
        try:
            yield
            await self.session.commit()
        except PersistenceError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"{action} failed: {e}")
            raise PersistenceError(f"{action} failed") from e

    @asynccontextmanager
    async def _read(self, action: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"{action} failed: {e}")
            raise PersistenceError(f"{action} failed") from e

    def _detach(self, obj: T) -> T:
        if obj in self.session:
            self.session.expunge(obj)
        return obj

    async def _require(self, model: type[T], key: int) -> T:
        obj = await self.session.get(model, key)
        if obj is None:
            raise NotFoundError(model.__name__, key)
        return obj

    async def _insert(self, action: str, obj: T) -> T:
        async with self._transaction(action):
            self.session.add(obj)
        async with self._read(action):
            await self.session.refresh(obj)
        return self._detach(obj)

    async def _patch(self, model: type[T], key: int, patch: dict[str, Any]) -> T:
        async with self._transaction(f"Update of {model.__name__} {key}"):
            obj = await self._require(model, key)
            for field, value in patch.items():
                setattr(obj, field, value)
            self.session.add(obj)
        return self._detach(obj)

    # Trips

    async def create_trip(self, trip: Trip) -> Trip:
        return await self._insert("Trip creation", trip)

    async def list_trips(self, owner_id: str) -> list[Trip]:
        async with self._read(f"Loading trips of {owner_id}"):
            result = await self.session.exec(
                select(Trip)
                .where(Trip.owner_id == owner_id)
                .order_by(col(Trip.start_date))
            )
            trips = result.all()
        return [self._detach(trip) for trip in trips]

    async def get_trip(self, trip_id: int) -> Optional[Trip]:
        async with self._read(f"Loading trip {trip_id}"):
            trip = await self.session.get(Trip, trip_id)
        return self._detach(trip) if trip else None

    async def get_trip_by_share_token(self, share_token: str) -> Optional[Trip]:
        async with self._read("Loading shared trip"):
            result = await self.session.exec(
                select(Trip).where(Trip.share_token == share_token)
            )
            trip = result.first()
        return self._detach(trip) if trip else None

    async def update_trip(self, trip_id: int, patch: dict[str, Any]) -> Trip:
        return await self._patch(Trip, trip_id, patch)

    async def delete_trip(self, trip_id: int) -> None:
        async with self._transaction(f"Deletion of trip {trip_id}"):
            trip = await self._require(Trip, trip_id)
            await self.session.execute(
                delete(ItineraryItem).where(col(ItineraryItem.trip_id) == trip_id)
            )
            for model in (TripDestination, TripMember):
                await self.session.execute(
                    delete(model).where(col(model.trip_id) == trip_id)
                )
            await self.session.execute(
                delete(TripDay).where(col(TripDay.trip_id) == trip_id)
            )
            await self.session.delete(trip)

    # Destinations and members

    async def create_destinations(
        self, trip_id: int, names: Sequence[str]
    ) -> list[TripDestination]:
        destinations = [
            TripDestination(trip_id=trip_id, location_name=name) for name in names
        ]
        async with self._transaction(f"Destination creation for trip {trip_id}"):
            self.session.add_all(destinations)
        async with self._read(f"Destination creation for trip {trip_id}"):
            for destination in destinations:
                await self.session.refresh(destination)
        return [self._detach(d) for d in destinations]

    async def list_destinations(self, trip_id: int) -> list[TripDestination]:
        async with self._read(f"Loading destinations of trip {trip_id}"):
            result = await self.session.exec(
                select(TripDestination)
                .where(TripDestination.trip_id == trip_id)
                .order_by(col(TripDestination.id))
            )
            destinations = result.all()
        return [self._detach(d) for d in destinations]

    async def list_members(self, trip_id: int) -> list[TripMember]:
        async with self._read(f"Loading members of trip {trip_id}"):
            result = await self.session.exec(
                select(TripMember)
                .where(TripMember.trip_id == trip_id)
                .order_by(col(TripMember.id))
            )
            members = result.all()
        return [self._detach(m) for m in members]

    async def replace_members(
        self, trip_id: int, emails: Sequence[str]
    ) -> list[TripMember]:
        members = [TripMember(trip_id=trip_id, email=email) for email in emails]
        async with self._transaction(f"Member update for trip {trip_id}"):
            await self._require(Trip, trip_id)
            await self.session.execute(
                delete(TripMember).where(col(TripMember.trip_id) == trip_id)
            )
            self.session.add_all(members)
        async with self._read(f"Member update for trip {trip_id}"):
            for member in members:
                await self.session.refresh(member)
        return [self._detach(m) for m in members]

    # Days

    async def create_days(self, trip_id: int, dates: Sequence[date]) -> list[TripDay]:
        days = [
            TripDay(
                trip_id=trip_id,
                day_number=index + 1,
                day_date=day_date,
                title=f"Day {index + 1}",
            )
            for index, day_date in enumerate(dates)
        ]
        async with self._transaction(f"Day creation for trip {trip_id}"):
            self.session.add_all(days)
        async with self._read(f"Day creation for trip {trip_id}"):
            for day in days:
                await self.session.refresh(day)
        return [self._detach(day) for day in days]

    async def list_days(self, trip_id: int) -> list[TripDay]:
        async with self._read(f"Loading days of trip {trip_id}"):
            result = await self.session.exec(
                select(TripDay)
                .where(TripDay.trip_id == trip_id)
                .order_by(col(TripDay.day_number))
            )
            days = result.all()
        return [self._detach(day) for day in days]

    async def get_day(self, day_id: int) -> Optional[TripDay]:
        async with self._read(f"Loading day {day_id}"):
            day = await self.session.get(TripDay, day_id)
        return self._detach(day) if day else None

    async def update_day(self, day_id: int, patch: dict[str, Any]) -> TripDay:
        return await self._patch(TripDay, day_id, patch)

    # Items

    async def list_items(self, day_id: int) -> list[ItineraryItem]:
        async with self._read(f"Loading items of day {day_id}"):
            result = await self.session.exec(
                select(ItineraryItem)
                .where(ItineraryItem.trip_day_id == day_id)
                .order_by(col(ItineraryItem.sort_order), col(ItineraryItem.start_time))
            )
            items = result.all()
        return [self._detach(item) for item in items]

    async def list_trip_items(self, trip_id: int) -> list[ItineraryItem]:
        async with self._read(f"Loading items of trip {trip_id}"):
            result = await self.session.exec(
                select(ItineraryItem)
                .where(ItineraryItem.trip_id == trip_id)
                .order_by(col(ItineraryItem.sort_order), col(ItineraryItem.start_time))
            )
            items = result.all()
        return [self._detach(item) for item in items]

    async def get_item(self, item_id: int) -> Optional[ItineraryItem]:
        async with self._read(f"Loading item {item_id}"):
            item = await self.session.get(ItineraryItem, item_id)
        return self._detach(item) if item else None

    async def list_derived_items(self, item_id: int) -> list[ItineraryItem]:
        async with self._read(f"Loading companions of item {item_id}"):
            result = await self.session.exec(
                select(ItineraryItem).where(
                    ItineraryItem.derived_from_item_id == item_id
                )
            )
            items = result.all()
        return [self._detach(item) for item in items]

    async def create_item(self, item: ItineraryItem) -> ItineraryItem:
        return await self._insert("Item creation", item)

    async def update_item(self, item_id: int, patch: dict[str, Any]) -> None:
        await self._patch(ItineraryItem, item_id, patch)

    async def batch_upsert_items(
        self,
        day_id: int,
        assignments: Sequence[SortAssignment],
        expected_revision: Optional[int] = None,
    ) -> int:
        """
        Write new sort positions for a day in a single transaction.

        Args:
            day_id: The day being reordered
            assignments: New sort positions
            expected_revision: Revision the caller read; None skips the check

        Returns:
            The day's revision after the write

        Raises:
            StaleRevisionError: If the day was reordered by someone else.
            NotFoundError: If the day or one of the items is missing.
            PersistenceError: On any other database failure.
        """
        async with self._transaction(f"Reorder of day {day_id}"):
            day = await self._require(TripDay, day_id)
            if expected_revision is not None and day.revision != expected_revision:
                raise StaleRevisionError(day_id, expected_revision, day.revision)

            for assignment in assignments:
                item = await self._require(ItineraryItem, assignment.item_id)
                if item.trip_day_id != day_id:
                    raise NotFoundError(f"ItineraryItem in day {day_id}", item.id)
                item.sort_order = assignment.sort_order
                self.session.add(item)

            day.revision += 1
            self.session.add(day)

        logger.info(
            f"Wrote {len(assignments)} sort positions for day {day_id}, "
            f"revision {day.revision}"
        )
        return day.revision

    async def delete_item(self, item_id: int) -> None:
        async with self._transaction(f"Deletion of item {item_id}"):
            item = await self._require(ItineraryItem, item_id)
            await self.session.delete(item)
