"""Itinerary orchestration: ordering, derivation and companion records over a gateway."""

import logging
import math
import time as clock
import uuid
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from config import Settings
from gateway import (
    AttachmentUploader,
    NotFoundError,
    PersistenceError,
    PersistenceGateway,
    RouteLookup,
)
from itinerary import (
    DayItemCache,
    ItemCard,
    RouteMode,
    SortAssignment,
    arrival_target_day,
    build_arrival_card,
    build_continuation_stay,
    continuation_stay_days,
    day_dates,
    derive_transport,
    estimate_transit,
    plan_append,
    plan_insert_after,
    present_day,
    reorder,
    sort_items,
    verify_day_sequence,
)
from itinerary.transport_time import apply_suggested_time as suggest_arrival
from models import (
    ItemCategory,
    ItemDraft,
    ItemPatch,
    ItineraryItem,
    TransportSubType,
    Trip,
    TripCreate,
    TripDay,
    TripDestination,
    TripMember,
    TripSettingsUpdate,
    dump_details,
    parse_details,
)
from .errors import StorageNotConfiguredError, UnsupportedOperationError

logger = logging.getLogger(__name__)


class TripPlan(BaseModel):
    """
    A trip with its days and each day's items in display order.
    `cards_by_day` holds the display view of the same items, with times
    formatted for the trip's 12h/24h setting.
    """

    trip: Trip
    days: list[TripDay]
    items_by_day: dict[int, list[ItineraryItem]] = Field(default_factory=dict)
    cards_by_day: dict[int, list[ItemCard]] = Field(default_factory=dict)
    destinations: list[TripDestination] = Field(default_factory=list)
    members: list[TripMember] = Field(default_factory=list)


class TripSummary(BaseModel):
    trip: Trip
    destinations: list[TripDestination] = Field(default_factory=list)


class TripOverview(BaseModel):
    """A user's trips, split on whether they have ended."""

    upcoming: list[TripSummary] = Field(default_factory=list)
    past: list[TripSummary] = Field(default_factory=list)


class ItemCreation(BaseModel):
    """Result of writing an item, including any companions synthesized for it."""

    item: ItineraryItem
    companions: list[ItineraryItem] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ItineraryPlanner:
    """Applies itinerary operations and persists them through the gateway."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        cache: DayItemCache,
        settings: Settings,
        storage: Optional[AttachmentUploader] = None,
        routes: Optional[RouteLookup] = None,
    ):
        self.gateway = gateway
        self.cache = cache
        self.settings = settings
        self.storage = storage
        self.routes = routes

    # Trips

    async def create_trip(self, request: TripCreate) -> TripPlan:
        """Create a trip and one day per calendar date in its range."""
        dates = day_dates(request.start_date, request.end_date)
        trip = await self.gateway.create_trip(
            Trip(**request.model_dump(exclude={"destinations", "members"}))
        )
        days = await self.gateway.create_days(trip.id, dates)
        verify_day_sequence(days, trip.start_date, trip.end_date)

        destinations, members = [], []
        if request.destinations:
            destinations = await self.gateway.create_destinations(
                trip.id, request.destinations
            )
        if request.members:
            members = await self.gateway.replace_members(trip.id, request.members)

        logger.info(f"Created trip {trip.id} '{trip.title}' with {len(days)} days")
        return TripPlan(
            trip=trip,
            days=days,
            items_by_day={d.id: [] for d in days},
            cards_by_day={d.id: [] for d in days},
            destinations=destinations,
            members=members,
        )

    async def list_trips(
        self, owner_id: str, today: Optional[date] = None
    ) -> TripOverview:
        """
        A user's trips as upcoming and past.

        A trip is past once its end date is before today. Upcoming trips are
        listed soonest first, past trips most recent first.
        """
        today = today or date.today()
        overview = TripOverview()
        for trip in await self.gateway.list_trips(owner_id):
            summary = TripSummary(
                trip=trip, destinations=await self.gateway.list_destinations(trip.id)
            )
            if trip.end_date < today:
                overview.past.append(summary)
            else:
                overview.upcoming.append(summary)

        overview.upcoming.sort(key=lambda s: s.trip.start_date)
        overview.past.sort(key=lambda s: s.trip.start_date, reverse=True)
        return overview

    async def get_trip_plan(self, trip_id: int) -> TripPlan:
        trip = await self._require_trip(trip_id)
        days = await self.gateway.list_days(trip_id)
        items_by_day = {day.id: await self.list_day_items(day.id) for day in days}
        return TripPlan(
            trip=trip,
            days=days,
            items_by_day=items_by_day,
            cards_by_day=self._cards(trip, days, items_by_day),
            destinations=await self.gateway.list_destinations(trip_id),
            members=await self.gateway.list_members(trip_id),
        )

    async def update_trip_settings(
        self, trip_id: int, update: TripSettingsUpdate
    ) -> Trip:
        """
        Write changed settings. A given member list replaces the trip's
        members as a whole.
        """
        changes = update.changes()
        if update.members is not None:
            await self._require_trip(trip_id)
            members = await self.gateway.replace_members(trip_id, update.members)
            logger.info(f"Trip {trip_id} now has {len(members)} members")
        if not changes:
            return await self._require_trip(trip_id)
        trip = await self.gateway.update_trip(trip_id, changes)
        logger.info(f"Updated settings of trip {trip_id}: {sorted(changes)}")
        return trip

    async def delete_trip(self, trip_id: int) -> None:
        days = await self.gateway.list_days(trip_id)
        await self.gateway.delete_trip(trip_id)
        for day in days:
            self.cache.invalidate(day.id)
        logger.info(f"Deleted trip {trip_id}")

    async def toggle_share(self, trip_id: int) -> Optional[str]:
        """Publish the trip under a fresh share token, or unpublish it."""
        trip = await self._require_trip(trip_id)
        token = None if trip.share_token else str(uuid.uuid4())
        await self.gateway.update_trip(trip_id, {"share_token": token})
        logger.info(f"Trip {trip_id} is now {'public' if token else 'private'}")
        return token

    def share_url(self, share_token: str) -> str:
        return f"{self.settings.public_base_url.rstrip('/')}/share/{share_token}"

    async def get_shared_trip(self, share_token: str) -> TripPlan:
        """Read-only view of a published trip."""
        trip = await self.gateway.get_trip_by_share_token(share_token)
        if trip is None:
            raise NotFoundError("Trip", "with this share link")
        days = await self.gateway.list_days(trip.id)
        items = await self.gateway.list_trip_items(trip.id)

        grouped: dict[int, list[ItineraryItem]] = {day.id: [] for day in days}
        for item in items:
            grouped.setdefault(item.trip_day_id, []).append(item)
        items_by_day = {k: sort_items(v) for k, v in grouped.items()}
        # Members stay private to the owner's view
        return TripPlan(
            trip=trip,
            days=days,
            items_by_day=items_by_day,
            cards_by_day=self._cards(trip, days, items_by_day),
            destinations=await self.gateway.list_destinations(trip.id),
        )

    # Days

    async def rename_day(self, day_id: int, title: Optional[str]) -> TripDay:
        return await self.gateway.update_day(day_id, {"title": title})

    async def list_day_items(
        self, day_id: int, refresh: bool = False
    ) -> list[ItineraryItem]:
        return await self.cache.load(day_id, self.gateway.list_items, refresh=refresh)

    # Items

    async def add_item(
        self,
        day_id: int,
        draft: ItemDraft,
        after_item_id: Optional[int] = None,
        at_start: bool = False,
    ) -> ItemCreation:
        """
        Add an item to a day.

        Without a position the item is appended. With after_item_id (or
        at_start) it is inserted into the gap at that spot, renumbering the
        day first if the gap is exhausted. Accommodation always takes the
        sentinel position.

        Companion records (arrival card, continuation stays) are synthesized
        afterwards; problems there become warnings on the result.
        """
        async with self.cache.lock(day_id):
            day = await self._require_day(day_id)
            items = await self.list_day_items(day_id)
            draft = self._prepare_draft(draft, day)

            sentinel = self.settings.accommodation_sort_order
            if draft.category == ItemCategory.accommodation:
                sort_order = sentinel
            else:
                if after_item_id is not None or at_start:
                    plan = plan_insert_after(
                        items, after_item_id, self.settings.sort_stride, sentinel
                    )
                else:
                    plan = plan_append(
                        items, draft.category, self.settings.sort_stride, sentinel
                    )
                if plan.renumbered:
                    await self._write_positions(day, plan.renumbered)
                sort_order = plan.sort_order

            item = await self.gateway.create_item(draft.to_item(day, sort_order))
            self.cache.invalidate(day_id)

        logger.info(
            f"Added {ItemCategory(item.category).value} item {item.id} to day {day_id} "
            f"at position {sort_order}"
        )
        creation = ItemCreation(item=item)
        await self._synthesize_companions(item, creation)
        return creation

    async def update_item(self, item_id: int, patch: ItemPatch) -> ItemCreation:
        """
        Apply a partial update, re-deriving transport durations.

        Details are patched key by key: keys missing from the patch keep
        their stored values. Companions of the item are rebuilt so they
        follow the new values.
        """
        item = await self._require_item(item_id)
        changes = patch.changes()

        details = item.details
        if "details" in changes:
            merged = {**(item.details or {}), **(changes["details"] or {})}
            details = dump_details(parse_details(item.category, merged))
        if item.category == ItemCategory.transport:
            derived = derive_transport(
                parse_details(ItemCategory.transport, details),
                changes.get("start_time", item.start_time),
                changes.get("end_time", item.end_time),
            )
            details = dump_details(derived)
        if details != item.details:
            changes["details"] = details

        await self.gateway.update_item(item_id, changes)
        self.cache.invalidate(item.trip_day_id)
        updated = await self._require_item(item_id)

        creation = ItemCreation(item=updated)
        if not updated.is_companion:
            await self._drop_companions(item_id)
            await self._synthesize_companions(updated, creation)
        return creation

    async def delete_item(self, item_id: int) -> None:
        """Delete an item together with the companions derived from it."""
        item = await self._require_item(item_id)
        await self._drop_companions(item_id)
        await self.gateway.delete_item(item_id)
        self.cache.invalidate(item.trip_day_id)
        logger.info(f"Deleted item {item_id} from day {item.trip_day_id}")

    async def reorder_day(
        self, day_id: int, moved_item_id: int, target_index: int
    ) -> list[ItineraryItem]:
        """
        Move an item to a new display index and renumber the day.

        The cache is updated before the write. If the write fails the cache
        is reset to what the backend holds and the error is re-raised.

        Raises:
            UnknownItemError: If the item is not in this day.
            PersistenceError: If the write did not go through.
        """
        async with self.cache.lock(day_id):
            day = await self._require_day(day_id)
            items = await self.list_day_items(day_id)
            assignments = reorder(
                items,
                moved_item_id,
                target_index,
                self.settings.accommodation_sort_order,
            )
            self.cache.apply_assignments(day_id, assignments)

            try:
                await self.gateway.batch_upsert_items(
                    day_id, assignments, expected_revision=day.revision
                )
            except PersistenceError as e:
                logger.error(f"Reorder of day {day_id} failed, reverting: {e}")
                await self._revert(day_id)
                raise

            return await self.list_day_items(day_id, refresh=True)

    async def apply_suggested_time(self, item_id: int) -> ItemCreation:
        """Set a road or transit leg's end time from its start plus route and buffer."""
        item = await self._require_item(item_id)
        details = item.transport_details
        if details is None or details.sub_type == TransportSubType.flight_train:
            raise UnsupportedOperationError(
                "Suggested times apply to car/bus and public transport only"
            )

        suggestion = suggest_arrival(
            item.start_time, details.route_duration_minutes, details.buffer_minutes
        )
        if suggestion is None:
            return ItemCreation(item=item)

        details = details.model_copy(
            update={"arrival_day_offset": suggestion.arrival_day_offset}
        )
        return await self.update_item(
            item_id,
            ItemPatch(end_time=suggestion.end_time, details=dump_details(details)),
        )

    async def refresh_route(self, item_id: int) -> Optional[ItemCreation]:
        """
        Look up the route of a car/bus or public transport leg and store the result.

        Returns None, leaving the item untouched, when there is nothing to look
        up or the lookup fails.
        """
        if self.routes is None:
            logger.warning("No route lookup configured")
            return None

        item = await self._require_item(item_id)
        details = item.transport_details
        if details is None or not item.location_name or not details.arrival_location:
            return None
        origin, destination = item.location_name, details.arrival_location

        match details.sub_type:
            case TransportSubType.car_bus:
                route = await self.routes.compute_route(
                    origin, destination, RouteMode.driving
                )
                if route is None:
                    logger.warning(f"No driving route for item {item_id}")
                    return None
                details = details.model_copy(
                    update={
                        "distance_text": route.distance_text,
                        "route_duration_minutes": math.ceil(route.duration_seconds / 60),
                    }
                )
                return await self.update_item(
                    item_id, ItemPatch(details=dump_details(details))
                )

            case TransportSubType.public:
                route = await self.routes.compute_route(
                    origin, destination, RouteMode.transit
                )
                if route is None:
                    logger.warning(f"Transit lookup failed for item {item_id}, trying walking")
                    route = await self.routes.compute_route(
                        origin, destination, RouteMode.walking
                    )
                if route is None:
                    return None

                estimate = estimate_transit(
                    route.duration_seconds,
                    item.start_time,
                    route.mode,
                    self.settings.transit_margin,
                )
                if estimate is None:
                    return None
                update = {
                    "distance_text": route.distance_text,
                    "route_duration_minutes": estimate.raw_minutes,
                    "buffer_minutes": estimate.buffer_minutes,
                    "duration_text": estimate.duration.text,
                }
                if estimate.arrival_day_offset is not None:
                    update["arrival_day_offset"] = estimate.arrival_day_offset
                fields = {"details": dump_details(details.model_copy(update=update))}
                if estimate.end_time is not None:
                    fields["end_time"] = estimate.end_time
                return await self.update_item(item_id, ItemPatch(**fields))

            case _:
                return None

    async def attach_file(
        self, item_id: int, data: bytes, content_type: str, filename: str
    ) -> ItineraryItem:
        """Upload a file and link it to an item."""
        if self.storage is None:
            raise StorageNotConfiguredError()
        item = await self._require_item(item_id)

        extension = filename.rsplit(".", 1)[-1] if "." in filename else "bin"
        path = f"{item.trip_id}_{int(clock.time() * 1000)}.{extension}"
        url = await self.storage.upload(data, content_type, path)

        attachment_type = "image" if content_type.startswith("image/") else "pdf"
        await self.gateway.update_item(
            item_id, {"attachment_url": url, "attachment_type": attachment_type}
        )
        self.cache.invalidate(item.trip_day_id)
        return await self._require_item(item_id)

    # Internals

    def _prepare_draft(self, draft: ItemDraft, day: TripDay) -> ItemDraft:
        if "currency" not in draft.model_fields_set:
            draft = draft.model_copy(update={"currency": self.settings.default_currency})

        match draft.category:
            case ItemCategory.transport:
                details = derive_transport(
                    draft.details, draft.start_time, draft.end_time
                )
                return draft.model_copy(update={"details": details})
            case ItemCategory.accommodation if draft.details.checkin_date is None:
                details = draft.details.model_copy(update={"checkin_date": day.day_date})
                return draft.model_copy(update={"details": details})
        return draft

    def _cards(
        self,
        trip: Trip,
        days: list[TripDay],
        items_by_day: dict[int, list[ItineraryItem]],
    ) -> dict[int, list[ItemCard]]:
        return {
            day.id: present_day(items_by_day.get(day.id, []), day, trip.is_24hr)
            for day in days
        }

    async def _write_positions(
        self, day: TripDay, assignments: list[SortAssignment]
    ) -> None:
        self.cache.apply_assignments(day.id, assignments)
        try:
            day.revision = await self.gateway.batch_upsert_items(
                day.id, assignments, expected_revision=day.revision
            )
        except PersistenceError:
            await self._revert(day.id)
            raise

    async def _revert(self, day_id: int) -> None:
        self.cache.invalidate(day_id)
        try:
            await self.list_day_items(day_id)
        except PersistenceError as e:
            logger.warning(f"Could not reload day {day_id} after a failed write: {e}")

    async def _synthesize_companions(
        self, item: ItineraryItem, creation: ItemCreation
    ) -> None:
        if item.category == ItemCategory.transport:
            details = item.transport_details
            if details.is_arrival_card or details.arrival_day_offset <= 0:
                return
            days = await self.gateway.list_days(item.trip_id)
            target = arrival_target_day(days, item.trip_day_id, details.arrival_day_offset)
            if target is None:
                self._warn(
                    creation,
                    f"Arrival is {details.arrival_day_offset} day(s) after item "
                    f"{item.id}, past the end of the trip; no arrival card created",
                )
                return
            await self._create_companion(build_arrival_card(item, target), creation)

        elif item.category == ItemCategory.accommodation:
            details = item.accommodation_details
            if details.is_generated_stay or details.checkin_date == details.checkout_date:
                return
            days = await self.gateway.list_days(item.trip_id)
            for day in continuation_stay_days(
                days, details.checkin_date, details.checkout_date
            ):
                stay = build_continuation_stay(
                    item, day, self.settings.accommodation_sort_order
                )
                await self._create_companion(stay, creation)

    async def _create_companion(
        self, companion: ItineraryItem, creation: ItemCreation
    ) -> None:
        try:
            created = await self.gateway.create_item(companion)
        except PersistenceError as e:
            self._warn(creation, f"Could not create companion for item {creation.item.id}: {e}")
            return
        self.cache.invalidate(created.trip_day_id)
        creation.companions.append(created)
        logger.info(
            f"Created companion {created.id} on day {created.trip_day_id} "
            f"for item {creation.item.id}"
        )

    async def _drop_companions(self, item_id: int) -> None:
        for companion in await self.gateway.list_derived_items(item_id):
            await self.gateway.delete_item(companion.id)
            self.cache.invalidate(companion.trip_day_id)

    def _warn(self, creation: ItemCreation, message: str) -> None:
        logger.warning(message)
        creation.warnings.append(message)

    async def _require_trip(self, trip_id: int) -> Trip:
        trip = await self.gateway.get_trip(trip_id)
        if trip is None:
            raise NotFoundError("Trip", trip_id)
        return trip

    async def _require_day(self, day_id: int) -> TripDay:
        day = await self.gateway.get_day(day_id)
        if day is None:
            raise NotFoundError("TripDay", day_id)
        return day

    async def _require_item(self, item_id: int) -> ItineraryItem:
        item = await self.gateway.get_item(item_id)
        if item is None:
            raise NotFoundError("ItineraryItem", item_id)
        return item
