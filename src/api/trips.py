"""HTTP endpoints for trips, days and itinerary items."""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, Query, Request, Response, status
from pydantic import BaseModel, Field

from api.deps import get_planner
from models import (
    ItemDraft,
    ItemPatch,
    ItineraryItem,
    Trip,
    TripCreate,
    TripDay,
    TripSettingsUpdate,
)
from services import ItemCreation, ItineraryPlanner, TripOverview, TripPlan

logger = logging.getLogger(__name__)

router = APIRouter(tags=["itinerary"])

Planner = Annotated[ItineraryPlanner, Depends(get_planner)]


class ShareResponse(BaseModel):
    share_token: Optional[str] = None
    share_url: Optional[str] = None


class DayRename(BaseModel):
    title: Optional[str] = Field(default=None, max_length=255)


class ReorderRequest(BaseModel):
    item_id: int
    target_index: int = Field(ge=0)


@router.post("/trips", status_code=status.HTTP_201_CREATED)
async def create_trip(request: TripCreate, planner: Planner) -> TripPlan:
    return await planner.create_trip(request)


@router.get("/trips")
async def list_trips(
    planner: Planner, owner_id: Annotated[str, Query(min_length=1)]
) -> TripOverview:
    return await planner.list_trips(owner_id)


@router.get("/trips/{trip_id}")
async def get_trip(trip_id: int, planner: Planner) -> TripPlan:
    return await planner.get_trip_plan(trip_id)


@router.patch("/trips/{trip_id}")
async def update_trip(
    trip_id: int, update: TripSettingsUpdate, planner: Planner
) -> Trip:
    return await planner.update_trip_settings(trip_id, update)


@router.delete("/trips/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trip(trip_id: int, planner: Planner) -> Response:
    await planner.delete_trip(trip_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/trips/{trip_id}/share")
async def toggle_share(trip_id: int, planner: Planner) -> ShareResponse:
    """Publish or unpublish the read-only view of a trip."""
    token = await planner.toggle_share(trip_id)
    if token is None:
        return ShareResponse()
    return ShareResponse(share_token=token, share_url=planner.share_url(token))


@router.get("/share/{share_token}")
async def get_shared_trip(share_token: str, planner: Planner) -> TripPlan:
    return await planner.get_shared_trip(share_token)


@router.patch("/days/{day_id}")
async def rename_day(day_id: int, body: DayRename, planner: Planner) -> TripDay:
    return await planner.rename_day(day_id, body.title)


@router.get("/days/{day_id}/items")
async def list_day_items(
    day_id: int,
    planner: Planner,
    refresh: Annotated[bool, Query(description="Bypass the day cache")] = False,
) -> list[ItineraryItem]:
    return await planner.list_day_items(day_id, refresh=refresh)


@router.post("/days/{day_id}/items", status_code=status.HTTP_201_CREATED)
async def add_item(
    day_id: int,
    draft: ItemDraft,
    planner: Planner,
    after_item_id: Annotated[
        Optional[int], Query(description="Insert after this item")
    ] = None,
    at_start: Annotated[bool, Query(description="Insert at the start of the day")] = False,
) -> ItemCreation:
    return await planner.add_item(
        day_id, draft, after_item_id=after_item_id, at_start=at_start
    )


@router.post("/days/{day_id}/reorder")
async def reorder_day(
    day_id: int, body: ReorderRequest, planner: Planner
) -> list[ItineraryItem]:
    return await planner.reorder_day(day_id, body.item_id, body.target_index)


@router.patch("/items/{item_id}")
async def update_item(item_id: int, patch: ItemPatch, planner: Planner) -> ItemCreation:
    return await planner.update_item(item_id, patch)


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(item_id: int, planner: Planner) -> Response:
    await planner.delete_item(item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/items/{item_id}/suggested-time")
async def apply_suggested_time(item_id: int, planner: Planner) -> ItemCreation:
    return await planner.apply_suggested_time(item_id)


@router.post("/items/{item_id}/route")
async def refresh_route(item_id: int, planner: Planner) -> Optional[ItemCreation]:
    return await planner.refresh_route(item_id)


@router.post("/items/{item_id}/attachment")
async def upload_attachment(
    item_id: int,
    request: Request,
    planner: Planner,
    filename: Annotated[str, Query(min_length=1)],
    content_type: Annotated[str, Header()] = "application/octet-stream",
) -> ItineraryItem:
    """Upload the raw request body as the item's attachment."""
    data = await request.body()
    logger.info(f"Attachment upload for item {item_id}: {filename}, {len(data)} bytes")
    return await planner.attach_file(item_id, data, content_type, filename)
