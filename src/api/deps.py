from typing import Annotated, AsyncIterator, Optional

from fastapi import Depends, Request
from sqlmodel.ext.asyncio.session import AsyncSession

from config import Settings, get_settings
from gateway import AttachmentUploader, RouteLookup, SQLModelGateway
from itinerary import DayItemCache
from services import ItineraryPlanner


async def get_db_async_session(request: Request) -> AsyncIterator[AsyncSession]:
    async with request.app.state.async_session() as session:
        yield session


def get_day_cache(request: Request) -> DayItemCache:
    return request.app.state.day_cache


def get_storage(request: Request) -> Optional[AttachmentUploader]:
    return getattr(request.app.state, "storage", None)


def get_route_lookup(request: Request) -> Optional[RouteLookup]:
    return getattr(request.app.state, "route_lookup", None)


def get_planner(
    session: Annotated[AsyncSession, Depends(get_db_async_session)],
    cache: Annotated[DayItemCache, Depends(get_day_cache)],
    settings: Annotated[Settings, Depends(get_settings)],
    storage: Annotated[Optional[AttachmentUploader], Depends(get_storage)],
    routes: Annotated[Optional[RouteLookup], Depends(get_route_lookup)],
) -> ItineraryPlanner:
    return ItineraryPlanner(
        SQLModelGateway(session), cache, settings, storage=storage, routes=routes
    )
