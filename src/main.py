import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

from api import register_exception_handlers
from api.trips import router as trips_router
from config import Settings, get_settings
from itinerary import DayItemCache
from storage import ObjectStorageClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings

    engine = create_async_engine(settings.database_url, echo=settings.db_echo)
    app.state.async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    if settings.is_storage_configured:
        app.state.storage = ObjectStorageClient(
            settings.storage_url, settings.storage_api_key, settings.storage_bucket
        )
    else:
        logger.warning("Attachment storage is not configured, uploads are disabled")

    try:
        yield
    finally:
        if app.state.storage is not None:
            await app.state.storage.close()
        await engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Tripboard", lifespan=lifespan)
    app.state.settings = settings
    app.state.day_cache = DayItemCache(
        maxsize=settings.day_cache_size, ttl=settings.day_cache_ttl
    )
    app.state.storage = None
    app.state.route_lookup = None

    app.include_router(trips_router)
    register_exception_handlers(app)
    return app


app = create_app()
