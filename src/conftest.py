from datetime import date
from typing import AsyncIterator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

import models  # noqa: F401  registers the tables on SQLModel.metadata
from config import Settings
from itinerary import DayItemCache
from models import TripCreate
from services import ItineraryPlanner, TripPlan
from test_utils.memory_gateway import InMemoryGateway


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite://",
        public_base_url="https://trips.example.com",
    )


@pytest.fixture
def day_cache() -> DayItemCache:
    return DayItemCache(maxsize=64, ttl=60)


@pytest.fixture
def memory_gateway() -> InMemoryGateway:
    return InMemoryGateway()


@pytest.fixture
def planner(
    memory_gateway: InMemoryGateway, day_cache: DayItemCache, settings: Settings
) -> ItineraryPlanner:
    return ItineraryPlanner(memory_gateway, day_cache, settings)


@pytest_asyncio.fixture
async def three_day_trip(planner: ItineraryPlanner) -> TripPlan:
    """Trip from 2025-06-01 to 2025-06-03."""
    return await planner.create_trip(
        TripCreate(
            owner_id="user-1",
            title="Tokyo",
            start_date=date(2025, 6, 1),
            end_date=date(2025, 6, 3),
        )
    )


@pytest_asyncio.fixture
async def db_session() -> AsyncIterator[AsyncSession]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
    await engine.dispose()
