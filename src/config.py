from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = "sqlite+aiosqlite:///./tripboard.db"
    db_echo: bool = False
    log_level: str = "INFO"

    # Itinerary ordering
    sort_stride: int = 1024
    accommodation_sort_order: float = 9000

    # Safety margin applied to public transit route durations
    transit_margin: Decimal = Decimal("1.2")

    # Day item cache
    day_cache_size: int = 512
    day_cache_ttl: int = 5 * 60

    # Attachment object storage
    storage_url: Optional[str] = None
    storage_bucket: str = "TRIP-ATTACHMENT"
    storage_api_key: Optional[str] = None

    public_base_url: str = "http://localhost:5173"
    default_currency: str = "TWD"

    @property
    def is_storage_configured(self) -> bool:
        """Check if attachment storage credentials are present."""
        return bool(self.storage_url and self.storage_api_key)


@lru_cache
def get_settings() -> Settings:
    return Settings()
