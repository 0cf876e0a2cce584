"""Pydantic models for object storage API responses."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UploadResponse(BaseModel):
    """Response from storing an object."""

    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(alias="Key")
    id: Optional[str] = Field(None, alias="Id")
