"""Staged media schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class StagedMediaResponse(BaseModel):
    """A staged image, referenced by ``temp_id`` when creating a comment."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    temp_id: UUID = Field(..., validation_alias="id")
    filename: str
    mime_type: str
    size: int
    expires_at: datetime


class PurgeResponse(BaseModel):
    purged: int
