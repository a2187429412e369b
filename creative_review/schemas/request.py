"""Creative request schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from creative_review.models.creative_request import RequestPriority


class RequestCreate(BaseModel):
    """Schema for opening a creative request."""

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    assigned_to: Optional[UUID] = None
    priority: str = Field(RequestPriority.NORMAL.value, description="low, normal, high or urgent")
    deadline: Optional[datetime] = None

    @field_validator("title", mode="before")
    @classmethod
    def normalize_title(cls, v: str) -> str:
        """Normalize title by stripping whitespace."""
        return v.strip() if isinstance(v, str) else v


class RequestUpdate(BaseModel):
    assigned_to: Optional[UUID] = None
    status: Optional[str] = None


class RequestResponse(BaseModel):
    """Schema for returning a creative request."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    title: str
    description: Optional[str] = None
    created_by: UUID
    assigned_to: Optional[UUID] = None
    status: str
    priority: str
    deadline: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
