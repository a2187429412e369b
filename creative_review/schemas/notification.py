"""Notification schemas."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class NotificationResponse(BaseModel):
    """Schema for an in-app notification."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    kind: str
    payload: dict[str, Any]
    read_at: Optional[datetime] = None
    created_at: datetime


class MarkReadResponse(BaseModel):
    updated: int
