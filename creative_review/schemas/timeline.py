"""Timeline schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from creative_review.core.timeline import TimelineEntry
from creative_review.schemas.asset import ApprovalLogResponse, AssetVersionResponse
from creative_review.schemas.comment import CommentResponse

_DATA_SCHEMAS = {
    "version": AssetVersionResponse,
    "comment": CommentResponse,
    "approval": ApprovalLogResponse,
}


class TimelineEntryResponse(BaseModel):
    """One tagged entry of an asset timeline."""

    id: str = Field(..., description="Composite id such as comment-<uuid>")
    kind: str = Field(..., description="version, comment or approval")
    version: int
    created_at: datetime
    data: AssetVersionResponse | CommentResponse | ApprovalLogResponse

    @classmethod
    def from_entry(cls, entry: TimelineEntry) -> "TimelineEntryResponse":
        return cls(
            id=entry.id,
            kind=entry.kind,
            version=entry.version,
            created_at=entry.created_at,
            data=_DATA_SCHEMAS[entry.kind].model_validate(entry.record),
        )
