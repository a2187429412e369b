"""Staged comment media.

Images are uploaded before the comment that carries them exists. They are
held here, owned by the uploader, until a comment claims them or they expire.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from creative_review.config import settings
from creative_review.core.asset_types import FileValidationError
from creative_review.core.errors import InvalidReferenceError, PermissionDeniedError
from creative_review.core.storage import Storage, StorageError, get_storage
from creative_review.core.timeutils import as_utc, utc_now
from creative_review.database import SessionLocal
from creative_review.models.staged_media import StagedMedia
from creative_review.models.user import User

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})


@dataclass(frozen=True)
class StagedMediaRecord:
    """A resolvable staged upload."""

    temp_id: UUID
    owner_id: UUID
    path: str
    filename: str
    mime_type: str
    size: int
    expires_at: datetime


class StagedMediaStore:
    """Database-backed staged media, sharing the caller's session."""

    def __init__(self, db: Session, storage: Storage):
        self.db = db
        self.storage = storage

    def stage(self, owner: User, filename: str, mime_type: str | None, content: bytes) -> StagedMedia:
        """Store an image and register it for later attachment.

        Raises:
            FileValidationError: If the image type or size is not accepted
        """
        if mime_type not in ALLOWED_IMAGE_TYPES:
            raise FileValidationError(f"Only {', '.join(sorted(ALLOWED_IMAGE_TYPES))} images can be attached")
        if not content:
            raise FileValidationError("File is empty")
        if len(content) > settings.staged_media_max_size:
            raise FileValidationError("Image exceeds the maximum attachment size")

        stored = self.storage.store(content, f"staged/{owner.id}", filename)
        staged = StagedMedia(
            owner_id=owner.id,
            file_path=stored.path,
            filename=filename,
            mime_type=mime_type,
            size=len(content),
            expires_at=utc_now() + timedelta(hours=settings.staged_media_ttl_hours),
        )
        try:
            self.db.add(staged)
            self.db.commit()
        except Exception:
            self.db.rollback()
            self.storage.delete(stored.path)
            raise
        self.db.refresh(staged)
        logger.info(f"Staged media {staged.id} for user {owner.id}")
        return staged

    def get(self, temp_id: UUID) -> StagedMediaRecord | None:
        """Resolve a staged upload; expired or unknown ids resolve to None."""
        staged = self.db.get(StagedMedia, temp_id)
        if staged is None or as_utc(staged.expires_at) <= utc_now():
            return None
        return StagedMediaRecord(
            temp_id=staged.id,
            owner_id=staged.owner_id,
            path=staged.file_path,
            filename=staged.filename,
            mime_type=staged.mime_type,
            size=staged.size,
            expires_at=as_utc(staged.expires_at),
        )

    def clear(self, temp_id: UUID) -> None:
        """Forget a staged upload without touching its file (it now belongs to a comment)."""
        staged = self.db.get(StagedMedia, temp_id)
        if staged is not None:
            self.db.delete(staged)

    def discard(self, temp_id: UUID, actor: User) -> None:
        """Delete a pending staged upload and its file.

        Raises:
            InvalidReferenceError: If the id is unknown
            PermissionDeniedError: If the actor does not own it
        """
        staged = self.db.get(StagedMedia, temp_id)
        if staged is None:
            raise InvalidReferenceError("Staged media not found or already deleted")
        if staged.owner_id != actor.id:
            raise PermissionDeniedError("Staged media belongs to another user")

        path = staged.file_path
        self.db.delete(staged)
        self.db.commit()
        self.storage.delete(path)

    def purge_expired(self) -> int:
        """Remove expired staged uploads and their files.

        Returns:
            int: Number of purged uploads
        """
        now = utc_now()
        expired = [s for s in self.db.query(StagedMedia).all() if as_utc(s.expires_at) <= now]
        paths = [s.file_path for s in expired]
        for staged in expired:
            self.db.delete(staged)
        self.db.commit()

        for path in paths:
            try:
                self.storage.delete(path)
            except StorageError as e:
                logger.error(f"Failed to delete expired staged file {path}: {e}")

        if expired:
            logger.info(f"Purged {len(expired)} expired staged media")
        return len(expired)


def purge_expired_staged_media() -> int:
    """Console entry point: purge expired staged media with the configured database and storage."""
    logging.basicConfig(level=logging.INFO)
    db = SessionLocal()
    try:
        return StagedMediaStore(db, get_storage()).purge_expired()
    finally:
        db.close()
