"""Timeline of an asset: comments, version uploads and approval decisions.

The timeline is derived on every read and never stored. Each source is queried
on its own, filtered by version on its own, tagged, and merged by creation
time.

Version filtering is deliberately asymmetric. With no explicit version,
comments and approval decisions default to the asset's current version while
version uploads are always shown, since uploads are the milestones that give
the rest of the feed its context.
"""

import heapq
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Union
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from creative_review.core.roles import is_reviewer
from creative_review.core.timeutils import as_utc
from creative_review.models.approval_log import ApprovalLog
from creative_review.models.asset import Asset, AssetVersion
from creative_review.models.comment import Comment
from creative_review.models.user import User


@dataclass(frozen=True)
class VersionEntry:
    record: AssetVersion
    kind: str = "version"

    @property
    def id(self) -> str:
        return f"version-{self.record.id}"

    @property
    def created_at(self) -> datetime:
        return as_utc(self.record.created_at)

    @property
    def version(self) -> int:
        return self.record.version_number


@dataclass(frozen=True)
class CommentEntry:
    """A top-level comment; its replies are on ``record.replies``."""

    record: Comment
    kind: str = "comment"

    @property
    def id(self) -> str:
        return f"comment-{self.record.id}"

    @property
    def created_at(self) -> datetime:
        return as_utc(self.record.created_at)

    @property
    def version(self) -> int:
        return self.record.asset_version


@dataclass(frozen=True)
class ApprovalEntry:
    record: ApprovalLog
    kind: str = "approval"

    @property
    def id(self) -> str:
        return f"approval-{self.record.id}"

    @property
    def created_at(self) -> datetime:
        return as_utc(self.record.created_at)

    @property
    def version(self) -> int:
        return self.record.asset_version


TimelineEntry = Union[VersionEntry, CommentEntry, ApprovalEntry]

# Tie-break for identical timestamps: an upload precedes remarks on it
_KIND_ORDER = {"version": 0, "comment": 1, "approval": 2}


def _sort_key(entry: TimelineEntry) -> tuple:
    return (entry.created_at, _KIND_ORDER[entry.kind])


class Timeline:
    """Lazy, restartable view of one asset's timeline.

    Every iteration re-reads the three sources, so a timeline object held
    across writes reflects them the next time it is iterated.
    """

    def __init__(
        self,
        db: Session,
        asset_id: UUID,
        version: int | None = None,
        all_versions: bool = False,
        viewer: User | None = None,
    ):
        self.db = db
        self.asset_id = asset_id
        self.version = version
        self.all_versions = all_versions
        self.viewer = viewer

    def _default_version(self) -> int | None:
        """Version applied to comments and approvals, or None for no filter."""
        if self.version is not None:
            return self.version
        if self.all_versions:
            return None
        asset = self.db.get(Asset, self.asset_id)
        return asset.current_version if asset else None

    def _versions(self) -> list[VersionEntry]:
        if self.viewer is not None and is_reviewer(self.viewer):
            return []
        query = self.db.query(AssetVersion).filter(AssetVersion.asset_id == self.asset_id)
        if self.version is not None:
            query = query.filter(AssetVersion.version_number == self.version)
        return [VersionEntry(record) for record in query.all()]

    def _comments(self, version: int | None) -> list[CommentEntry]:
        query = (
            self.db.query(Comment)
            .options(selectinload(Comment.replies), selectinload(Comment.attachments))
            .filter(Comment.asset_id == self.asset_id, Comment.parent_id.is_(None))
        )
        if version is not None:
            query = query.filter(Comment.asset_version == version)
        if self.viewer is not None and is_reviewer(self.viewer):
            query = query.filter(Comment.user_id == self.viewer.id)
        return [CommentEntry(record) for record in query.all()]

    def _approvals(self, version: int | None) -> list[ApprovalEntry]:
        query = self.db.query(ApprovalLog).filter(ApprovalLog.asset_id == self.asset_id)
        if version is not None:
            query = query.filter(ApprovalLog.asset_version == version)
        if self.viewer is not None and is_reviewer(self.viewer):
            query = query.filter(ApprovalLog.user_id == self.viewer.id)
        return [ApprovalEntry(record) for record in query.all()]

    def __iter__(self) -> Iterator[TimelineEntry]:
        version = self._default_version()
        sources = [self._versions(), self._comments(version), self._approvals(version)]
        return heapq.merge(*(sorted(source, key=_sort_key) for source in sources), key=_sort_key)


def build_timeline(
    db: Session,
    asset: Asset,
    version: int | None = None,
    all_versions: bool = False,
    viewer: User | None = None,
) -> Timeline:
    """Build the timeline of an asset.

    Args:
        db: Database session
        asset: Asset whose events are listed
        version: Show only this version's events, uploads included
        all_versions: Without ``version``, show every version's comments and decisions
        viewer: When a reviewer, only their own remarks are listed and uploads are hidden

    Returns:
        Timeline: Iterable of entries in ascending creation time

    Example:
        ```python
        for entry in build_timeline(db, asset, version=1):
            print(entry.kind, entry.id, entry.created_at)
        ```
    """
    return Timeline(db, asset.id, version=version, all_versions=all_versions, viewer=viewer)
