"""Comment and annotation model.

Comments are authored against one version of an asset and may carry one
annotation anchored to that version: a rectangle in normalized coordinates, a
video timestamp, or a PDF page. Threads are one level deep. Replies inherit
the version of their parent, carry no annotation, and have no resolution
state of their own.
"""

import logging
import math
from numbers import Real
from typing import Any, Iterable, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from creative_review.config import settings
from creative_review.core.asset_types import get_asset_type_registry
from creative_review.core.errors import (
    AnnotationError,
    ForeignReferenceError,
    InvalidReferenceError,
    PermissionDeniedError,
    PreconditionError,
)
from creative_review.core.mentions import extract_mentioned_user_ids
from creative_review.core.notifications import NotificationTarget, RecipientEngine
from creative_review.core.roles import (
    can_view_asset,
    get_membership,
    is_admin,
    is_creative,
    is_manager,
    is_pm,
    is_project_member,
    is_reviewer,
    require_asset_visible,
)
from creative_review.core.staged_media import StagedMediaStore
from creative_review.core.storage import Storage, StorageError
from creative_review.core.timeutils import utc_now
from creative_review.models.asset import CLIENT_VISIBLE_STATUSES, Asset
from creative_review.models.comment import Comment, CommentAttachment
from creative_review.models.project import ProjectMember
from creative_review.models.user import Role, User

logger = logging.getLogger(__name__)

RECTANGLE_FIELDS = ("x", "y", "width", "height")


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def validate_rectangle(rectangle: Mapping[str, Any]) -> dict[str, float]:
    """Check that a rectangle has all four fields, each in [0, 1].

    Raises:
        AnnotationError: If fields are missing, extra, non-numeric or out of range
    """
    if not isinstance(rectangle, Mapping):
        raise AnnotationError("Rectangle must be an object with x, y, width and height")

    missing = [name for name in RECTANGLE_FIELDS if rectangle.get(name) is None]
    if missing:
        raise AnnotationError(f"Rectangle is missing: {', '.join(missing)}")

    unknown = set(rectangle) - set(RECTANGLE_FIELDS)
    if unknown:
        raise AnnotationError(f"Rectangle has unknown fields: {', '.join(sorted(unknown))}")

    normalized = {}
    for name in RECTANGLE_FIELDS:
        value = rectangle[name]
        if not _is_number(value):
            raise AnnotationError(f"Rectangle {name} must be a number")
        if not 0 <= value <= 1:
            raise AnnotationError(f"Rectangle {name} must be between 0 and 1")
        normalized[name] = float(value)
    return normalized


def validate_annotation(
    asset_type: str,
    rectangle: Mapping[str, Any] | None = None,
    video_timestamp: float | None = None,
    page_number: int | None = None,
) -> dict[str, float] | None:
    """Validate an annotation against what the asset type can render.

    Returns:
        The normalized rectangle, or None when there is none

    Raises:
        AnnotationError: If the annotation is malformed or unsupported for the type
    """
    handler = get_asset_type_registry().get(asset_type)

    normalized = None
    if rectangle is not None:
        if not handler.spatial_annotations:
            raise AnnotationError(f"{handler.display_name} assets do not support region annotations")
        normalized = validate_rectangle(rectangle)

    if video_timestamp is not None:
        if not handler.temporal_annotations:
            raise AnnotationError(f"{handler.display_name} assets do not support timestamps")
        if not _is_number(video_timestamp) or not math.isfinite(video_timestamp) or video_timestamp < 0:
            raise AnnotationError("Video timestamp must be a finite, non-negative number")

    if page_number is not None:
        if not handler.paginated:
            raise AnnotationError(f"{handler.display_name} assets do not have pages")
        if isinstance(page_number, bool) or not isinstance(page_number, int) or page_number < 1:
            raise AnnotationError("Page number must be a positive integer")

    return normalized


def _validate_content(content: str) -> str:
    content = (content or "").strip()
    if not content:
        raise PreconditionError("Comment content is required")
    if len(content) > settings.comment_max_length:
        raise PreconditionError(f"Comment content exceeds {settings.comment_max_length} characters")
    return content


def _mentionable_user_ids(db: Session, project_id: UUID) -> set[UUID]:
    member_ids = {row.user_id for row in db.query(ProjectMember.user_id).filter(ProjectMember.project_id == project_id)}
    admin_ids = {row.id for row in db.query(User.id).filter(User.role == Role.ADMIN.value)}
    return member_ids | admin_ids


def _attach_staged_media(
    comment: Comment,
    actor: User,
    media_ids: Iterable[UUID],
    staged_media: StagedMediaStore,
) -> None:
    """Attach staged uploads owned by the actor; anything else is dropped."""
    for temp_id in dict.fromkeys(media_ids):
        record = staged_media.get(temp_id)
        if record is None:
            logger.warning(f"Dropping unknown or expired staged media {temp_id} for comment {comment.id}")
            continue
        if record.owner_id != actor.id:
            logger.warning(f"Dropping staged media {temp_id} not owned by user {actor.id}")
            continue

        comment.attachments.append(
            CommentAttachment(
                file_path=record.path,
                filename=record.filename,
                mime_type=record.mime_type,
                size=record.size,
            )
        )
        staged_media.clear(temp_id)


def create_comment(
    db: Session,
    actor: User,
    asset: Asset,
    content: str,
    rectangle: Mapping[str, Any] | None = None,
    video_timestamp: float | None = None,
    page_number: int | None = None,
    parent_id: UUID | None = None,
    media_ids: Iterable[UUID] = (),
    staged_media: StagedMediaStore | None = None,
) -> tuple[Comment, list[NotificationTarget]]:
    """Create a comment or a reply on an asset.

    Top-level comments are bound to the asset's current version. Replies are
    bound to their parent's version. Mentions are kept only for users who can
    see the project (members and admins). Staged media that is unknown,
    expired or owned by someone else is dropped without failing the comment.

    Args:
        db: Database session
        actor: The commenting user
        asset: The asset being commented on
        content: Comment body, may contain ``@user:<uuid>`` mentions
        rectangle: Optional region annotation
        video_timestamp: Optional timestamp annotation in seconds
        page_number: Optional page annotation
        parent_id: Comment being replied to
        media_ids: Staged media ids to attach
        staged_media: Staged media collaborator, required when media_ids is given

    Returns:
        The created comment and the notifications it produced

    Raises:
        PermissionDeniedError: If the actor cannot see the asset
        InvalidReferenceError: If the parent comment does not exist
        ForeignReferenceError: If the parent belongs to another asset
        PreconditionError: If content or annotation is invalid, or the parent is a reply
    """
    require_asset_visible(db, actor, asset)
    content = _validate_content(content)

    parent = None
    if parent_id is not None:
        parent = db.get(Comment, parent_id)
        if parent is None:
            raise InvalidReferenceError("Parent comment not found")
        if parent.asset_id != asset.id:
            raise ForeignReferenceError("Parent comment does not belong to this asset")
        if parent.is_reply:
            raise PreconditionError("Cannot reply to a reply. Only single-level threading is supported")
        if rectangle is not None or video_timestamp is not None or page_number is not None:
            raise AnnotationError("Replies cannot carry annotations")
        normalized_rectangle = None
    else:
        normalized_rectangle = validate_annotation(asset.type, rectangle, video_timestamp, page_number)

    comment = Comment(
        asset_id=asset.id,
        asset_version=parent.asset_version if parent else asset.current_version,
        user_id=actor.id,
        parent_id=parent.id if parent else None,
        content=content,
        rectangle=normalized_rectangle,
        video_timestamp=float(video_timestamp) if video_timestamp is not None else None,
        page_number=page_number,
        is_resolved=False,
    )

    mentioned_ids = extract_mentioned_user_ids(content)
    if mentioned_ids:
        valid_ids = _mentionable_user_ids(db, asset.project_id)
        mentioned_ids = [user_id for user_id in mentioned_ids if user_id in valid_ids]
        if mentioned_ids:
            comment.mentions = db.query(User).filter(User.id.in_(mentioned_ids)).all()

    try:
        db.add(comment)
        db.flush()
        media_ids = list(media_ids)
        if media_ids:
            if staged_media is None:
                raise ValueError("staged_media is required to attach media")
            _attach_staged_media(comment, actor, media_ids, staged_media)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(comment)

    logger.info(f"Comment {comment.id} created on asset {asset.id} v{comment.asset_version} by {actor.id}")

    targets = RecipientEngine(db).comment_created(comment, actor, [user.id for user in comment.mentions])
    return comment, targets


def update_comment(db: Session, actor: User, comment: Comment, content: str) -> Comment:
    """Edit a comment's text. Only the author may do this.

    Raises:
        PermissionDeniedError: If the actor is not the author
        PreconditionError: If the content is invalid
    """
    if comment.user_id != actor.id:
        raise PermissionDeniedError("Only the author can edit a comment")
    comment.content = _validate_content(content)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(comment)
    return comment


def can_delete_comment(db: Session, actor: User, comment: Comment) -> bool:
    if is_admin(actor) or comment.user_id == actor.id:
        return True
    if is_pm(actor):
        return get_membership(db, actor.id, comment.asset.project_id) is not None
    return False


def delete_comment(db: Session, actor: User, comment: Comment, storage: Storage | None = None) -> None:
    """Delete a comment with its replies and attachments.

    Raises:
        PermissionDeniedError: If the actor is neither author, admin nor project PM
    """
    if not can_delete_comment(db, actor, comment):
        raise PermissionDeniedError("You cannot delete this comment")

    paths = [a.file_path for a in comment.attachments]
    for reply in comment.replies:
        paths.extend(a.file_path for a in reply.attachments)

    try:
        db.delete(comment)
        db.commit()
    except Exception:
        db.rollback()
        raise

    if storage is not None:
        for path in paths:
            try:
                storage.delete(path)
            except StorageError as e:
                logger.error(f"Failed to delete comment attachment {path}: {e}")


def can_resolve_comment(db: Session, actor: User, comment: Comment) -> bool:
    """Managers and scoped reviewers on the project, or the creative who uploaded the asset."""
    asset = comment.asset
    if is_admin(actor):
        return True
    if is_creative(actor):
        return asset.uploaded_by == actor.id
    if is_reviewer(actor) and asset.status not in CLIENT_VISIBLE_STATUSES:
        return False
    if is_manager(actor) or is_reviewer(actor):
        return is_project_member(db, actor, asset.project_id)
    return False


def _require_resolvable(db: Session, actor: User, comment: Comment) -> None:
    if comment.is_reply:
        raise PreconditionError("Only top-level comments can be resolved")
    if not can_resolve_comment(db, actor, comment):
        raise PermissionDeniedError("You cannot resolve comments on this asset")


def resolve_comment(db: Session, actor: User, comment: Comment) -> Comment:
    """Mark a top-level comment resolved. Resolving twice keeps the first resolver."""
    _require_resolvable(db, actor, comment)
    if comment.is_resolved:
        return comment

    comment.is_resolved = True
    comment.resolved_by = actor.id
    comment.resolved_at = utc_now()
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(comment)
    return comment


def unresolve_comment(db: Session, actor: User, comment: Comment) -> Comment:
    """Reopen a top-level comment. Unresolving an open comment is a no-op."""
    _require_resolvable(db, actor, comment)
    if not comment.is_resolved:
        return comment

    comment.is_resolved = False
    comment.resolved_by = None
    comment.resolved_at = None
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(comment)
    return comment


def list_comments(
    db: Session,
    viewer: User,
    asset: Asset,
    version: int | None = None,
    all_versions: bool = False,
    resolved: bool | None = None,
) -> list[Comment]:
    """Top-level comments of an asset, oldest first, replies nested.

    Without a version filter the current version is shown unless
    ``all_versions`` is set. Reviewers only see their own threads.
    """
    require_asset_visible(db, viewer, asset)

    query = db.query(Comment).filter(Comment.asset_id == asset.id, Comment.parent_id.is_(None))
    if is_reviewer(viewer):
        query = query.filter(Comment.user_id == viewer.id)
    if version is not None:
        query = query.filter(Comment.asset_version == version)
    elif not all_versions:
        query = query.filter(Comment.asset_version == asset.current_version)
    if resolved is not None:
        query = query.filter(Comment.is_resolved.is_(resolved))

    return query.order_by(Comment.created_at.asc()).all()


def mentionable_users(db: Session, viewer: User, asset: Asset, search: str | None = None) -> list[User]:
    """Active project members and admins, by name, at most 20."""
    if not can_view_asset(db, viewer, asset):
        raise PermissionDeniedError("You do not have access to this asset")

    query = db.query(User).filter(
        User.id.in_(_mentionable_user_ids(db, asset.project_id)),
        User.is_active.is_(True),
    )
    if search:
        query = query.filter(User.name.ilike(f"%{search}%"))
    return query.order_by(User.name).limit(20).all()
