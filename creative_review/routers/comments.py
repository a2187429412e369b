"""Comment router."""

import logging
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from creative_review.core import annotations
from creative_review.core.dependencies import get_current_user, get_file_storage, get_or_404, get_staged_media_store
from creative_review.core.notifications import NotificationDispatcher, get_notification_dispatcher
from creative_review.core.staged_media import StagedMediaStore
from creative_review.core.storage import Storage
from creative_review.database import get_db
from creative_review.models.asset import Asset
from creative_review.models.comment import Comment
from creative_review.models.user import User
from creative_review.schemas.comment import CommentCreate, CommentResponse, CommentUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["comments"])


@router.get("/assets/{asset_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    asset_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    version: Annotated[Optional[int], Query(ge=1)] = None,
    all_versions: Annotated[bool, Query(alias="all")] = False,
    resolved: Optional[bool] = None,
) -> list[CommentResponse]:
    """List top-level comments of an asset with their replies.

    Args:
        asset_id: ID of the asset
        current_user: The authenticated user
        db: Database session
        version: Only comments on this version
        all_versions: Comments on every version instead of the current one
        resolved: Filter on resolution state

    Returns:
        list[CommentResponse]: Comments, oldest first
    """
    asset = get_or_404(db, Asset, asset_id, "Asset")
    comments = annotations.list_comments(
        db, current_user, asset, version=version, all_versions=all_versions, resolved=resolved
    )
    return [CommentResponse.model_validate(comment) for comment in comments]


@router.post("/assets/{asset_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    asset_id: UUID,
    comment_data: CommentCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    staged_media: Annotated[StagedMediaStore, Depends(get_staged_media_store)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_notification_dispatcher)],
    background_tasks: BackgroundTasks,
) -> CommentResponse:
    """Comment on the current version of an asset, or reply to a comment.

    Args:
        asset_id: ID of the asset
        comment_data: Content, optional annotation, parent and staged media
        current_user: The authenticated user
        db: Database session
        staged_media: Resolves staged media ids
        dispatcher: Notification dispatcher
        background_tasks: Runs notification delivery after the response

    Returns:
        CommentResponse: The created comment
    """
    asset = get_or_404(db, Asset, asset_id, "Asset")
    comment, targets = annotations.create_comment(
        db,
        current_user,
        asset,
        comment_data.content,
        rectangle=comment_data.rectangle,
        video_timestamp=comment_data.video_timestamp,
        page_number=comment_data.page_number,
        parent_id=comment_data.parent_id,
        media_ids=comment_data.media_ids,
        staged_media=staged_media,
    )
    background_tasks.add_task(dispatcher.dispatch, targets)
    return CommentResponse.model_validate(comment)


@router.patch("/comments/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: UUID,
    comment_data: CommentUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> CommentResponse:
    """Edit the text of your own comment."""
    comment = get_or_404(db, Comment, comment_id, "Comment")
    comment = annotations.update_comment(db, current_user, comment, comment_data.content)
    return CommentResponse.model_validate(comment)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[Storage, Depends(get_file_storage)],
) -> None:
    """Delete a comment, its replies and attachments."""
    comment = get_or_404(db, Comment, comment_id, "Comment")
    annotations.delete_comment(db, current_user, comment, storage)


@router.post("/comments/{comment_id}/resolve", response_model=CommentResponse)
async def resolve_comment(
    comment_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> CommentResponse:
    comment = get_or_404(db, Comment, comment_id, "Comment")
    comment = annotations.resolve_comment(db, current_user, comment)
    return CommentResponse.model_validate(comment)


@router.post("/comments/{comment_id}/unresolve", response_model=CommentResponse)
async def unresolve_comment(
    comment_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> CommentResponse:
    comment = get_or_404(db, Comment, comment_id, "Comment")
    comment = annotations.unresolve_comment(db, current_user, comment)
    return CommentResponse.model_validate(comment)
