"""Staged comment media router."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from creative_review.core.dependencies import get_current_user, get_staged_media_store
from creative_review.core.errors import PermissionDeniedError
from creative_review.core.roles import is_admin
from creative_review.core.staged_media import StagedMediaStore
from creative_review.models.user import User
from creative_review.schemas.staged_media import PurgeResponse, StagedMediaResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/staged-media", tags=["staged-media"])


@router.post("", response_model=StagedMediaResponse, status_code=status.HTTP_201_CREATED)
async def stage_media(
    current_user: Annotated[User, Depends(get_current_user)],
    staged_media: Annotated[StagedMediaStore, Depends(get_staged_media_store)],
    file: UploadFile = File(...),
) -> StagedMediaResponse:
    """Upload an image ahead of the comment that will carry it.

    Args:
        current_user: The authenticated user
        staged_media: Staged media store
        file: The image (JPEG, PNG, GIF or WebP)

    Returns:
        StagedMediaResponse: The ``temp_id`` to pass in ``media_ids`` when commenting
    """
    if not file.filename or not file.filename.strip():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Filename is required",
        )
    content = await file.read()
    staged = staged_media.stage(current_user, file.filename.strip(), file.content_type, content)
    return StagedMediaResponse.model_validate(staged)


@router.delete("/{temp_id}", status_code=status.HTTP_204_NO_CONTENT)
async def discard_media(
    temp_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    staged_media: Annotated[StagedMediaStore, Depends(get_staged_media_store)],
) -> None:
    """Discard a staged image that will not be used."""
    staged_media.discard(temp_id, current_user)


@router.post("/purge", response_model=PurgeResponse)
async def purge_expired_media(
    current_user: Annotated[User, Depends(get_current_user)],
    staged_media: Annotated[StagedMediaStore, Depends(get_staged_media_store)],
) -> PurgeResponse:
    """Delete expired staged images and their files. Admin only.

    Meant to be called on a schedule (cron or a platform job).

    Returns:
        PurgeResponse: Number of purged uploads
    """
    if not is_admin(current_user):
        raise PermissionDeniedError("Only admins can purge staged media")
    purged = staged_media.purge_expired()
    logger.info(f"Staged media purge by {current_user.id} removed {purged} uploads")
    return PurgeResponse(purged=purged)
