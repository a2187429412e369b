"""Asset router."""

import logging
from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from creative_review.core import annotations, state_machine
from creative_review.core.dependencies import get_current_user, get_file_storage, get_or_404
from creative_review.core.notifications import NotificationDispatcher, get_notification_dispatcher
from creative_review.core.requests import get_request_for_project
from creative_review.core.roles import require_asset_visible
from creative_review.core.state_machine import UploadedFile
from creative_review.core.storage import Storage
from creative_review.core.timeline import build_timeline
from creative_review.database import get_db
from creative_review.models.asset import Asset
from creative_review.models.project import Project
from creative_review.models.user import User
from creative_review.schemas.asset import (
    ApprovalLogResponse,
    ApproveRequest,
    AssetDetailResponse,
    AssetResponse,
    AssetVersionResponse,
    HistoryEntryResponse,
    LinkRequestBody,
    LockEventResponse,
    LockRequest,
    RevisionRequest,
    ViewResponse,
)
from creative_review.schemas.comment import MentionableUserResponse
from creative_review.schemas.request import RequestResponse
from creative_review.schemas.timeline import TimelineEntryResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["assets"])

_HISTORY_SCHEMAS = {
    "version": AssetVersionResponse,
    "approval": ApprovalLogResponse,
    "lock": LockEventResponse,
}


async def _read_upload(file: UploadFile) -> UploadedFile:
    """Read an uploaded file into memory."""
    if not file.filename or not file.filename.strip():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Filename is required",
        )
    try:
        content = await file.read()
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to read file: {str(e)}",
        ) from e
    return UploadedFile(filename=file.filename.strip(), mime_type=file.content_type, content=content)


@router.post("/projects/{project_id}/assets", response_model=AssetDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_asset(
    project_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[Storage, Depends(get_file_storage)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_notification_dispatcher)],
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    title: str = Form(...),
    description: Optional[str] = Form(None),
    deadline: Optional[datetime] = Form(None),
    request_id: Optional[UUID] = Form(None),
) -> AssetDetailResponse:
    """Upload the first version of a new asset.

    Args:
        project_id: ID of the project to add the asset to
        current_user: The authenticated user
        db: Database session
        storage: File storage
        dispatcher: Notification dispatcher
        background_tasks: Runs notification delivery after the response
        file: The file to upload
        title: Asset title
        description: Optional description
        deadline: Optional review deadline
        request_id: Optional creative request the asset fulfils

    Returns:
        AssetDetailResponse: The newly created asset with its first version
    """
    project = get_or_404(db, Project, project_id, "Project")
    upload = await _read_upload(file)

    asset, targets = state_machine.create_asset(
        db,
        current_user,
        project,
        title,
        upload,
        storage,
        description=description,
        deadline=deadline,
        request_id=request_id,
    )
    background_tasks.add_task(dispatcher.dispatch, targets)
    return AssetDetailResponse.model_validate(asset)


@router.get("/projects/{project_id}/assets", response_model=list[AssetResponse])
async def list_assets(
    project_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    status_filter: Annotated[Optional[str], Query(alias="status")] = None,
    type_filter: Annotated[Optional[str], Query(alias="type")] = None,
) -> list[AssetResponse]:
    """List the assets of a project that the user may see.

    Reviewers only receive assets in client review, approved or revision requested.
    """
    project = get_or_404(db, Project, project_id, "Project")
    assets = state_machine.visible_assets(db, current_user, project, status=status_filter, asset_type=type_filter)
    return [AssetResponse.model_validate(asset) for asset in assets]


@router.get("/assets/{asset_id}", response_model=ViewResponse)
async def get_asset(
    asset_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ViewResponse:
    """Get an asset. Viewing a pending asset as a PM or admin starts its review."""
    asset = get_or_404(db, Asset, asset_id, "Asset")
    started = state_machine.record_view(db, asset, current_user)
    return ViewResponse.model_validate(asset).model_copy(update={"review_started": started})


@router.delete("/assets/{asset_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_asset(
    asset_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[Storage, Depends(get_file_storage)],
) -> None:
    """Delete an asset and everything recorded against it."""
    asset = get_or_404(db, Asset, asset_id, "Asset")
    state_machine.delete_asset(db, current_user, asset, storage)


@router.post("/assets/{asset_id}/versions", response_model=AssetVersionResponse, status_code=status.HTTP_201_CREATED)
async def upload_version(
    asset_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[Storage, Depends(get_file_storage)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_notification_dispatcher)],
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    notes: Optional[str] = Form(None),
) -> AssetVersionResponse:
    """Upload a new version. The asset goes back to pending review."""
    asset = get_or_404(db, Asset, asset_id, "Asset")
    upload = await _read_upload(file)

    version, targets = state_machine.upload_version(db, current_user, asset, upload, storage, notes=notes)
    background_tasks.add_task(dispatcher.dispatch, targets)
    return AssetVersionResponse.model_validate(version)


@router.post("/assets/{asset_id}/send-to-client", response_model=AssetResponse)
async def send_to_client(
    asset_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_notification_dispatcher)],
    background_tasks: BackgroundTasks,
) -> AssetResponse:
    """Move an asset from internal review to client review."""
    asset = get_or_404(db, Asset, asset_id, "Asset")
    targets = state_machine.send_to_client(db, current_user, asset)
    background_tasks.add_task(dispatcher.dispatch, targets)
    return AssetResponse.model_validate(asset)


@router.post("/assets/{asset_id}/approve", response_model=ApprovalLogResponse)
async def approve_asset(
    asset_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_notification_dispatcher)],
    background_tasks: BackgroundTasks,
    body: Optional[ApproveRequest] = None,
) -> ApprovalLogResponse:
    """Approve the current version of an asset."""
    asset = get_or_404(db, Asset, asset_id, "Asset")
    log, targets = state_machine.approve(db, current_user, asset, comment=body.comment if body else None)
    background_tasks.add_task(dispatcher.dispatch, targets)
    return ApprovalLogResponse.model_validate(log)


@router.post("/assets/{asset_id}/request-revision", response_model=ApprovalLogResponse)
async def request_revision(
    asset_id: UUID,
    body: RevisionRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_notification_dispatcher)],
    background_tasks: BackgroundTasks,
) -> ApprovalLogResponse:
    """Ask for changes to the current version of an asset."""
    asset = get_or_404(db, Asset, asset_id, "Asset")
    log, targets = state_machine.request_revision(db, current_user, asset, body.comment)
    background_tasks.add_task(dispatcher.dispatch, targets)
    return ApprovalLogResponse.model_validate(log)


@router.post("/assets/{asset_id}/lock", response_model=AssetResponse)
async def lock_asset(
    asset_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    body: Optional[LockRequest] = None,
) -> AssetResponse:
    asset = get_or_404(db, Asset, asset_id, "Asset")
    state_machine.lock_asset(db, current_user, asset, reason=body.reason if body else None)
    return AssetResponse.model_validate(asset)


@router.post("/assets/{asset_id}/unlock", response_model=AssetResponse)
async def unlock_asset(
    asset_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    body: Optional[LockRequest] = None,
) -> AssetResponse:
    asset = get_or_404(db, Asset, asset_id, "Asset")
    state_machine.unlock_asset(db, current_user, asset, reason=body.reason if body else None)
    return AssetResponse.model_validate(asset)


@router.post("/assets/{asset_id}/link-request", response_model=RequestResponse)
async def link_request(
    asset_id: UUID,
    body: LinkRequestBody,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_notification_dispatcher)],
    background_tasks: BackgroundTasks,
) -> RequestResponse:
    """Link an asset to a creative request of the same project."""
    asset = get_or_404(db, Asset, asset_id, "Asset")
    request = get_request_for_project(db, body.request_id, asset.project_id)
    targets = state_machine.link_request(db, current_user, asset, request)
    background_tasks.add_task(dispatcher.dispatch, targets)
    return RequestResponse.model_validate(request)


@router.get("/assets/{asset_id}/history", response_model=list[HistoryEntryResponse])
async def asset_history(
    asset_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> list[HistoryEntryResponse]:
    """Versions, decisions and lock events, newest first."""
    asset = get_or_404(db, Asset, asset_id, "Asset")
    return [
        HistoryEntryResponse(
            kind=entry.kind,
            created_at=entry.created_at,
            data=_HISTORY_SCHEMAS[entry.kind].model_validate(entry.record),
        )
        for entry in state_machine.asset_history(db, current_user, asset)
    ]


@router.get("/assets/{asset_id}/timeline", response_model=list[TimelineEntryResponse])
async def asset_timeline(
    asset_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    version: Annotated[Optional[int], Query(ge=1)] = None,
    all_versions: Annotated[bool, Query(alias="all")] = False,
) -> list[TimelineEntryResponse]:
    """Comments, uploads and decisions of an asset in chronological order.

    Args:
        asset_id: ID of the asset
        current_user: The authenticated user
        db: Database session
        version: Only show this version
        all_versions: Show comments and decisions of every version, not just the current one

    Returns:
        list[TimelineEntryResponse]: Timeline entries, oldest first
    """
    asset = get_or_404(db, Asset, asset_id, "Asset")
    require_asset_visible(db, current_user, asset)
    timeline = build_timeline(db, asset, version=version, all_versions=all_versions, viewer=current_user)
    return [TimelineEntryResponse.from_entry(entry) for entry in timeline]


@router.get("/assets/{asset_id}/mentionable-users", response_model=list[MentionableUserResponse])
async def mentionable_users(
    asset_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    search: Optional[str] = None,
) -> list[MentionableUserResponse]:
    """Users that can be @-mentioned on an asset."""
    asset = get_or_404(db, Asset, asset_id, "Asset")
    users = annotations.mentionable_users(db, current_user, asset, search=search)
    return [MentionableUserResponse.model_validate(user) for user in users]
