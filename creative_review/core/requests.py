"""Creative requests and their link to assets.

Linking an asset to a request can assign the request and move it forward.
Approving an asset completes the requests it is linked to. Both side effects
are applied inside the caller's transaction; nothing here commits unless it is
a standalone request operation.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from creative_review.core.errors import (
    ForeignReferenceError,
    InvalidReferenceError,
    PermissionDeniedError,
    PreconditionError,
)
from creative_review.core.notifications import NotificationTarget, RecipientEngine
from creative_review.core.roles import is_admin, is_manager, is_project_member, is_reviewer
from creative_review.models.asset import Asset
from creative_review.models.creative_request import (
    CLOSED_REQUEST_STATUSES,
    CreativeRequest,
    RequestPriority,
    RequestStatus,
)
from creative_review.models.project import Project
from creative_review.models.user import User

logger = logging.getLogger(__name__)


def attach_request(db: Session, asset: Asset, request: CreativeRequest, actor: User) -> list[NotificationTarget]:
    """Link ``asset`` to ``request`` and apply the linking side effects.

    An unassigned request is assigned to the asset's uploader; an existing
    assignee is kept. A request in progress becomes ``asset_submitted``.
    Does not commit.

    Raises:
        ForeignReferenceError: If the request belongs to another project
        PreconditionError: If the request is completed or cancelled
    """
    if request.project_id != asset.project_id:
        raise ForeignReferenceError("Request belongs to another project")
    if request.status in CLOSED_REQUEST_STATUSES:
        raise PreconditionError(f"Cannot link an asset to a {request.status} request")

    engine = RecipientEngine(db)
    targets: list[NotificationTarget] = []

    if asset not in request.assets:
        request.assets.append(asset)

    if request.assigned_to is None:
        request.assigned_to = asset.uploaded_by
        logger.info(f"Request {request.id} auto-assigned to {asset.uploaded_by}")
        targets += engine.request_assigned(request, asset.uploaded_by, actor)

    if request.status == RequestStatus.IN_PROGRESS.value:
        old_status = request.status
        request.status = RequestStatus.ASSET_SUBMITTED.value
        targets += engine.request_status_changed(request, old_status, actor)

    return targets


def complete_linked_requests(db: Session, asset: Asset, actor: User) -> list[NotificationTarget]:
    """Complete every open request linked to an approved asset. Does not commit."""
    engine = RecipientEngine(db)
    targets: list[NotificationTarget] = []
    for request in asset.requests:
        if request.status in CLOSED_REQUEST_STATUSES:
            continue
        old_status = request.status
        request.status = RequestStatus.COMPLETED.value
        logger.info(f"Request {request.id} completed by approval of asset {asset.id}")
        targets += engine.request_status_changed(request, old_status, actor)
    return targets


def get_request_for_project(db: Session, request_id: UUID, project_id: UUID) -> CreativeRequest:
    """Load a request and check that it belongs to the project.

    Raises:
        InvalidReferenceError: If the request does not exist
        ForeignReferenceError: If it belongs to another project
    """
    request = db.get(CreativeRequest, request_id)
    if request is None:
        raise InvalidReferenceError("Request not found")
    if request.project_id != project_id:
        raise ForeignReferenceError("Request belongs to another project")
    return request


def _require_assignable(db: Session, project_id: UUID, assignee_id: UUID) -> User:
    assignee = db.get(User, assignee_id)
    if assignee is None:
        raise InvalidReferenceError("Assignee not found")
    if is_reviewer(assignee) or not is_project_member(db, assignee, project_id):
        raise PreconditionError("Assignee must be an internal member of the project")
    return assignee


def create_request(
    db: Session,
    actor: User,
    project: Project,
    title: str,
    description: str | None = None,
    assigned_to: UUID | None = None,
    priority: str = RequestPriority.NORMAL.value,
    deadline: datetime | None = None,
) -> tuple[CreativeRequest, list[NotificationTarget]]:
    """Open a creative request on a project.

    Raises:
        PermissionDeniedError: If the actor is not a PM or admin on the project
        PreconditionError: If the assignee is not an internal project member
    """
    if not is_manager(actor) or not is_project_member(db, actor, project.id):
        raise PermissionDeniedError("Only project managers can create requests")
    if priority not in {p.value for p in RequestPriority}:
        raise PreconditionError(f"Unknown priority: {priority}")
    if assigned_to is not None:
        _require_assignable(db, project.id, assigned_to)

    request = CreativeRequest(
        project_id=project.id,
        title=title,
        description=description,
        created_by=actor.id,
        assigned_to=assigned_to,
        status=RequestStatus.PENDING.value,
        priority=priority,
        deadline=deadline,
    )
    try:
        db.add(request)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(request)

    targets = []
    if assigned_to is not None:
        targets = RecipientEngine(db).request_assigned(request, assigned_to, actor)
    return request, targets


def update_request(
    db: Session,
    actor: User,
    request: CreativeRequest,
    assigned_to: UUID | None = None,
    status: str | None = None,
) -> tuple[CreativeRequest, list[NotificationTarget]]:
    """Reassign a request and/or change its status.

    Admins and the request creator may do both. The assignee may change the
    status only.

    Raises:
        PermissionDeniedError: If the actor may not make the change
        PreconditionError: If the status or assignee is invalid
    """
    is_owner = is_admin(actor) or request.created_by == actor.id
    is_assignee = request.assigned_to is not None and request.assigned_to == actor.id
    if assigned_to is not None and not is_owner:
        raise PermissionDeniedError("Only the request creator can reassign it")
    if status is not None and not (is_owner or is_assignee):
        raise PermissionDeniedError("You cannot change the status of this request")
    if status is not None and status not in {s.value for s in RequestStatus}:
        raise PreconditionError(f"Unknown request status: {status}")

    engine = RecipientEngine(db)
    targets: list[NotificationTarget] = []

    if assigned_to is not None and assigned_to != request.assigned_to:
        _require_assignable(db, request.project_id, assigned_to)
        request.assigned_to = assigned_to
        targets += engine.request_assigned(request, assigned_to, actor)

    if status is not None and status != request.status:
        old_status = request.status
        request.status = status
        targets += engine.request_status_changed(request, old_status, actor)

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(request)
    return request, targets
