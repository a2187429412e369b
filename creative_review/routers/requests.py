"""Creative request router."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from creative_review.core import requests as creative_requests
from creative_review.core.dependencies import get_current_user, get_or_404
from creative_review.core.notifications import NotificationDispatcher, get_notification_dispatcher
from creative_review.database import get_db
from creative_review.models.creative_request import CreativeRequest
from creative_review.models.project import Project
from creative_review.models.user import User
from creative_review.schemas.request import RequestCreate, RequestResponse, RequestUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["requests"])


@router.post("/projects/{project_id}/requests", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
async def create_request(
    project_id: UUID,
    request_data: RequestCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_notification_dispatcher)],
    background_tasks: BackgroundTasks,
) -> RequestResponse:
    """Open a creative request on a project.

    Args:
        project_id: ID of the project
        request_data: Title, description, assignee, priority and deadline
        current_user: The authenticated user
        db: Database session
        dispatcher: Notification dispatcher
        background_tasks: Runs notification delivery after the response

    Returns:
        RequestResponse: The created request
    """
    project = get_or_404(db, Project, project_id, "Project")
    request, targets = creative_requests.create_request(
        db,
        current_user,
        project,
        request_data.title,
        description=request_data.description,
        assigned_to=request_data.assigned_to,
        priority=request_data.priority,
        deadline=request_data.deadline,
    )
    background_tasks.add_task(dispatcher.dispatch, targets)
    return RequestResponse.model_validate(request)


@router.patch("/requests/{request_id}", response_model=RequestResponse)
async def update_request(
    request_id: UUID,
    request_data: RequestUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_notification_dispatcher)],
    background_tasks: BackgroundTasks,
) -> RequestResponse:
    """Reassign a request or change its status."""
    request = get_or_404(db, CreativeRequest, request_id, "Request")
    request, targets = creative_requests.update_request(
        db,
        current_user,
        request,
        assigned_to=request_data.assigned_to,
        status=request_data.status,
    )
    background_tasks.add_task(dispatcher.dispatch, targets)
    return RequestResponse.model_validate(request)
