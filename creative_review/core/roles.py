"""Role capabilities and project scope.

These are the authorization facts the engine consumes: the actor's role and
their membership of a project. Guards in the state machine and annotation
model are built from these predicates.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from creative_review.core.errors import PermissionDeniedError
from creative_review.models.asset import CLIENT_VISIBLE_STATUSES, Asset
from creative_review.models.project import ProjectMember
from creative_review.models.user import Role, User


def is_admin(user: User) -> bool:
    return user.role == Role.ADMIN


def is_pm(user: User) -> bool:
    return user.role == Role.PM


def is_creative(user: User) -> bool:
    return user.role == Role.CREATIVE


def is_reviewer(user: User) -> bool:
    return user.role == Role.REVIEWER


def is_manager(user: User) -> bool:
    """Admin or PM."""
    return user.role in (Role.ADMIN, Role.PM)


def can_approve(user: User) -> bool:
    """Roles that may approve internally and trigger the view transition."""
    return is_manager(user)


def can_upload(user: User) -> bool:
    return user.role in (Role.ADMIN, Role.PM, Role.CREATIVE)


def get_membership(db: Session, user_id: UUID, project_id: UUID) -> ProjectMember | None:
    return (
        db.query(ProjectMember)
        .filter(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
        .first()
    )


def is_project_member(db: Session, user: User, project_id: UUID) -> bool:
    """Admins have access to every project."""
    if is_admin(user):
        return True
    return get_membership(db, user.id, project_id) is not None


def require_project_member(db: Session, user: User, project_id: UUID) -> None:
    if not is_project_member(db, user, project_id):
        raise PermissionDeniedError("You are not a member of this project")


def can_view_asset(db: Session, user: User, asset: Asset) -> bool:
    """Reviewers only ever see assets in client-facing states."""
    if is_admin(user):
        return True
    if is_reviewer(user) and asset.status not in CLIENT_VISIBLE_STATUSES:
        return False
    return get_membership(db, user.id, asset.project_id) is not None


def require_asset_visible(db: Session, user: User, asset: Asset) -> None:
    if not can_view_asset(db, user, asset):
        raise PermissionDeniedError("You do not have access to this asset")
