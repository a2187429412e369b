"""Notification recipient engine, dispatcher and delivery channels.

The engine decides who is told what for every review event. Each method
returns ``NotificationTarget`` values and never sends anything itself, so the
recipient rules can be checked without a delivery channel. Dispatch happens
after the triggering transaction has committed.

Comment creation is the one event where several notification paths overlap
(new comment, reply, mention). The engine computes them together so that
every user hears about one comment at most once and the author never hears
about their own comment.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from creative_review.config import settings
from creative_review.database import SessionLocal
from creative_review.models.asset import Asset
from creative_review.models.comment import Comment
from creative_review.models.creative_request import CreativeRequest
from creative_review.models.notification import Notification, NotificationKind
from creative_review.models.project import ProjectMember
from creative_review.models.user import Role, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationTarget:
    """Recipients of one notification kind for one event."""

    kind: NotificationKind
    recipients: frozenset[UUID]
    payload: dict[str, Any] = field(default_factory=dict)


class RecipientEngine:
    """Computes recipient sets per triggering event."""

    def __init__(self, db: Session):
        self.db = db

    # Shared lookups

    def _opted_in_members(self, project_id: UUID, flag) -> set[UUID]:
        """Internal (non-reviewer) members of the project with ``flag`` enabled."""
        rows = (
            self.db.query(ProjectMember.user_id)
            .join(User, User.id == ProjectMember.user_id)
            .filter(
                ProjectMember.project_id == project_id,
                flag.is_(True),
                User.role != Role.REVIEWER.value,
                User.is_active.is_(True),
            )
            .all()
        )
        return {row.user_id for row in rows}

    def _project_reviewers(self, project_id: UUID) -> set[UUID]:
        rows = (
            self.db.query(ProjectMember.user_id)
            .join(User, User.id == ProjectMember.user_id)
            .filter(
                ProjectMember.project_id == project_id,
                User.role == Role.REVIEWER.value,
                User.is_active.is_(True),
            )
            .all()
        )
        return {row.user_id for row in rows}

    def _internal_uploader(self, asset: Asset) -> set[UUID]:
        """The asset uploader, unless they are an external reviewer."""
        uploader = self.db.get(User, asset.uploaded_by)
        if uploader is None or uploader.role == Role.REVIEWER or not uploader.is_active:
            return set()
        return {uploader.id}

    @staticmethod
    def _asset_payload(asset: Asset, actor: User) -> dict[str, Any]:
        return {
            "asset_id": str(asset.id),
            "asset_title": asset.title,
            "project_id": str(asset.project_id),
            "version": asset.current_version,
            "actor_id": str(actor.id),
            "actor_name": actor.name,
        }

    @staticmethod
    def _target(kind: NotificationKind, recipients: Iterable[UUID], payload: dict[str, Any]) -> NotificationTarget:
        return NotificationTarget(kind=kind, recipients=frozenset(recipients), payload=payload)

    # Comments

    def new_comment_recipients(self, asset: Asset, actor: User) -> set[UUID]:
        """Users told about a new top-level comment: opted-in members plus the uploader."""
        recipients = self._opted_in_members(asset.project_id, ProjectMember.notify_on_comment)
        recipients |= self._internal_uploader(asset)
        recipients.discard(actor.id)
        return recipients

    def comment_created(
        self,
        comment: Comment,
        actor: User,
        mentioned_user_ids: Iterable[UUID] = (),
    ) -> list[NotificationTarget]:
        """Targets for one comment-creation action.

        1. Mentions start as every mentioned user except the actor.
        2. A reply notifies the parent author through the reply notification,
           so the parent author is removed from the mentions.
        3. A top-level comment notifies opted-in members and the uploader, and
           all of those are removed from the mentions.
        4. The actor is never a recipient.
        """
        asset = comment.asset
        payload = self._asset_payload(asset, actor) | {
            "comment_id": str(comment.id),
            "asset_version": comment.asset_version,
            "excerpt": comment.content[:200],
        }

        mention_recipients = set(mentioned_user_ids)
        mention_recipients.discard(actor.id)

        targets: list[NotificationTarget] = []
        if comment.parent_id is not None:
            parent = comment.parent
            reply_recipients: set[UUID] = set()
            if parent is not None:
                mention_recipients.discard(parent.user_id)
                if parent.user_id != actor.id:
                    reply_recipients.add(parent.user_id)
            targets.append(
                self._target(
                    NotificationKind.COMMENT_REPLY,
                    reply_recipients,
                    payload | {"parent_id": str(comment.parent_id)},
                )
            )
        else:
            new_comment = self.new_comment_recipients(asset, actor)
            mention_recipients -= new_comment
            targets.append(self._target(NotificationKind.COMMENT_CREATED, new_comment, payload))

        targets.append(self._target(NotificationKind.MENTION, mention_recipients, payload))
        return targets

    # Asset lifecycle

    def asset_uploaded(self, asset: Asset, actor: User) -> list[NotificationTarget]:
        recipients = self._opted_in_members(asset.project_id, ProjectMember.notify_on_upload)
        recipients.discard(actor.id)
        return [self._target(NotificationKind.ASSET_UPLOADED, recipients, self._asset_payload(asset, actor))]

    def new_version(self, asset: Asset, actor: User) -> list[NotificationTarget]:
        recipients = self._opted_in_members(asset.project_id, ProjectMember.notify_on_upload)
        recipients.discard(actor.id)
        return [self._target(NotificationKind.NEW_VERSION, recipients, self._asset_payload(asset, actor))]

    def asset_approved(self, asset: Asset, actor: User, comment: str | None = None) -> list[NotificationTarget]:
        """Opted-in members, plus the uploader whether or not they opted in."""
        recipients = self._opted_in_members(asset.project_id, ProjectMember.notify_on_approval)
        recipients |= self._internal_uploader(asset)
        recipients.discard(actor.id)
        payload = self._asset_payload(asset, actor) | {"comment": comment}
        return [self._target(NotificationKind.ASSET_APPROVED, recipients, payload)]

    def revision_requested(self, asset: Asset, actor: User, feedback: str | None) -> list[NotificationTarget]:
        """Only the uploader, and never the person asking for the revision."""
        recipients = {asset.uploaded_by} - {actor.id}
        payload = self._asset_payload(asset, actor) | {"feedback": feedback}
        return [self._target(NotificationKind.REVISION_REQUESTED, recipients, payload)]

    def sent_to_client(self, asset: Asset, actor: User) -> list[NotificationTarget]:
        recipients = self._project_reviewers(asset.project_id)
        recipients.discard(actor.id)
        return [self._target(NotificationKind.SENT_TO_CLIENT, recipients, self._asset_payload(asset, actor))]

    # Creative requests

    @staticmethod
    def _request_payload(request: CreativeRequest, actor: User | None) -> dict[str, Any]:
        return {
            "request_id": str(request.id),
            "request_title": request.title,
            "project_id": str(request.project_id),
            "status": request.status,
            "actor_id": str(actor.id) if actor else None,
            "actor_name": actor.name if actor else None,
        }

    def request_assigned(
        self,
        request: CreativeRequest,
        assignee_id: UUID,
        assigner: User | None = None,
    ) -> list[NotificationTarget]:
        recipients: set[UUID] = set()
        if assigner is None or assigner.id != assignee_id:
            recipients.add(assignee_id)
        return [self._target(NotificationKind.REQUEST_ASSIGNED, recipients, self._request_payload(request, assigner))]

    def request_status_changed(
        self,
        request: CreativeRequest,
        old_status: str,
        actor: User,
    ) -> list[NotificationTarget]:
        recipients = {request.created_by}
        if request.assigned_to is not None:
            recipients.add(request.assigned_to)
        recipients.discard(actor.id)
        payload = self._request_payload(request, actor) | {"old_status": old_status}
        return [self._target(NotificationKind.REQUEST_STATUS_CHANGED, recipients, payload)]


class NotificationDelivery(Protocol):
    """Transport for computed notifications."""

    def dispatch(self, recipients: frozenset[UUID], kind: NotificationKind, payload: dict[str, Any]) -> None:
        ...


class DatabaseNotificationDelivery:
    """Writes one in-app inbox row per recipient in its own session."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def dispatch(self, recipients: frozenset[UUID], kind: NotificationKind, payload: dict[str, Any]) -> None:
        db = self.session_factory()
        try:
            for user_id in recipients:
                db.add(Notification(user_id=user_id, kind=kind.value, payload=payload))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


class LoggingNotificationDelivery:
    """Logs notifications instead of delivering them."""

    def dispatch(self, recipients: frozenset[UUID], kind: NotificationKind, payload: dict[str, Any]) -> None:
        logger.info(f"Notification {kind.value} -> {sorted(str(r) for r in recipients)}: {payload}")


class NotificationDispatcher:
    """Hands computed targets to a delivery channel.

    Empty recipient sets are skipped. Delivery failures are logged and not
    retried; they never reach the operation that produced the notification.
    """

    def __init__(self, delivery: NotificationDelivery):
        self.delivery = delivery

    def dispatch(self, targets: Iterable[NotificationTarget]) -> int:
        """Deliver targets.

        Returns:
            int: Number of targets handed to the delivery channel
        """
        delivered = 0
        for target in targets:
            if not target.recipients:
                continue
            try:
                self.delivery.dispatch(target.recipients, target.kind, target.payload)
                delivered += 1
            except Exception as e:
                logger.exception(f"Failed to deliver {target.kind.value} notification: {e}")
        return delivered


def get_notification_dispatcher() -> NotificationDispatcher:
    """FastAPI dependency returning the dispatcher for the configured channel."""
    if settings.notification_delivery == "log":
        return NotificationDispatcher(LoggingNotificationDelivery())
    return NotificationDispatcher(DatabaseNotificationDelivery())
