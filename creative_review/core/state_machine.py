"""Asset state machine.

    pending_review -> in_review -> client_review -> approved | revision_requested

``in_review`` is entered when an approve-capable user views a pending asset
(see ``record_view``). Approval and revision requests are accepted from both
``in_review`` and ``client_review``. Uploading a new version returns the asset
to ``pending_review`` from any state.

Every status or version change is written with a conditional UPDATE that
repeats the status and version the decision was based on. If another writer
got there first no row matches, the transaction is rolled back and the caller
gets a ``ConcurrencyConflictError``.

Locking is orthogonal to status. A locked asset rejects every explicit
mutation except unlock, while views keep working.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import update
from sqlalchemy.orm import Session

from creative_review.core.asset_types import FileValidationError, get_asset_type_registry
from creative_review.core.errors import (
    AssetLockedError,
    ConcurrencyConflictError,
    PermissionDeniedError,
    PreconditionError,
)
from creative_review.core.notifications import NotificationTarget, RecipientEngine
from creative_review.core.requests import attach_request, complete_linked_requests, get_request_for_project
from creative_review.core.roles import (
    can_approve,
    can_upload,
    is_admin,
    is_creative,
    is_pm,
    is_project_member,
    is_reviewer,
    require_asset_visible,
    require_project_member,
)
from creative_review.core.storage import Storage, StorageError, StoredFile
from creative_review.core.timeutils import as_utc, utc_now
from creative_review.models.approval_log import ApprovalAction, ApprovalLog
from creative_review.models.asset import (
    CLIENT_VISIBLE_STATUSES,
    Asset,
    AssetLockEvent,
    AssetStatus,
    AssetVersion,
)
from creative_review.models.creative_request import CreativeRequest
from creative_review.models.project import Project
from creative_review.models.user import User

logger = logging.getLogger(__name__)

DECISION_SOURCE_STATUSES = (AssetStatus.IN_REVIEW.value, AssetStatus.CLIENT_REVIEW.value)


@dataclass(frozen=True)
class UploadedFile:
    """A file handed in by the caller, not yet stored."""

    filename: str
    mime_type: str | None
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


# Concurrency


def compare_and_swap(
    db: Session,
    asset_id: UUID,
    expected_status: str,
    expected_version: int,
    require_unlocked: bool = True,
    **values: Any,
) -> None:
    """Apply ``values`` to the asset only if it is still in the expected state.

    Raises:
        ConcurrencyConflictError: If the asset changed since it was read
    """
    conditions = [
        Asset.id == asset_id,
        Asset.status == expected_status,
        Asset.current_version == expected_version,
    ]
    if require_unlocked:
        conditions.append(Asset.is_locked.is_(False))

    result = db.execute(update(Asset).where(*conditions).values(updated_at=utc_now(), **values))
    if result.rowcount != 1:
        logger.warning(f"Conflicting write on asset {asset_id} (expected {expected_status} v{expected_version})")
        raise ConcurrencyConflictError("The asset was changed by someone else. Reload and try again")


def _commit(db: Session) -> None:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


def _require_unlocked(asset: Asset) -> None:
    if asset.is_locked:
        raise AssetLockedError("Asset is locked")


def _require_status(asset: Asset, *allowed: str) -> None:
    if asset.status not in allowed:
        raise PreconditionError(f"Operation not allowed while asset is {asset.status}")


def _require_manager(db: Session, actor: User, asset: Asset) -> None:
    if not can_approve(actor) or not is_project_member(db, actor, asset.project_id):
        raise PermissionDeniedError("Only admins and project managers can do this")


def _require_decider(db: Session, actor: User, asset: Asset) -> None:
    """Managers decide from in_review or client_review; reviewers only on client_review."""
    require_asset_visible(db, actor, asset)
    if can_approve(actor):
        return
    if is_reviewer(actor) and asset.status == AssetStatus.CLIENT_REVIEW.value:
        return
    raise PermissionDeniedError("You cannot approve or reject this asset")


def _can_upload_version(db: Session, actor: User, asset: Asset) -> bool:
    if not can_upload(actor) or not is_project_member(db, actor, asset.project_id):
        return False
    if is_creative(actor):
        return asset.uploaded_by == actor.id
    return True


def _store(storage: Storage, upload: UploadedFile, project_id: UUID, asset_id: UUID) -> StoredFile:
    return storage.store(upload.content, f"assets/{project_id}/{asset_id}", upload.filename)


def _discard_stored(storage: Storage, stored: StoredFile) -> None:
    try:
        storage.delete(stored.path)
    except StorageError as e:
        logger.error(f"Failed to remove orphaned file {stored.path}: {e}")


# Creation and versions


def create_asset(
    db: Session,
    actor: User,
    project: Project,
    title: str,
    upload: UploadedFile,
    storage: Storage,
    description: str | None = None,
    deadline: datetime | None = None,
    request_id: UUID | None = None,
) -> tuple[Asset, list[NotificationTarget]]:
    """Create an asset from its first upload.

    The asset starts at version 1 in ``pending_review``. Its type is derived
    from the file. When ``request_id`` is given the asset is linked to that
    request in the same transaction.

    Args:
        db: Database session
        actor: Uploading user
        project: Project the asset belongs to
        title: Asset title
        upload: The file of version 1
        storage: Where the file is written
        description: Optional description
        deadline: Optional review deadline
        request_id: Optional creative request to link

    Returns:
        The created asset and the notifications it produced

    Raises:
        PermissionDeniedError: If the actor cannot upload to the project
        FileValidationError: If the file is not an accepted asset
        InvalidReferenceError: If the request does not exist or is in another project
    """
    if not can_upload(actor):
        raise PermissionDeniedError("Your role cannot upload assets")
    require_project_member(db, actor, project.id)
    if not title or not title.strip():
        raise PreconditionError("Title is required")

    registry = get_asset_type_registry()
    asset_type = registry.validate(upload.filename, upload.mime_type, upload.size)

    request = get_request_for_project(db, request_id, project.id) if request_id is not None else None

    asset_id = uuid4()
    stored = _store(storage, upload, project.id, asset_id)
    try:
        asset = Asset(
            id=asset_id,
            project_id=project.id,
            uploaded_by=actor.id,
            title=title.strip(),
            description=description,
            type=asset_type.value,
            status=AssetStatus.PENDING_REVIEW.value,
            current_version=1,
            is_locked=False,
            deadline=deadline,
        )
        asset.versions.append(
            AssetVersion(
                version_number=1,
                file_path=stored.path,
                file_url=stored.url,
                file_size=upload.size,
                file_meta=registry.extract_metadata(upload.filename, upload.mime_type),
                uploaded_by=actor.id,
            )
        )
        db.add(asset)
        db.flush()

        targets: list[NotificationTarget] = []
        if request is not None:
            targets += attach_request(db, asset, request, actor)
        db.commit()
    except Exception:
        db.rollback()
        _discard_stored(storage, stored)
        raise
    db.refresh(asset)

    logger.info(f"Asset {asset.id} ({asset.type}) created in project {project.id} by {actor.id}")
    return asset, RecipientEngine(db).asset_uploaded(asset, actor) + targets


def upload_version(
    db: Session,
    actor: User,
    asset: Asset,
    upload: UploadedFile,
    storage: Storage,
    notes: str | None = None,
) -> tuple[AssetVersion, list[NotificationTarget]]:
    """Upload the next version of an asset and return it to ``pending_review``.

    Raises:
        PermissionDeniedError: If the actor may not upload to this asset
        AssetLockedError: If the asset is locked
        FileValidationError: If the file is invalid or of another asset type
        ConcurrencyConflictError: If another version landed first
    """
    if not _can_upload_version(db, actor, asset):
        raise PermissionDeniedError("You cannot upload versions of this asset")
    _require_unlocked(asset)

    registry = get_asset_type_registry()
    asset_type = registry.validate(upload.filename, upload.mime_type, upload.size)
    if asset_type.value != asset.type:
        raise FileValidationError(f"Expected a {asset.type} file, got {asset_type.value}")

    expected_status = asset.status
    expected_version = asset.current_version
    next_version = expected_version + 1

    stored = _store(storage, upload, asset.project_id, asset.id)
    try:
        compare_and_swap(
            db,
            asset.id,
            expected_status,
            expected_version,
            current_version=next_version,
            status=AssetStatus.PENDING_REVIEW.value,
        )
        version = AssetVersion(
            asset_id=asset.id,
            version_number=next_version,
            file_path=stored.path,
            file_url=stored.url,
            file_size=upload.size,
            file_meta=registry.extract_metadata(upload.filename, upload.mime_type),
            version_notes=notes,
            uploaded_by=actor.id,
        )
        db.add(version)
        db.commit()
    except Exception:
        db.rollback()
        _discard_stored(storage, stored)
        raise
    db.refresh(asset)
    db.refresh(version)

    logger.info(f"Asset {asset.id} v{next_version} uploaded by {actor.id}")
    return version, RecipientEngine(db).new_version(asset, actor)


# Transitions


def record_view(db: Session, asset: Asset, viewer: User) -> bool:
    """Record that ``viewer`` opened the asset.

    An approve-capable viewer moves a ``pending_review`` asset to
    ``in_review``. Later views, by anyone, change nothing. Locks do not apply.

    Returns:
        bool: True if this view moved the asset to ``in_review``

    Raises:
        PermissionDeniedError: If the viewer cannot see the asset
    """
    require_asset_visible(db, viewer, asset)
    if not can_approve(viewer) or asset.status != AssetStatus.PENDING_REVIEW.value:
        return False

    try:
        compare_and_swap(
            db,
            asset.id,
            AssetStatus.PENDING_REVIEW.value,
            asset.current_version,
            require_unlocked=False,
            status=AssetStatus.IN_REVIEW.value,
        )
        db.commit()
    except ConcurrencyConflictError:
        # Another view or an upload won; either way there is nothing to do
        db.rollback()
        db.refresh(asset)
        return False
    except Exception:
        db.rollback()
        raise
    db.refresh(asset)

    logger.info(f"Asset {asset.id} moved to in_review on view by {viewer.id}")
    return True


def send_to_client(db: Session, actor: User, asset: Asset) -> list[NotificationTarget]:
    """Move an ``in_review`` asset to ``client_review``.

    Raises:
        PermissionDeniedError: If the actor is not a manager on the project
        AssetLockedError: If the asset is locked
        PreconditionError: If the asset is not in review
    """
    _require_manager(db, actor, asset)
    _require_unlocked(asset)
    _require_status(asset, AssetStatus.IN_REVIEW.value)

    try:
        compare_and_swap(
            db,
            asset.id,
            AssetStatus.IN_REVIEW.value,
            asset.current_version,
            status=AssetStatus.CLIENT_REVIEW.value,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(asset)

    logger.info(f"Asset {asset.id} sent to client by {actor.id}")
    return RecipientEngine(db).sent_to_client(asset, actor)


def _decide(db: Session, actor: User, asset: Asset, action: ApprovalAction, comment: str | None) -> ApprovalLog:
    """Record an approval decision and move the asset to the matching status. Does not commit."""
    new_status = AssetStatus.APPROVED if action == ApprovalAction.APPROVED else AssetStatus.REVISION_REQUESTED
    compare_and_swap(db, asset.id, asset.status, asset.current_version, status=new_status.value)
    log = ApprovalLog(
        asset_id=asset.id,
        asset_version=asset.current_version,
        user_id=actor.id,
        action=action.value,
        comment=comment,
    )
    db.add(log)
    return log


def approve(
    db: Session,
    actor: User,
    asset: Asset,
    comment: str | None = None,
) -> tuple[ApprovalLog, list[NotificationTarget]]:
    """Approve the current version.

    Linked requests that are still open are completed in the same transaction.

    Raises:
        PermissionDeniedError: If the actor may not decide on this asset
        AssetLockedError: If the asset is locked
        PreconditionError: If the asset is not in review or client review
        ConcurrencyConflictError: If another decision or upload landed first
    """
    _require_decider(db, actor, asset)
    _require_unlocked(asset)
    _require_status(asset, *DECISION_SOURCE_STATUSES)

    comment = comment.strip() if comment else None
    try:
        log = _decide(db, actor, asset, ApprovalAction.APPROVED, comment)
        request_targets = complete_linked_requests(db, asset, actor)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(asset)
    db.refresh(log)

    logger.info(f"Asset {asset.id} v{asset.current_version} approved by {actor.id}")
    return log, RecipientEngine(db).asset_approved(asset, actor, comment) + request_targets


def request_revision(
    db: Session,
    actor: User,
    asset: Asset,
    comment: str,
) -> tuple[ApprovalLog, list[NotificationTarget]]:
    """Ask for changes to the current version. A comment is required.

    Raises:
        PermissionDeniedError: If the actor may not decide on this asset
        AssetLockedError: If the asset is locked
        PreconditionError: If the comment is empty or the status does not allow it
        ConcurrencyConflictError: If another decision or upload landed first
    """
    _require_decider(db, actor, asset)
    _require_unlocked(asset)
    _require_status(asset, *DECISION_SOURCE_STATUSES)
    comment = (comment or "").strip()
    if not comment:
        raise PreconditionError("A comment is required when requesting a revision")

    try:
        log = _decide(db, actor, asset, ApprovalAction.REVISION_REQUESTED, comment)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(asset)
    db.refresh(log)

    logger.info(f"Revision requested on asset {asset.id} v{asset.current_version} by {actor.id}")
    return log, RecipientEngine(db).revision_requested(asset, actor, comment)


# Locking


def _set_lock(db: Session, actor: User, asset: Asset, locked: bool, reason: str | None) -> Asset:
    _require_manager(db, actor, asset)

    result = db.execute(
        update(Asset)
        .where(Asset.id == asset.id, Asset.is_locked.is_(not locked))
        .values(
            is_locked=locked,
            locked_by=actor.id if locked else None,
            locked_at=utc_now() if locked else None,
            updated_at=utc_now(),
        )
    )
    if result.rowcount != 1:
        db.rollback()
        raise PreconditionError("Asset is already locked" if locked else "Asset is not locked")

    db.add(
        AssetLockEvent(
            asset_id=asset.id,
            user_id=actor.id,
            action="locked" if locked else "unlocked",
            reason=reason,
        )
    )
    _commit(db)
    db.refresh(asset)

    logger.info(f"Asset {asset.id} {'locked' if locked else 'unlocked'} by {actor.id}")
    return asset


def lock_asset(db: Session, actor: User, asset: Asset, reason: str | None = None) -> Asset:
    """Freeze an asset against uploads and decisions.

    Raises:
        PermissionDeniedError: If the actor is not a manager on the project
        PreconditionError: If the asset is already locked
    """
    return _set_lock(db, actor, asset, True, reason)


def unlock_asset(db: Session, actor: User, asset: Asset, reason: str | None = None) -> Asset:
    """Lift a lock.

    Raises:
        PermissionDeniedError: If the actor is not a manager on the project
        PreconditionError: If the asset is not locked
    """
    return _set_lock(db, actor, asset, False, reason)


# Requests


def link_request(db: Session, actor: User, asset: Asset, request: CreativeRequest) -> list[NotificationTarget]:
    """Link an asset to a creative request.

    Raises:
        PermissionDeniedError: If the actor is neither a manager on the project nor the uploader
        ForeignReferenceError: If the request belongs to another project
        PreconditionError: If the request is closed
    """
    if not (can_approve(actor) and is_project_member(db, actor, asset.project_id)) and asset.uploaded_by != actor.id:
        raise PermissionDeniedError("You cannot link this asset")

    try:
        targets = attach_request(db, asset, request, actor)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(request)
    return targets


# Deletion


def can_delete_asset(actor: User, asset: Asset) -> bool:
    if is_admin(actor):
        return True
    return is_pm(actor) and asset.project.owner_id == actor.id


def delete_asset(db: Session, actor: User, asset: Asset, storage: Storage | None = None) -> None:
    """Delete an asset with its versions, comments, decisions and lock events.

    Stored files are removed after the rows are gone.

    Raises:
        PermissionDeniedError: If the actor is neither admin nor the owning PM
    """
    if not can_delete_asset(actor, asset):
        raise PermissionDeniedError("Only admins and the project owner can delete assets")

    paths = [version.file_path for version in asset.versions]
    for comment in asset.comments:
        paths.extend(attachment.file_path for attachment in comment.attachments)
    asset_id = asset.id

    try:
        db.delete(asset)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Asset {asset_id} deleted by {actor.id}")

    if storage is not None:
        for path in paths:
            try:
                storage.delete(path)
            except StorageError as e:
                logger.error(f"Failed to delete file {path} of asset {asset_id}: {e}")


# Reads


def visible_assets(
    db: Session,
    viewer: User,
    project: Project,
    status: str | None = None,
    asset_type: str | None = None,
) -> list[Asset]:
    """Assets of a project the viewer may see, newest first.

    Reviewers only get assets in client-facing states.

    Raises:
        PermissionDeniedError: If the viewer is not a member of the project
    """
    require_project_member(db, viewer, project.id)

    query = db.query(Asset).filter(Asset.project_id == project.id)
    if is_reviewer(viewer):
        query = query.filter(Asset.status.in_(sorted(CLIENT_VISIBLE_STATUSES)))
    if status:
        query = query.filter(Asset.status == status)
    if asset_type:
        query = query.filter(Asset.type == asset_type)
    return query.order_by(Asset.created_at.desc()).all()


@dataclass(frozen=True)
class HistoryEntry:
    kind: str  # version, approval, lock
    record: Any

    @property
    def created_at(self) -> datetime:
        return as_utc(self.record.created_at)


def asset_history(db: Session, viewer: User, asset: Asset) -> list[HistoryEntry]:
    """Versions, decisions and lock events of an asset, newest first.

    Reviewers see the current version only, their own decisions and no lock events.
    """
    require_asset_visible(db, viewer, asset)

    versions = db.query(AssetVersion).filter(AssetVersion.asset_id == asset.id)
    approvals = db.query(ApprovalLog).filter(ApprovalLog.asset_id == asset.id)
    locks = db.query(AssetLockEvent).filter(AssetLockEvent.asset_id == asset.id).all()

    if is_reviewer(viewer):
        versions = versions.filter(AssetVersion.version_number == asset.current_version)
        approvals = approvals.filter(ApprovalLog.user_id == viewer.id)
        locks = []

    entries = [HistoryEntry("version", v) for v in versions]
    entries += [HistoryEntry("approval", a) for a in approvals]
    entries += [HistoryEntry("lock", e) for e in locks]
    return sorted(entries, key=lambda e: e.created_at, reverse=True)
