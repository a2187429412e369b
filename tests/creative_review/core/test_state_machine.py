"""Tests for the asset state machine."""

import pytest
from sqlalchemy import update

from creative_review.core import state_machine
from creative_review.core.asset_types import FileValidationError
from creative_review.core.errors import (
    AssetLockedError,
    ConcurrencyConflictError,
    ForeignReferenceError,
    PermissionDeniedError,
    PreconditionError,
)
from creative_review.models.approval_log import ApprovalLog
from creative_review.models.asset import Asset, AssetLockEvent, AssetStatus, AssetVersion
from creative_review.models.comment import Comment
from creative_review.models.creative_request import CreativeRequest, RequestStatus
from creative_review.models.notification import NotificationKind

MP4_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64


def _versions(db, asset):
    return [
        v.version_number
        for v in db.query(AssetVersion).filter(AssetVersion.asset_id == asset.id).order_by(AssetVersion.version_number)
    ]


def _logs(db, asset):
    return db.query(ApprovalLog).filter(ApprovalLog.asset_id == asset.id).all()


def _request(db, team, status=RequestStatus.PENDING.value, assigned_to=None, project=None):
    request = CreativeRequest(
        project_id=(project or team["project"]).id,
        title="Banner set",
        created_by=team["pm"].id,
        assigned_to=assigned_to,
        status=status,
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    return request


class TestCreateAsset:
    """Tests for create_asset()."""

    def test__create_asset__starts_at_version_one_pending_review(self, test_db_session, team, temp_storage, make_upload):
        """First upload creates version 1 in pending_review."""
        asset, targets = state_machine.create_asset(
            test_db_session, team["creative"], team["project"], "Hero banner", make_upload(), temp_storage
        )

        assert asset.status == AssetStatus.PENDING_REVIEW.value
        assert asset.current_version == 1
        assert asset.type == "image"
        assert asset.is_locked is False
        assert _versions(test_db_session, asset) == [1]
        assert (temp_storage.base_path / asset.versions[0].file_path).exists()
        assert asset.versions[0].file_meta["original_name"] == "poster.png"

        uploaded = [t for t in targets if t.kind == NotificationKind.ASSET_UPLOADED]
        assert uploaded[0].recipients == frozenset({team["pm"].id})

    def test__create_asset__reviewer_cannot_upload(self, test_db_session, team, temp_storage, make_upload):
        with pytest.raises(PermissionDeniedError):
            state_machine.create_asset(
                test_db_session, team["reviewer"], team["project"], "Hero", make_upload(), temp_storage
            )
        assert test_db_session.query(Asset).count() == 0

    def test__create_asset__non_member_cannot_upload(self, test_db_session, team, temp_storage, make_upload):
        with pytest.raises(PermissionDeniedError):
            state_machine.create_asset(
                test_db_session, team["outsider"], team["project"], "Hero", make_upload(), temp_storage
            )

    def test__create_asset__rejects_unsupported_file(self, test_db_session, team, temp_storage, make_upload):
        upload = make_upload(filename="notes.txt", mime_type="text/plain", content=b"hello")
        with pytest.raises(FileValidationError):
            state_machine.create_asset(test_db_session, team["creative"], team["project"], "Notes", upload, temp_storage)
        assert test_db_session.query(Asset).count() == 0

    def test__create_asset__detects_type_from_file(self, test_db_session, team, temp_storage, make_upload):
        upload = make_upload(filename="teaser.mp4", mime_type="video/mp4", content=MP4_BYTES)
        asset, _ = state_machine.create_asset(
            test_db_session, team["creative"], team["project"], "Teaser", upload, temp_storage
        )
        assert asset.type == "video"

    def test__create_asset__links_request_and_auto_assigns(self, test_db_session, team, temp_storage, make_upload):
        request = _request(test_db_session, team)

        asset, targets = state_machine.create_asset(
            test_db_session,
            team["creative"],
            team["project"],
            "Hero",
            make_upload(),
            temp_storage,
            request_id=request.id,
        )
        test_db_session.refresh(request)

        assert asset in request.assets
        assert request.assigned_to == team["creative"].id
        # Self-assignment through upload does not notify the uploader
        assigned = [t for t in targets if t.kind == NotificationKind.REQUEST_ASSIGNED]
        assert assigned[0].recipients == frozenset()


class TestRecordView:
    """Tests for the view-triggered transition."""

    def test__record_view__privileged_viewer_starts_review_once(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"])

        assert state_machine.record_view(test_db_session, asset, team["admin"]) is True
        assert asset.status == AssetStatus.IN_REVIEW.value

        assert state_machine.record_view(test_db_session, asset, team["admin"]) is False
        assert state_machine.record_view(test_db_session, asset, team["pm"]) is False
        assert asset.status == AssetStatus.IN_REVIEW.value

    def test__record_view__creative_view_changes_nothing(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"])

        assert state_machine.record_view(test_db_session, asset, team["creative"]) is False
        assert asset.status == AssetStatus.PENDING_REVIEW.value

    def test__record_view__reviewer_cannot_see_pending_asset(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"])

        with pytest.raises(PermissionDeniedError):
            state_machine.record_view(test_db_session, asset, team["reviewer"])
        assert asset.status == AssetStatus.PENDING_REVIEW.value

    def test__record_view__not_blocked_by_lock(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"])
        state_machine.lock_asset(test_db_session, team["pm"], asset)

        assert state_machine.record_view(test_db_session, asset, team["pm"]) is True
        assert asset.status == AssetStatus.IN_REVIEW.value
        assert asset.is_locked is True

    def test__record_view__does_not_move_later_states(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"], status=AssetStatus.APPROVED.value)

        assert state_machine.record_view(test_db_session, asset, team["admin"]) is False
        assert asset.status == AssetStatus.APPROVED.value


class TestUploadVersion:
    """Tests for upload_version()."""

    @pytest.mark.parametrize(
        "status",
        [
            AssetStatus.IN_REVIEW.value,
            AssetStatus.CLIENT_REVIEW.value,
            AssetStatus.APPROVED.value,
            AssetStatus.REVISION_REQUESTED.value,
        ],
    )
    def test__upload_version__resets_to_pending_review(
        self, test_db_session, team, create_asset, temp_storage, make_upload, status
    ):
        asset = create_asset(team["project"], team["creative"], status=status)

        version, _ = state_machine.upload_version(
            test_db_session, team["creative"], asset, make_upload(filename="poster-v2.png"), temp_storage, notes="Darker"
        )

        assert version.version_number == 2
        assert version.version_notes == "Darker"
        assert asset.current_version == 2
        assert asset.status == AssetStatus.PENDING_REVIEW.value

    def test__upload_version__keeps_versions_gapless(self, test_db_session, team, create_asset, temp_storage, make_upload):
        asset = create_asset(team["project"], team["creative"])

        for _ in range(3):
            state_machine.upload_version(test_db_session, team["creative"], asset, make_upload(), temp_storage)

        assert asset.current_version == 4
        assert _versions(test_db_session, asset) == [1, 2, 3, 4]

    def test__upload_version__notifies_upload_subscribers(self, test_db_session, team, create_asset, temp_storage, make_upload):
        asset = create_asset(team["project"], team["creative"])

        _, targets = state_machine.upload_version(test_db_session, team["creative"], asset, make_upload(), temp_storage)

        assert targets[0].kind == NotificationKind.NEW_VERSION
        assert targets[0].recipients == frozenset({team["pm"].id})

    def test__upload_version__rejected_when_locked(self, test_db_session, team, create_asset, temp_storage, make_upload):
        asset = create_asset(team["project"], team["creative"])
        state_machine.lock_asset(test_db_session, team["pm"], asset)

        with pytest.raises(AssetLockedError):
            state_machine.upload_version(test_db_session, team["creative"], asset, make_upload(), temp_storage)
        assert _versions(test_db_session, asset) == [1]

    def test__upload_version__other_creative_cannot_upload(
        self, test_db_session, team, create_asset, create_user, temp_storage, make_upload
    ):
        other, _ = create_user(email="other@example.com", role="creative")
        asset = create_asset(team["project"], team["creative"])
        with pytest.raises(PermissionDeniedError):
            state_machine.upload_version(test_db_session, team["outsider"], asset, make_upload(), temp_storage)
        with pytest.raises(PermissionDeniedError):
            state_machine.upload_version(test_db_session, other, asset, make_upload(), temp_storage)

    def test__upload_version__pm_can_upload(self, test_db_session, team, create_asset, temp_storage, make_upload):
        asset = create_asset(team["project"], team["creative"])

        version, _ = state_machine.upload_version(test_db_session, team["pm"], asset, make_upload(), temp_storage)

        assert version.uploaded_by == team["pm"].id

    def test__upload_version__rejects_other_asset_type(self, test_db_session, team, create_asset, temp_storage, make_upload):
        asset = create_asset(team["project"], team["creative"])
        upload = make_upload(filename="teaser.mp4", mime_type="video/mp4", content=MP4_BYTES)

        with pytest.raises(FileValidationError):
            state_machine.upload_version(test_db_session, team["creative"], asset, upload, temp_storage)

    def test__upload_version__stale_version_conflicts_without_new_row(
        self, test_db_session, team, create_asset, temp_storage, make_upload
    ):
        """A concurrent upload that already bumped the version makes this one fail."""
        asset = create_asset(team["project"], team["creative"])
        # Another writer moves the row on behind this session's back
        test_db_session.execute(
            update(Asset)
            .where(Asset.id == asset.id)
            .values(current_version=2)
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(ConcurrencyConflictError):
            state_machine.upload_version(test_db_session, team["creative"], asset, make_upload(), temp_storage)

        assert _versions(test_db_session, asset) == [1]
        assert len(list(temp_storage.base_path.rglob("*.png"))) == 1


class TestCompareAndSwap:
    """Tests for compare_and_swap()."""

    def test__compare_and_swap__applies_when_state_matches(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"])

        state_machine.compare_and_swap(
            test_db_session, asset.id, AssetStatus.PENDING_REVIEW.value, 1, status=AssetStatus.IN_REVIEW.value
        )
        test_db_session.commit()
        test_db_session.refresh(asset)

        assert asset.status == AssetStatus.IN_REVIEW.value

    def test__compare_and_swap__stale_status_raises(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"], status=AssetStatus.APPROVED.value)

        with pytest.raises(ConcurrencyConflictError):
            state_machine.compare_and_swap(
                test_db_session, asset.id, AssetStatus.IN_REVIEW.value, 1, status=AssetStatus.APPROVED.value
            )

    def test__compare_and_swap__conflict_is_a_precondition_error(self):
        assert issubclass(ConcurrencyConflictError, PreconditionError)


class TestSendToClient:
    """Tests for send_to_client()."""

    def test__send_to_client__moves_in_review_to_client_review(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"], status=AssetStatus.IN_REVIEW.value)

        targets = state_machine.send_to_client(test_db_session, team["pm"], asset)

        assert asset.status == AssetStatus.CLIENT_REVIEW.value
        assert targets[0].kind == NotificationKind.SENT_TO_CLIENT
        assert targets[0].recipients == frozenset({team["reviewer"].id})

    def test__send_to_client__requires_manager(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"], status=AssetStatus.IN_REVIEW.value)

        with pytest.raises(PermissionDeniedError):
            state_machine.send_to_client(test_db_session, team["creative"], asset)
        assert asset.status == AssetStatus.IN_REVIEW.value

    def test__send_to_client__requires_in_review(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"])

        with pytest.raises(PreconditionError):
            state_machine.send_to_client(test_db_session, team["pm"], asset)
        assert asset.status == AssetStatus.PENDING_REVIEW.value

    def test__send_to_client__rejected_when_locked(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"], status=AssetStatus.IN_REVIEW.value)
        state_machine.lock_asset(test_db_session, team["pm"], asset)

        with pytest.raises(AssetLockedError):
            state_machine.send_to_client(test_db_session, team["pm"], asset)


class TestApprove:
    """Tests for approve()."""

    def test__approve__from_in_review_by_pm(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"], status=AssetStatus.IN_REVIEW.value)

        log, targets = state_machine.approve(test_db_session, team["pm"], asset, comment="Looks great")

        assert asset.status == AssetStatus.APPROVED.value
        assert log.action == "approved"
        assert log.asset_version == 1
        assert log.comment == "Looks great"
        approved = [t for t in targets if t.kind == NotificationKind.ASSET_APPROVED][0]
        assert team["creative"].id in approved.recipients
        assert team["pm"].id not in approved.recipients

    def test__approve__from_client_review_by_reviewer(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"], status=AssetStatus.CLIENT_REVIEW.value)

        log, _ = state_machine.approve(test_db_session, team["reviewer"], asset)

        assert asset.status == AssetStatus.APPROVED.value
        assert log.user_id == team["reviewer"].id

    def test__approve__reviewer_cannot_approve_in_review(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"], status=AssetStatus.IN_REVIEW.value)

        with pytest.raises(PermissionDeniedError):
            state_machine.approve(test_db_session, team["reviewer"], asset)
        assert _logs(test_db_session, asset) == []

    def test__approve__reviewer_outside_project_cannot_approve(self, test_db_session, team, create_asset, create_user):
        stranger, _ = create_user(email="client2@example.com", role="reviewer")
        asset = create_asset(team["project"], team["creative"], status=AssetStatus.CLIENT_REVIEW.value)

        with pytest.raises(PermissionDeniedError):
            state_machine.approve(test_db_session, stranger, asset)
        assert asset.status == AssetStatus.CLIENT_REVIEW.value

    def test__approve__wrong_role_on_pending_changes_nothing(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"])

        with pytest.raises(PermissionDeniedError):
            state_machine.approve(test_db_session, team["creative"], asset)
        with pytest.raises(PermissionDeniedError):
            state_machine.approve(test_db_session, team["reviewer"], asset)

        assert asset.status == AssetStatus.PENDING_REVIEW.value
        assert _logs(test_db_session, asset) == []

    def test__approve__from_pending_review_is_a_precondition_error(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"])

        with pytest.raises(PreconditionError):
            state_machine.approve(test_db_session, team["admin"], asset)
        assert asset.status == AssetStatus.PENDING_REVIEW.value
        assert _logs(test_db_session, asset) == []

    def test__approve__rejected_when_locked(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"], status=AssetStatus.CLIENT_REVIEW.value)
        state_machine.lock_asset(test_db_session, team["pm"], asset)

        with pytest.raises(AssetLockedError):
            state_machine.approve(test_db_session, team["reviewer"], asset)
        assert asset.status == AssetStatus.CLIENT_REVIEW.value

    def test__approve__completes_linked_open_request(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"], status=AssetStatus.IN_REVIEW.value)
        request = _request(test_db_session, team, status=RequestStatus.ASSET_SUBMITTED.value, assigned_to=team["creative"].id)
        state_machine.link_request(test_db_session, team["pm"], asset, request)

        _, targets = state_machine.approve(test_db_session, team["pm"], asset)
        test_db_session.refresh(request)

        assert request.status == RequestStatus.COMPLETED.value
        changed = [t for t in targets if t.kind == NotificationKind.REQUEST_STATUS_CHANGED]
        assert changed[0].recipients == frozenset({team["creative"].id})

    def test__approve__leaves_completed_request_untouched(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"], status=AssetStatus.IN_REVIEW.value)
        request = _request(test_db_session, team, status=RequestStatus.ASSET_SUBMITTED.value)
        state_machine.link_request(test_db_session, team["pm"], asset, request)
        request.status = RequestStatus.COMPLETED.value
        test_db_session.commit()
        before = request.updated_at

        _, targets = state_machine.approve(test_db_session, team["pm"], asset)
        test_db_session.refresh(request)

        assert request.status == RequestStatus.COMPLETED.value
        assert request.updated_at == before
        assert not [t for t in targets if t.kind == NotificationKind.REQUEST_STATUS_CHANGED]


class TestRequestRevision:
    """Tests for request_revision()."""

    def test__request_revision__requires_comment(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"], status=AssetStatus.IN_REVIEW.value)

        with pytest.raises(PreconditionError):
            state_machine.request_revision(test_db_session, team["pm"], asset, "   ")
        assert asset.status == AssetStatus.IN_REVIEW.value
        assert _logs(test_db_session, asset) == []

    def test__request_revision__records_log_and_notifies_uploader(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"], status=AssetStatus.CLIENT_REVIEW.value)

        log, targets = state_machine.request_revision(test_db_session, team["reviewer"], asset, "fix colors")

        assert asset.status == AssetStatus.REVISION_REQUESTED.value
        assert (log.action, log.asset_version, log.comment) == ("revision_requested", 1, "fix colors")
        assert targets[0].kind == NotificationKind.REVISION_REQUESTED
        assert targets[0].recipients == frozenset({team["creative"].id})

    def test__request_revision__by_uploader_pm_notifies_nobody(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["pm"], status=AssetStatus.IN_REVIEW.value)

        _, targets = state_machine.request_revision(test_db_session, team["pm"], asset, "Tighten the crop")

        assert targets[0].recipients == frozenset()

    def test__request_revision__from_approved_is_rejected(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"], status=AssetStatus.APPROVED.value)

        with pytest.raises(PreconditionError):
            state_machine.request_revision(test_db_session, team["pm"], asset, "Too late")


class TestLocking:
    """Tests for lock_asset() and unlock_asset()."""

    def test__lock_and_unlock__record_events(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"])

        state_machine.lock_asset(test_db_session, team["pm"], asset, reason="Export")
        assert asset.is_locked is True
        assert asset.locked_by == team["pm"].id
        assert asset.locked_at is not None

        state_machine.unlock_asset(test_db_session, team["pm"], asset)
        assert asset.is_locked is False
        assert asset.locked_by is None

        events = (
            test_db_session.query(AssetLockEvent)
            .filter(AssetLockEvent.asset_id == asset.id)
            .order_by(AssetLockEvent.created_at)
            .all()
        )
        assert [(e.action, e.reason) for e in events] == [("locked", "Export"), ("unlocked", None)]

    def test__lock__twice_is_a_precondition_error(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"])
        state_machine.lock_asset(test_db_session, team["pm"], asset)

        with pytest.raises(PreconditionError):
            state_machine.lock_asset(test_db_session, team["pm"], asset)

    def test__unlock__unlocked_asset_is_a_precondition_error(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"])

        with pytest.raises(PreconditionError):
            state_machine.unlock_asset(test_db_session, team["admin"], asset)

    def test__lock__requires_manager(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"])

        with pytest.raises(PermissionDeniedError):
            state_machine.lock_asset(test_db_session, team["creative"], asset)
        assert asset.is_locked is False


class TestLinkRequest:
    """Tests for link_request()."""

    def test__link_request__first_assignee_sticks(self, test_db_session, team, create_asset, create_user):
        other, _ = create_user(email="second@example.com", role="creative")
        request = _request(test_db_session, team, assigned_to=other.id)
        asset = create_asset(team["project"], team["creative"])

        state_machine.link_request(test_db_session, team["creative"], asset, request)

        assert request.assigned_to == other.id

    def test__link_request__assigns_unassigned_request_to_uploader(self, test_db_session, team, create_asset):
        request = _request(test_db_session, team)
        asset = create_asset(team["project"], team["creative"])

        targets = state_machine.link_request(test_db_session, team["pm"], asset, request)

        assert request.assigned_to == team["creative"].id
        assigned = [t for t in targets if t.kind == NotificationKind.REQUEST_ASSIGNED][0]
        assert assigned.recipients == frozenset({team["creative"].id})

    def test__link_request__in_progress_becomes_asset_submitted(self, test_db_session, team, create_asset):
        request = _request(test_db_session, team, status=RequestStatus.IN_PROGRESS.value, assigned_to=team["creative"].id)
        asset = create_asset(team["project"], team["creative"])

        targets = state_machine.link_request(test_db_session, team["creative"], asset, request)

        assert request.status == RequestStatus.ASSET_SUBMITTED.value
        changed = [t for t in targets if t.kind == NotificationKind.REQUEST_STATUS_CHANGED][0]
        assert changed.recipients == frozenset({team["pm"].id})

    def test__link_request__other_project_is_rejected(self, test_db_session, team, create_asset, create_project):
        other_project = create_project(team["pm"])
        request = _request(test_db_session, team, project=other_project)
        asset = create_asset(team["project"], team["creative"])

        with pytest.raises(ForeignReferenceError):
            state_machine.link_request(test_db_session, team["pm"], asset, request)
        assert request.assets == []

    def test__link_request__unrelated_creative_cannot_link(self, test_db_session, team, create_asset):
        request = _request(test_db_session, team)
        asset = create_asset(team["project"], team["pm"])

        with pytest.raises(PermissionDeniedError):
            state_machine.link_request(test_db_session, team["creative"], asset, request)


class TestDeleteAsset:
    """Tests for delete_asset()."""

    def test__delete_asset__cascades_and_removes_files(self, test_db_session, team, create_asset, temp_storage, make_upload):
        asset = create_asset(team["project"], team["creative"], status=AssetStatus.IN_REVIEW.value)
        state_machine.upload_version(test_db_session, team["pm"], asset, make_upload(), temp_storage)
        test_db_session.add(Comment(asset_id=asset.id, asset_version=2, user_id=team["pm"].id, content="Nice"))
        test_db_session.commit()
        paths = [v.file_path for v in asset.versions]
        asset_id = asset.id

        state_machine.delete_asset(test_db_session, team["admin"], asset, temp_storage)

        assert test_db_session.get(Asset, asset_id) is None
        assert test_db_session.query(AssetVersion).filter(AssetVersion.asset_id == asset_id).count() == 0
        assert test_db_session.query(Comment).filter(Comment.asset_id == asset_id).count() == 0
        assert not any((temp_storage.base_path / path).exists() for path in paths)

    def test__delete_asset__owning_pm_may_delete(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"])
        asset_id = asset.id

        state_machine.delete_asset(test_db_session, team["pm"], asset)

        assert test_db_session.get(Asset, asset_id) is None

    def test__delete_asset__creative_cannot_delete(self, test_db_session, team, create_asset):
        asset = create_asset(team["project"], team["creative"])

        with pytest.raises(PermissionDeniedError):
            state_machine.delete_asset(test_db_session, team["creative"], asset)
        assert test_db_session.get(Asset, asset.id) is not None


class TestVisibleAssets:
    """Tests for visible_assets()."""

    def test__visible_assets__reviewer_sees_client_facing_states_only(self, test_db_session, team, create_asset):
        for status in AssetStatus:
            create_asset(team["project"], team["creative"], status=status.value, title=status.value)

        reviewer_view = state_machine.visible_assets(test_db_session, team["reviewer"], team["project"])
        pm_view = state_machine.visible_assets(test_db_session, team["pm"], team["project"])

        assert {a.status for a in reviewer_view} == {"client_review", "approved", "revision_requested"}
        assert len(pm_view) == 5

    def test__visible_assets__status_filter_cannot_reveal_hidden_states(self, test_db_session, team, create_asset):
        create_asset(team["project"], team["creative"])

        assets = state_machine.visible_assets(
            test_db_session, team["reviewer"], team["project"], status=AssetStatus.PENDING_REVIEW.value
        )

        assert assets == []

    def test__visible_assets__requires_membership(self, test_db_session, team):
        with pytest.raises(PermissionDeniedError):
            state_machine.visible_assets(test_db_session, team["outsider"], team["project"])


class TestAssetHistory:
    """Tests for asset_history()."""

    def test__asset_history__lists_versions_decisions_and_locks_newest_first(
        self, test_db_session, team, create_asset, temp_storage, make_upload
    ):
        asset = create_asset(team["project"], team["creative"], status=AssetStatus.IN_REVIEW.value)
        state_machine.request_revision(test_db_session, team["pm"], asset, "Brighter")
        state_machine.upload_version(test_db_session, team["creative"], asset, make_upload(), temp_storage)
        state_machine.lock_asset(test_db_session, team["pm"], asset)

        history = state_machine.asset_history(test_db_session, team["pm"], asset)

        assert [e.kind for e in history] == ["lock", "version", "approval", "version"]

    def test__asset_history__reviewer_sees_current_version_and_own_decisions(
        self, test_db_session, team, create_asset, temp_storage, make_upload
    ):
        asset = create_asset(team["project"], team["creative"], status=AssetStatus.IN_REVIEW.value)
        state_machine.request_revision(test_db_session, team["pm"], asset, "Brighter")
        state_machine.upload_version(test_db_session, team["creative"], asset, make_upload(), temp_storage)
        asset.status = AssetStatus.CLIENT_REVIEW.value
        test_db_session.commit()
        state_machine.approve(test_db_session, team["reviewer"], asset)
        state_machine.lock_asset(test_db_session, team["pm"], asset)

        history = state_machine.asset_history(test_db_session, team["reviewer"], asset)

        assert [e.kind for e in history] == ["approval", "version"]
        assert history[1].record.version_number == 2
        assert history[0].record.user_id == team["reviewer"].id
