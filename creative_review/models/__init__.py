"""Database models package."""

from creative_review.models.approval_log import ApprovalAction, ApprovalLog
from creative_review.models.asset import Asset, AssetLockEvent, AssetStatus, AssetType, AssetVersion
from creative_review.models.comment import Comment, CommentAttachment
from creative_review.models.creative_request import CreativeRequest, RequestPriority, RequestStatus
from creative_review.models.notification import Notification, NotificationKind
from creative_review.models.project import Project, ProjectMember
from creative_review.models.staged_media import StagedMedia
from creative_review.models.user import Role, User

__all__ = [
    "User",
    "Role",
    "Project",
    "ProjectMember",
    "Asset",
    "AssetVersion",
    "AssetLockEvent",
    "AssetStatus",
    "AssetType",
    "Comment",
    "CommentAttachment",
    "ApprovalLog",
    "ApprovalAction",
    "CreativeRequest",
    "RequestStatus",
    "RequestPriority",
    "StagedMedia",
    "Notification",
    "NotificationKind",
]
