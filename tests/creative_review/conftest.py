"""Pytest fixtures for creative review tests."""

import os

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-creative-review")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import shutil
from pathlib import Path
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from creative_review.core.dependencies import get_file_storage
from creative_review.core.notifications import NotificationDispatcher, get_notification_dispatcher
from creative_review.core.security import create_access_token, hash_password
from creative_review.core.state_machine import UploadedFile, create_asset as create_asset_record
from creative_review.core.storage import LocalStorage
from creative_review.database import Base, get_db
from creative_review.main import app
from creative_review.models.asset import Asset
from creative_review.models.project import Project, ProjectMember
from creative_review.models.user import User

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
PDF_BYTES = b"%PDF-1.4\n" + b"\x00" * 64
MP4_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64


class RecordingDelivery:
    """Delivery channel that keeps what it was asked to send."""

    def __init__(self):
        self.sent: list[tuple[frozenset, str, dict]] = []

    def dispatch(self, recipients, kind, payload) -> None:
        self.sent.append((recipients, kind.value, payload))

    def recipients_of(self, kind: str) -> set:
        return {user_id for recipients, sent_kind, _ in self.sent if sent_kind == kind for user_id in recipients}


@pytest.fixture(scope="function")
def test_db_engine():
    """Create a database engine for testing.

    Uses TEST_DATABASE_URL when set, otherwise an in-memory SQLite database
    shared across threads so the TestClient sees the same data.
    """
    test_db_url = os.getenv("TEST_DATABASE_URL", "sqlite://")

    if test_db_url.startswith("sqlite"):
        engine = create_engine(
            test_db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(test_db_url, pool_pre_ping=True, pool_size=5, max_overflow=10)

    # Create all tables
    Base.metadata.create_all(bind=engine)

    yield engine

    # Cleanup: drop all tables
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def test_db_session(test_db_engine) -> Generator[Session, None, None]:
    """Create a database session for testing with automatic rollback."""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine,
    )
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def temp_storage(tmp_path: Path) -> Generator[LocalStorage, None, None]:
    """Storage rooted in a temporary directory."""
    storage_dir = tmp_path / "test_uploads"
    storage = LocalStorage(base_path=storage_dir, base_url="/files")

    try:
        yield storage
    finally:
        if storage_dir.exists():
            shutil.rmtree(storage_dir, ignore_errors=True)


@pytest.fixture(scope="function")
def delivery() -> RecordingDelivery:
    return RecordingDelivery()


@pytest.fixture(scope="function")
def test_client(
    test_db_session: Session,
    temp_storage: LocalStorage,
    delivery: RecordingDelivery,
) -> Generator[TestClient, None, None]:
    """Create a test client with database, storage and notification overrides."""

    def override_get_db() -> Generator[Session, None, None]:
        """Override get_db dependency to use test database session."""
        try:
            yield test_db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_file_storage] = lambda: temp_storage
    app.dependency_overrides[get_notification_dispatcher] = lambda: NotificationDispatcher(delivery)

    client = TestClient(app)

    try:
        yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def create_user(test_db_session: Session) -> Callable:
    """Factory function to create users directly in the database.

    Returns:
        Function that creates a user with given parameters and returns (user, token)

    Example:
        ```python
        def test_example(create_user):
            pm, token = create_user(email="pm@example.com", name="PM", role="pm")
        ```
    """

    def _create_user(
        email: str,
        password: str = "testpassword123",
        name: str = "Test User",
        role: str = "creative",
        is_active: bool = True,
    ) -> tuple[User, str]:
        user = User(
            email=email,
            name=name,
            password_hash=hash_password(password),
            role=role,
            is_active=is_active,
        )
        test_db_session.add(user)
        test_db_session.commit()
        test_db_session.refresh(user)

        token = create_access_token(data={"sub": str(user.id)})
        return user, token

    return _create_user


@pytest.fixture(scope="function")
def create_project(test_db_session: Session) -> Callable:
    """Factory creating a project owned by ``owner`` with the given members.

    The owner is added as a member too. ``member_flags`` maps a user to
    overrides of its notification preferences.
    """

    def _create_project(owner: User, members: list[User] = (), member_flags: dict | None = None) -> Project:
        project = Project(owner_id=owner.id, name="Spring Campaign", description="Launch visuals")
        test_db_session.add(project)
        test_db_session.flush()

        member_flags = member_flags or {}
        for user in [owner, *members]:
            flags = member_flags.get(user.id, {})
            test_db_session.add(
                ProjectMember(
                    project_id=project.id,
                    user_id=user.id,
                    role_in_project="owner" if user.id == owner.id else "member",
                    **flags,
                )
            )
        test_db_session.commit()
        test_db_session.refresh(project)
        return project

    return _create_project


@pytest.fixture(scope="function")
def make_upload() -> Callable:
    def _make_upload(
        filename: str = "poster.png",
        mime_type: str | None = "image/png",
        content: bytes = PNG_BYTES,
    ) -> UploadedFile:
        return UploadedFile(filename=filename, mime_type=mime_type, content=content)

    return _make_upload


@pytest.fixture(scope="function")
def create_asset(test_db_session: Session, temp_storage: LocalStorage, make_upload: Callable) -> Callable:
    """Factory creating an asset through the state machine.

    ``status`` is written directly afterwards so tests can start from any state.
    """

    def _create_asset(
        project: Project,
        uploader: User,
        status: str | None = None,
        upload: UploadedFile | None = None,
        title: str = "Hero banner",
    ) -> Asset:
        asset, _ = create_asset_record(
            test_db_session,
            uploader,
            project,
            title,
            upload or make_upload(),
            temp_storage,
        )
        if status is not None:
            asset.status = status
            test_db_session.commit()
            test_db_session.refresh(asset)
        return asset

    return _create_asset


@pytest.fixture(scope="function")
def team(create_user, create_project) -> dict:
    """A project with one user of each role, all members.

    Keys: admin, pm, creative, reviewer, outsider (a creative not on the project), project.
    """
    admin, admin_token = create_user(email="admin@example.com", name="Ada Admin", role="admin")
    pm, pm_token = create_user(email="pm@example.com", name="Pat PM", role="pm")
    creative, creative_token = create_user(email="creative@example.com", name="Cora Creative", role="creative")
    reviewer, reviewer_token = create_user(email="reviewer@example.com", name="Rex Reviewer", role="reviewer")
    outsider, outsider_token = create_user(email="outsider@example.com", name="Olly Outsider", role="creative")

    project = create_project(pm, members=[creative, reviewer])
    return {
        "project": project,
        "admin": admin,
        "pm": pm,
        "creative": creative,
        "reviewer": reviewer,
        "outsider": outsider,
        "tokens": {
            "admin": admin_token,
            "pm": pm_token,
            "creative": creative_token,
            "reviewer": reviewer_token,
            "outsider": outsider_token,
        },
    }
