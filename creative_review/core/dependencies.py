"""FastAPI dependencies shared by the routers."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from creative_review.core.security import decode_access_token
from creative_review.core.staged_media import StagedMediaStore
from creative_review.core.storage import Storage, get_storage
from creative_review.database import get_db
from creative_review.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """Resolve the authenticated user from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or for an inactive user
    """
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized

    payload = decode_access_token(credentials.credentials)
    if payload is None or "sub" not in payload:
        raise unauthorized

    try:
        user_id = UUID(payload["sub"])
    except (TypeError, ValueError):
        raise unauthorized

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise unauthorized
    return user


def get_file_storage() -> Storage:
    return get_storage()


def get_staged_media_store(
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[Storage, Depends(get_file_storage)],
) -> StagedMediaStore:
    return StagedMediaStore(db, storage)


def get_or_404(db: Session, model: type, record_id: UUID, name: str):
    """Load a record by primary key or answer 404."""
    record = db.get(model, record_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{name} not found",
        )
    return record
