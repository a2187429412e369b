"""Authentication schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator


class UserSignup(BaseModel):
    """User signup request schema."""

    email: EmailStr
    password: str
    name: str

    @field_validator("password", mode="before")
    @classmethod
    def validate_password(cls, v: str) -> str:
        """Validate password length."""
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters long")
        return v

    @field_validator("name", mode="before")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        """Normalize name by stripping whitespace."""
        return v.strip() if isinstance(v, str) else v


class UserLogin(BaseModel):
    """User login request schema."""

    email: EmailStr
    password: str


class UserResponse(BaseModel):
    """User response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str
    role: str
    created_at: datetime


class UserSummary(BaseModel):
    """Author, resolver or mention as embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    role: str


class LoginResponse(BaseModel):
    """Login response schema with token and user info."""

    access_token: str
    token_type: str = "bearer"
    user: UserResponse
