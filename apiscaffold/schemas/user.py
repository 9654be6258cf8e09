"""
apiscaffold/schemas/user.py
Placeholder user DTOs
"""

from datetime import datetime, timezone
from uuid import UUID, uuid4

from pydantic import EmailStr, Field

from .base import BaseModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    """A user as stored; the password never leaves the service"""
    id: UUID = Field(default_factory=uuid4)
    email: str
    password: str = Field(..., exclude=True, repr=False)
    username: str
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=_utcnow, alias="updatedAt")

    def to_response(self) -> "UserResponse":
        return UserResponse(
            id=self.id,
            email=self.email,
            username=self.username,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class UserCreate(BaseModel):
    """Payload for creating a user"""
    email: EmailStr
    password: str = Field(..., min_length=8)
    username: str = Field(..., min_length=3, max_length=30)


class UserResponse(BaseModel):
    """A user as returned by the API"""
    id: UUID
    email: str
    username: str
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


__all__ = ["User", "UserCreate", "UserResponse"]
