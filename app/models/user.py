"""
User model with permission-role based access control.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, List, Optional

from sqlmodel import JSON, Column, Field, SQLModel

from app.core.security import utc_now


class Permission(str, Enum):
    """Permission-roles a user can hold."""

    ADMIN = "ADMIN"
    CREATE = "CREATE"
    APPROVE = "APPROVE"
    ARCHIVE = "ARCHIVE"
    DELETE = "DELETE"
    EDIT = "EDIT"


class User(SQLModel, table=True):
    """
    User model with authentication and permission support.

    Attributes:
        id: Primary key
        username: Unique login name
        hashed_password: passlib hash
        permissions: Permission-roles held by the user (set semantics)
        last_token_reset: Tokens issued before this instant are rejected
        created_at: Timestamp of account creation
    """

    __tablename__ = "users"  # type: ignore

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(unique=True, index=True, max_length=255)
    hashed_password: str
    permissions: List[Permission] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    last_token_reset: datetime = Field(default_factory=utc_now)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def permission_set(self) -> FrozenSet[Permission]:
        """Permissions as enum members; JSON columns load back as plain strings."""
        return frozenset(Permission(p) for p in self.permissions or [])


class RefreshToken(SQLModel, table=True):
    """A refresh token handed out at login, tracked by its hash."""

    __tablename__ = "refresh_tokens"  # type: ignore

    hash: str = Field(primary_key=True, max_length=64)
    user_id: int = Field(foreign_key="users.id", index=True)
    expires_at: datetime
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
