"""
User schemas for API request/response validation.
Separates internal models from API contracts using Pydantic.
"""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field, field_validator

from app.models.user import Permission


class UserCreate(BaseModel):
    """Schema for user registration."""

    username: str = Field(min_length=1, max_length=255)
    password: str

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Username must not be blank")
        return v


class UserResponse(BaseModel):
    """
    Schema for user data in API responses.
    Excludes sensitive information like hashed_password.
    """

    id: int
    username: str
    permissions: List[Permission]
    created_at: datetime

    model_config = {"from_attributes": True}


class PermissionsUpdate(BaseModel):
    """Replacement permission set for a user."""

    permissions: List[Permission]

    @field_validator("permissions")
    @classmethod
    def deduplicate(cls, v: List[Permission]) -> List[Permission]:
        return list(dict.fromkeys(v))
