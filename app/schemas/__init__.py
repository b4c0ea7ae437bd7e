"""Pydantic schemas for request/response validation."""

from app.schemas.book import BookCreate, BookResponse, BookUpdate, TagIn, TagResponse
from app.schemas.token import AccessToken, RefreshRequest, Token, TokenPayload
from app.schemas.user import PermissionsUpdate, UserCreate, UserResponse

__all__ = [
    "AccessToken",
    "BookCreate",
    "BookResponse",
    "BookUpdate",
    "PermissionsUpdate",
    "RefreshRequest",
    "TagIn",
    "TagResponse",
    "Token",
    "TokenPayload",
    "UserCreate",
    "UserResponse",
]
