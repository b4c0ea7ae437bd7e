"""
Token schemas for JWT authentication.
"""

from typing import Optional

from pydantic import BaseModel


class AccessToken(BaseModel):
    """Schema for an access token response."""

    access_token: str
    token_type: str = "bearer"


class Token(AccessToken):
    """Schema for the login response: an access token plus the refresh token it derives from."""

    refresh_token: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenPayload(BaseModel):
    """Schema for decoded JWT payload."""

    sub: int
    iat: int
    exp: int
    type: str
    refresh_hash: Optional[str] = None
