"""
Security utilities for password hashing, password policy and JWT tokens.

Default hashing uses ``pbkdf2_sha256`` for stable cross-platform behavior in
tests and local development. ``bcrypt`` verification is still supported for
existing hashes.

Two token kinds are issued:

* refresh tokens (``type=refresh``) signed with ``REFRESH_KEY``; the service
  keeps the sha256 hash of every refresh token it hands out
* access tokens (``type=access``) signed with ``SECRET_KEY`` and carrying the
  hash of the refresh token they were derived from
"""

import base64
import hashlib
import re
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

from jose import jwt
from passlib.context import CryptContext

from app.core.config import settings
from app.core.exceptions import ValidationError

pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"[0-9]")
_SPECIAL = re.compile(r"[^A-Za-z0-9]")


def utc_now() -> datetime:
    """Current UTC time truncated to whole seconds (JWT ``iat`` resolution)."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def validate_password_policy(password: str) -> None:
    """
    Enforce the password policy.

    At least ``PASSWORD_MIN_LENGTH`` characters with an upper-case letter,
    a lower-case letter and a digit; a non-alphanumeric character as well
    when ``PASSWORD_REQUIRE_SPECIAL`` is set.

    Raises:
        ValidationError: If the password does not satisfy the policy
    """
    problems = []
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        problems.append(f"at least {settings.PASSWORD_MIN_LENGTH} characters")
    if not _UPPER.search(password):
        problems.append("an upper-case letter")
    if not _LOWER.search(password):
        problems.append("a lower-case letter")
    if not _DIGIT.search(password):
        problems.append("a digit")
    if settings.PASSWORD_REQUIRE_SPECIAL and not _SPECIAL.search(password):
        problems.append("a special character")

    if problems:
        raise ValidationError(
            "Invalid password: must contain " + ", ".join(problems),
            field="password",
        )


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a hashed password.

    Args:
        plain_password: The plain text password
        hashed_password: The hashed password to compare against

    Returns:
        True if password matches, False otherwise
    """
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password using the configured default scheme."""
    return pwd_context.hash(password)


def token_hash(raw_token: str) -> str:
    """sha256 of a raw token, base64 encoded."""
    digest = hashlib.sha256(raw_token.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def create_refresh_token(subject: str | Any, expires_delta: timedelta | None = None) -> tuple[str, datetime]:
    """
    Create a JWT refresh token.

    Args:
        subject: The subject (user ID) to encode in the token
        expires_delta: Optional custom expiration time

    Returns:
        Encoded token and its expiry instant
    """
    issued_at = utc_now()
    expire = issued_at + (expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS))
    to_encode = {
        "sub": str(subject),
        "iat": int(issued_at.timestamp()),
        "exp": int(expire.timestamp()),
        "type": REFRESH_TOKEN_TYPE,
        "jti": uuid4().hex,
    }
    encoded_jwt = jwt.encode(to_encode, settings.REFRESH_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt, expire


def create_access_token(
    subject: str | Any,
    refresh_hash: str,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token bound to a refresh token.

    Args:
        subject: The subject (user ID) to encode in the token
        refresh_hash: Hash of the refresh token this access token derives from
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    issued_at = utc_now()
    expire = issued_at + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {
        "sub": str(subject),
        "iat": int(issued_at.timestamp()),
        "exp": int(expire.timestamp()),
        "type": ACCESS_TOKEN_TYPE,
        "refresh_hash": refresh_hash,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str, token_type: str) -> dict[str, Any]:
    """
    Decode and verify a token of the given kind.

    Raises:
        jose.JWTError: On a bad signature, an expired token or a malformed payload
        ValueError: If the token is of another kind
    """
    key = settings.SECRET_KEY if token_type == ACCESS_TOKEN_TYPE else settings.REFRESH_KEY
    payload = jwt.decode(token, key, algorithms=[settings.ALGORITHM])
    if payload.get("type") != token_type:
        raise ValueError(f"Expected a {token_type} token")
    return payload
