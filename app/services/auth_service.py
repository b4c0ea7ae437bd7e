"""
Authentication service: token issuing, refreshing and revocation.

Refresh tokens are tracked by hash in ``refresh_tokens``; every access token
names the refresh token it was derived from, so deleting that row (logout)
revokes both. ``User.last_token_reset`` revokes every token issued earlier.
"""

from datetime import datetime, timezone

from jose import JWTError
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete
from sqlmodel import Session

from app.core.exceptions import UnauthenticatedError
from app.core.logging import get_logger
from app.core.security import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    as_utc,
    create_access_token,
    create_refresh_token,
    decode_token,
    token_hash,
)
from app.models.user import RefreshToken, User
from app.schemas.token import AccessToken, Token, TokenPayload
from app.services.user_service import UserService

logger = get_logger(__name__)


class AuthService:
    """Service class for token operations."""

    @staticmethod
    def login(session: Session, user: User) -> Token:
        """
        Issue a refresh token and an access token for an authenticated user.

        Credentials are NOT checked here; see ``UserService.authenticate``.
        """
        refresh_token, expires_at = create_refresh_token(subject=user.id)
        refresh_hash = token_hash(refresh_token)

        session.add(RefreshToken(hash=refresh_hash, user_id=user.id, expires_at=expires_at))
        session.commit()

        access_token = create_access_token(subject=user.id, refresh_hash=refresh_hash)
        logger.info(f"User logged in: {user.username} (ID: {user.id})")
        return Token(access_token=access_token, refresh_token=refresh_token)

    @staticmethod
    def refresh(session: Session, raw_refresh_token: str) -> AccessToken:
        """
        Exchange a tracked, unexpired refresh token for a new access token.

        Raises:
            UnauthenticatedError: If the refresh token is invalid or revoked
        """
        payload = AuthService._decode(raw_refresh_token, REFRESH_TOKEN_TYPE)
        refresh_hash = token_hash(raw_refresh_token)
        AuthService._require_tracked(session, refresh_hash)
        user = AuthService._resolve_user(session, payload)

        access_token = create_access_token(subject=user.id, refresh_hash=refresh_hash)
        return AccessToken(access_token=access_token)

    @staticmethod
    def authenticate_access_token(session: Session, raw_access_token: str) -> tuple[User, TokenPayload]:
        """
        Validate an access token and return its user.

        Raises:
            UnauthenticatedError: On a bad, expired or revoked token or an unknown user
        """
        payload = AuthService._decode(raw_access_token, ACCESS_TOKEN_TYPE)
        if not payload.refresh_hash:
            raise UnauthenticatedError("Token is missing its session reference")
        AuthService._require_tracked(session, payload.refresh_hash)
        user = AuthService._resolve_user(session, payload)
        return user, payload

    @staticmethod
    def logout(session: Session, payload: TokenPayload) -> None:
        """Forget the refresh token the current access token derives from."""
        session.exec(delete(RefreshToken).where(RefreshToken.hash == payload.refresh_hash))
        session.commit()
        logger.info(f"User {payload.sub} logged out")

    @staticmethod
    def invalidate_all_sessions(session: Session, user: User) -> User:
        return UserService.reset_tokens(session, user)

    @staticmethod
    def _decode(raw_token: str, token_type: str) -> TokenPayload:
        try:
            return TokenPayload.model_validate(decode_token(raw_token, token_type))
        except (JWTError, ValueError, PydanticValidationError) as e:
            logger.warning(f"{token_type.capitalize()} token validation failed: {e}")
            raise UnauthenticatedError()

    @staticmethod
    def _require_tracked(session: Session, refresh_hash: str) -> None:
        stored = session.get(RefreshToken, refresh_hash)
        if stored is None or as_utc(stored.expires_at) < datetime.now(timezone.utc):
            logger.warning("Refresh token is not in the list of valid refresh tokens")
            raise UnauthenticatedError("Session has been revoked or has expired")

    @staticmethod
    def _resolve_user(session: Session, payload: TokenPayload) -> User:
        user = UserService.get_by_id(session, payload.sub)
        if user is None:
            logger.warning(f"User {payload.sub} not found")
            raise UnauthenticatedError("User can't be found")
        if int(as_utc(user.last_token_reset).timestamp()) > payload.iat:
            logger.warning(f"Revoked token presented for user {user.id}")
            raise UnauthenticatedError("Token has been revoked")
        return user
