"""
API dependencies for FastAPI dependency injection.
Provides reusable dependencies for authentication, authorization and services.
"""

from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session

from app.core.config import settings
from app.core.exceptions import ForbiddenError, UnauthenticatedError
from app.core.logging import get_logger
from app.db.session import get_session
from app.models.user import User
from app.policy import Actor, actor_for
from app.schemas.token import TokenPayload
from app.services.auth_service import AuthService
from app.services.book_service import BookService
from app.services.file_storage_service import FileStorageService, file_storage_service
from app.services.user_service import UserService

logger = get_logger(__name__)

# auto_error is off so anonymous requests reach the policy engine
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_PREFIX}/auth/login", auto_error=False)


def get_token_context(
    session: Annotated[Session, Depends(get_session)],
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
) -> tuple[User, TokenPayload]:
    """
    Resolve the bearer token of the request to its user and claims.

    Raises:
        UnauthenticatedError: If no token was sent or it is invalid or revoked
    """
    if not token:
        raise UnauthenticatedError()
    return AuthService.authenticate_access_token(session, token)


def get_current_user(
    context: Annotated[tuple[User, TokenPayload], Depends(get_token_context)],
) -> User:
    """
    Dependency to get the current authenticated user from JWT token.

    Args:
        context: The user and token claims of the request

    Returns:
        Current user
    """
    return context[0]


def get_optional_user(
    session: Annotated[Session, Depends(get_session)],
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
) -> Optional[User]:
    """
    The current user, or None for requests without a bearer token.

    A token that is sent but invalid still fails with 401.
    """
    if not token:
        return None
    user, _ = AuthService.authenticate_access_token(session, token)
    return user


def get_current_actor(
    current_user: Annotated[User, Depends(get_current_user)],
) -> Actor:
    return actor_for(current_user)


def get_optional_actor(
    current_user: Annotated[Optional[User], Depends(get_optional_user)],
) -> Actor:
    return actor_for(current_user)


def get_current_admin_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """
    Dependency to ensure current user is an admin.

    Args:
        current_user: Current authenticated user

    Returns:
        Admin user

    Raises:
        ForbiddenError: If user is not an admin
    """
    if not UserService.is_admin(current_user):
        logger.warning(f"Non-admin user {current_user.id} attempted admin access")
        raise ForbiddenError("Not enough permissions")
    return current_user


def get_file_storage() -> FileStorageService:
    return file_storage_service


def get_book_service(
    session: Annotated[Session, Depends(get_session)],
    storage: Annotated[FileStorageService, Depends(get_file_storage)],
) -> BookService:
    return BookService(session, storage)
