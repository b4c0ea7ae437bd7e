"""
Authentication routes for registration, login and session management.
Provides JWT access/refresh token authentication.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session

from app.api.deps import get_current_user, get_token_context
from app.core.exceptions import UnauthenticatedError
from app.core.logging import get_logger
from app.db.session import get_session
from app.models.user import User
from app.schemas.token import AccessToken, RefreshRequest, Token, TokenPayload
from app.schemas.user import UserCreate, UserResponse
from app.services.auth_service import AuthService
from app.services.user_service import UserService

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_in: UserCreate,
    session: Annotated[Session, Depends(get_session)],
) -> UserResponse:
    """
    Register a new user.

    Args:
        user_in: User registration data
        session: Database session

    Returns:
        Created user data

    Raises:
        ConflictError: If the username is taken
        ValidationError: If the password is too weak
    """
    user = UserService.create(session, user_create=user_in)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=Token)
def login(
    session: Annotated[Session, Depends(get_session)],
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
) -> Token:
    """
    OAuth2 compatible token login.

    Args:
        session: Database session
        form_data: OAuth2 form with username and password

    Returns:
        Access and refresh token

    Raises:
        UnauthenticatedError: If credentials are invalid
    """
    user = UserService.authenticate(session, username=form_data.username, password=form_data.password)
    if not user:
        logger.warning(f"Failed login attempt for username: {form_data.username}")
        raise UnauthenticatedError("Incorrect username or password")

    return AuthService.login(session, user)


@router.post("/refresh", response_model=AccessToken)
def refresh(
    body: RefreshRequest,
    session: Annotated[Session, Depends(get_session)],
) -> AccessToken:
    """Exchange a refresh token for a new access token."""
    return AuthService.refresh(session, body.refresh_token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    session: Annotated[Session, Depends(get_session)],
    context: Annotated[tuple[User, TokenPayload], Depends(get_token_context)],
) -> None:
    """Revoke the refresh token behind the current access token."""
    _, payload = context
    AuthService.logout(session, payload)


@router.post("/invalidate-all-sessions", status_code=status.HTTP_204_NO_CONTENT)
def invalidate_all_sessions(
    session: Annotated[Session, Depends(get_session)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> None:
    """Revoke every token issued to the current user so far."""
    AuthService.invalidate_all_sessions(session, current_user)
