"""
User routes for the current profile and permission management.
Listing users and changing permissions is reserved to admins.
"""

from typing import Annotated, List

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.api.deps import get_current_admin_user, get_current_user
from app.db.session import get_session
from app.models.user import User
from app.schemas.user import PermissionsUpdate, UserResponse
from app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
def get_current_user_profile(
    current_user: Annotated[User, Depends(get_current_user)],
) -> UserResponse:
    """
    Get current user's profile.

    Args:
        current_user: Current authenticated user

    Returns:
        User profile data
    """
    return UserResponse.model_validate(current_user)


@router.get("", response_model=List[UserResponse])
def list_users(
    session: Annotated[Session, Depends(get_session)],
    _: Annotated[User, Depends(get_current_admin_user)],
) -> List[UserResponse]:
    return [UserResponse.model_validate(user) for user in UserService.get_all(session)]


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    session: Annotated[Session, Depends(get_session)],
    _: Annotated[User, Depends(get_current_admin_user)],
) -> UserResponse:
    return UserResponse.model_validate(UserService.get_or_404(session, user_id))


@router.put("/{user_id}/permissions", response_model=UserResponse)
def set_permissions(
    user_id: int,
    body: PermissionsUpdate,
    session: Annotated[Session, Depends(get_session)],
    _: Annotated[User, Depends(get_current_admin_user)],
) -> UserResponse:
    """
    Replace a user's permission set.

    Args:
        user_id: Target user
        body: The complete new permission set

    Returns:
        Updated user

    Raises:
        NotFoundError: If the user does not exist
    """
    user = UserService.set_permissions(session, user_id, body.permissions)
    return UserResponse.model_validate(user)
