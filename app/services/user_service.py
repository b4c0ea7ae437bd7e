"""
User service layer implementing business logic for user operations.
Separates business logic from API routes and database operations.
"""

from typing import List, Optional

from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.core.config import settings
from app.core.exceptions import ConflictError, NotFoundError
from app.core.logging import get_logger
from app.core.security import get_password_hash, utc_now, validate_password_policy, verify_password
from app.models.user import Permission, RefreshToken, User
from app.schemas.user import UserCreate

logger = get_logger(__name__)


class UserService:
    """Service class for user-related operations."""

    @staticmethod
    def get_by_username(session: Session, username: str) -> Optional[User]:
        """
        Retrieve a user by username.

        Args:
            session: Database session
            username: Username to search for

        Returns:
            User if found, None otherwise
        """
        statement = select(User).where(User.username == username)
        return session.exec(statement).first()

    @staticmethod
    def get_by_id(session: Session, user_id: int) -> Optional[User]:
        return session.get(User, user_id)

    @staticmethod
    def get_or_404(session: Session, user_id: int) -> User:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    @staticmethod
    def get_all(session: Session) -> List[User]:
        return list(session.exec(select(User).order_by(User.id)))

    @staticmethod
    def count(session: Session) -> int:
        return session.exec(select(func.count()).select_from(User)).one()

    @staticmethod
    def initial_permissions(session: Session) -> List[Permission]:
        """
        Permissions for a newly registered user.

        The first user ever registered becomes ADMIN (unless
        ``FIRST_USER_IS_ADMIN`` is off); everyone else starts with CREATE.
        """
        if settings.FIRST_USER_IS_ADMIN and UserService.count(session) == 0:
            return [Permission.ADMIN]
        return [Permission.CREATE]

    @staticmethod
    def create(
        session: Session,
        user_create: UserCreate,
        permissions: Optional[List[Permission]] = None,
    ) -> User:
        """
        Register a user with a hashed password.

        Args:
            session: Database session
            user_create: Registration data
            permissions: Explicit permissions; defaults to ``initial_permissions``

        Returns:
            Created user instance

        Raises:
            ConflictError: If the username is taken
            ValidationError: If the password violates the password policy
        """
        if UserService.get_by_username(session, user_create.username):
            logger.warning(f"Registration attempt with existing username: {user_create.username}")
            raise ConflictError(f"User with the name {user_create.username} already exists")

        validate_password_policy(user_create.password)

        if permissions is None:
            permissions = UserService.initial_permissions(session)

        db_user = User(
            username=user_create.username,
            hashed_password=get_password_hash(user_create.password),
            permissions=[p.value for p in permissions],
        )
        session.add(db_user)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise ConflictError(f"User with the name {user_create.username} already exists")
        session.refresh(db_user)

        logger.info(f"New user registered: {db_user.username} (ID: {db_user.id}, permissions: {db_user.permissions})")
        return db_user

    @staticmethod
    def authenticate(session: Session, username: str, password: str) -> Optional[User]:
        """
        Authenticate a user by username and password.

        Returns:
            User if authentication successful, None otherwise
        """
        user = UserService.get_by_username(session, username)
        if not user:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user

    @staticmethod
    def is_admin(user: User) -> bool:
        return Permission.ADMIN in user.permission_set

    @staticmethod
    def set_permissions(session: Session, user_id: int, permissions: List[Permission]) -> User:
        """Replace the permission set of a user."""
        user = UserService.get_or_404(session, user_id)
        # Assign a new list so the JSON column is flagged as changed
        user.permissions = [p.value for p in dict.fromkeys(permissions)]
        session.add(user)
        session.commit()
        session.refresh(user)
        logger.info(f"Permissions of user {user.id} set to {user.permissions}")
        return user

    @staticmethod
    def reset_tokens(session: Session, user: User) -> User:
        """Revoke every token issued to ``user`` so far and forget its refresh tokens."""
        user.last_token_reset = utc_now()
        session.add(user)
        session.exec(delete(RefreshToken).where(RefreshToken.user_id == user.id))
        session.commit()
        session.refresh(user)
        logger.info(f"All sessions of user {user.id} invalidated")
        return user
