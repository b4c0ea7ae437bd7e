"""
Grant table for books.

| role      | grants                                                   |
|-----------|----------------------------------------------------------|
| everyone  | read VISIBLE; read/update/delete own DRAFT               |
| CREATE    | create                                                   |
| APPROVE   | read/approve UNAPPROVED                                  |
| ARCHIVE   | read ARCHIVED; archive VISIBLE; unarchive ARCHIVED       |
| DELETE    | everything ARCHIVE has; delete ARCHIVED                  |
| EDIT      | read/update UNAPPROVED; update VISIBLE                   |
| ADMIN     | everything                                               |
"""

from enum import Enum
from typing import Optional

from app.models.book import BookState
from app.models.user import Permission, User
from app.policy.engine import ACTOR_ID, EVERYONE, Actor, PolicyTable, RoleRules, can


class BookAction(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    APPROVE = "approve"
    ARCHIVE = "archive"
    UNARCHIVE = "unarchive"


BOOK_RULES = {
    EVERYONE: RoleRules(
        grants=(
            can(BookAction.READ, state=BookState.VISIBLE),
            can(BookAction.READ, state=BookState.DRAFT, user_id=ACTOR_ID),
            can(BookAction.UPDATE, state=BookState.DRAFT, user_id=ACTOR_ID),
            can(BookAction.DELETE, state=BookState.DRAFT, user_id=ACTOR_ID),
        ),
    ),
    Permission.CREATE: RoleRules(
        grants=(can(BookAction.CREATE),),
    ),
    Permission.APPROVE: RoleRules(
        grants=(
            can(BookAction.READ, state=BookState.UNAPPROVED),
            can(BookAction.APPROVE, state=BookState.UNAPPROVED),
        ),
    ),
    Permission.ARCHIVE: RoleRules(
        grants=(
            can(BookAction.READ, state=BookState.ARCHIVED),
            can(BookAction.ARCHIVE, state=BookState.VISIBLE),
            can(BookAction.UNARCHIVE, state=BookState.ARCHIVED),
        ),
    ),
    Permission.DELETE: RoleRules(
        grants=(can(BookAction.DELETE, state=BookState.ARCHIVED),),
        extends=(Permission.ARCHIVE,),
    ),
    Permission.EDIT: RoleRules(
        grants=(
            can(BookAction.READ, state=BookState.UNAPPROVED),
            can(BookAction.UPDATE, state=BookState.UNAPPROVED),
            can(BookAction.UPDATE, state=BookState.VISIBLE),
        ),
    ),
}

book_policy = PolicyTable(BOOK_RULES, superuser=Permission.ADMIN, resource="book")


def actor_for(user: Optional[User]) -> Actor:
    """Build the policy actor for a (possibly anonymous) user."""
    if user is None:
        return Actor.anonymous()
    return Actor.with_roles(user.id, user.permission_set)
