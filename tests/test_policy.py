"""
Tests for the policy engine and the book grant table.
"""

import pytest

from app.core.exceptions import ForbiddenError, UnauthenticatedError
from app.models.book import BookState
from app.models.user import Permission
from app.policy import ACTOR_ID, EVERYONE, Actor, BookAction, Decision, PolicyTable, RoleRules, SubjectProxy, book_policy, can

ALLOW = Decision.ALLOW
DENY = Decision.DENY


def book(state: BookState, user_id=None) -> dict:
    return {"state": state, "user_id": user_id}


def actor(*permissions: Permission, actor_id: int = 1) -> Actor:
    return Actor.with_roles(actor_id, permissions)


def test_anonymous_reads_only_visible_books() -> None:
    anonymous = Actor.anonymous()
    assert book_policy.evaluate(anonymous, BookAction.READ, book(BookState.VISIBLE)) is ALLOW
    for state in (BookState.DRAFT, BookState.UNAPPROVED, BookState.ARCHIVED):
        assert book_policy.evaluate(anonymous, BookAction.READ, book(state)) is DENY


def test_owner_placeholder_never_matches_anonymous() -> None:
    # A draft without owner must not be readable by an actor without id
    assert book_policy.evaluate(Actor.anonymous(), BookAction.READ, book(BookState.DRAFT, None)) is DENY


def test_owner_can_read_update_and_delete_own_draft() -> None:
    owner = actor(actor_id=7)
    draft = book(BookState.DRAFT, 7)
    for action in (BookAction.READ, BookAction.UPDATE, BookAction.DELETE):
        assert book_policy.evaluate(owner, action, draft) is ALLOW
    assert book_policy.evaluate(actor(actor_id=8), BookAction.READ, draft) is DENY


def test_owner_loses_update_after_submit() -> None:
    owner = actor(Permission.CREATE, actor_id=7)
    assert book_policy.evaluate(owner, BookAction.UPDATE, book(BookState.UNAPPROVED, 7)) is DENY


def test_create_requires_create_permission() -> None:
    shape = {"state": BookState.DRAFT, "user_id": 1}
    assert book_policy.evaluate(actor(), BookAction.CREATE, shape) is DENY
    assert book_policy.evaluate(actor(Permission.CREATE), BookAction.CREATE, shape) is ALLOW


@pytest.mark.parametrize(
    "permission, action, state, expected",
    [
        (Permission.APPROVE, BookAction.APPROVE, BookState.UNAPPROVED, ALLOW),
        (Permission.APPROVE, BookAction.APPROVE, BookState.DRAFT, DENY),
        (Permission.APPROVE, BookAction.READ, BookState.UNAPPROVED, ALLOW),
        (Permission.ARCHIVE, BookAction.ARCHIVE, BookState.VISIBLE, ALLOW),
        (Permission.ARCHIVE, BookAction.UNARCHIVE, BookState.ARCHIVED, ALLOW),
        (Permission.ARCHIVE, BookAction.DELETE, BookState.ARCHIVED, DENY),
        (Permission.DELETE, BookAction.DELETE, BookState.ARCHIVED, ALLOW),
        (Permission.DELETE, BookAction.DELETE, BookState.VISIBLE, DENY),
        (Permission.EDIT, BookAction.UPDATE, BookState.UNAPPROVED, ALLOW),
        (Permission.EDIT, BookAction.UPDATE, BookState.VISIBLE, ALLOW),
        (Permission.EDIT, BookAction.UPDATE, BookState.ARCHIVED, DENY),
    ],
)
def test_grant_table(permission: Permission, action: BookAction, state: BookState, expected: Decision) -> None:
    assert book_policy.evaluate(actor(permission), action, book(state, 99)) is expected


def test_delete_includes_every_archive_grant() -> None:
    archive_grants = set(book_policy.grants_for(Permission.ARCHIVE))
    delete_grants = set(book_policy.grants_for(Permission.DELETE))
    assert archive_grants <= delete_grants
    assert book_policy.evaluate(actor(Permission.DELETE), BookAction.ARCHIVE, book(BookState.VISIBLE)) is ALLOW


def test_admin_is_allowed_everything() -> None:
    admin = actor(Permission.ADMIN)
    for action in BookAction:
        for state in BookState:
            assert book_policy.evaluate(admin, action, book(state, 42)) is ALLOW


def test_missing_attribute_never_matches() -> None:
    assert book_policy.evaluate(actor(Permission.APPROVE), BookAction.APPROVE, {}) is DENY


def test_evaluate_is_deterministic() -> None:
    subject = book(BookState.UNAPPROVED, 3)
    editor = actor(Permission.EDIT, Permission.CREATE)
    decisions = {book_policy.evaluate(editor, BookAction.UPDATE, subject) for _ in range(10)}
    assert decisions == {ALLOW}


def test_proxy_not_loaded_when_no_grant_applies() -> None:
    calls = []
    proxy = SubjectProxy(lambda: calls.append(1) or book(BookState.VISIBLE))
    assert book_policy.evaluate(actor(), BookAction.APPROVE, proxy) is DENY
    assert not proxy.is_loaded
    assert calls == []


def test_proxy_not_loaded_for_unconditional_grant() -> None:
    proxy = SubjectProxy(lambda: pytest.fail("subject should not be loaded"))
    assert book_policy.evaluate(actor(Permission.ADMIN), BookAction.DELETE, proxy) is ALLOW
    assert book_policy.evaluate(actor(Permission.CREATE), BookAction.CREATE, proxy) is ALLOW


def test_proxy_loaded_once_when_conditions_apply() -> None:
    calls = []

    def load() -> dict:
        calls.append(1)
        return book(BookState.VISIBLE)

    proxy = SubjectProxy(load)
    assert book_policy.evaluate(actor(), BookAction.READ, proxy) is ALLOW
    assert proxy.get() == book(BookState.VISIBLE)
    assert calls == [1]


def test_conditions_for_resolves_actor_id() -> None:
    conditions = book_policy.conditions_for(actor(actor_id=5), BookAction.READ)
    assert {"state": "VISIBLE"} in conditions
    assert {"state": "DRAFT", "user_id": 5} in conditions


def test_conditions_for_drops_owner_grants_for_anonymous() -> None:
    assert book_policy.conditions_for(Actor.anonymous(), BookAction.READ) == [{"state": "VISIBLE"}]
    assert book_policy.conditions_for(Actor.anonymous(), BookAction.CREATE) == []


def test_authorize_distinguishes_anonymous_and_identified() -> None:
    draft = book(BookState.DRAFT, 1)
    with pytest.raises(UnauthenticatedError):
        book_policy.authorize(Actor.anonymous(), BookAction.READ, draft)
    with pytest.raises(ForbiddenError):
        book_policy.authorize(actor(actor_id=2), BookAction.READ, draft)
    book_policy.authorize(actor(actor_id=1), BookAction.READ, draft)


def test_cyclic_extension_is_rejected() -> None:
    rules = {
        "a": RoleRules(extends=("b",)),
        "b": RoleRules(extends=("a",)),
    }
    with pytest.raises(ValueError, match="Cyclic"):
        PolicyTable(rules)


def test_unknown_parent_role_is_rejected() -> None:
    with pytest.raises(ValueError, match="unknown role"):
        PolicyTable({"a": RoleRules(extends=("ghost",))})


def test_extension_is_transitive() -> None:
    table = PolicyTable(
        {
            EVERYONE: RoleRules(grants=(can("read", owner=ACTOR_ID),)),
            "base": RoleRules(grants=(can("read"),)),
            "middle": RoleRules(grants=(can("write"),), extends=("base",)),
            "top": RoleRules(grants=(can("delete"),), extends=("middle",)),
        }
    )
    top = Actor.with_roles(1, ["top"])
    for action in ("read", "write", "delete"):
        assert table.evaluate(top, action, {}) is ALLOW
    assert table.evaluate(Actor.with_roles(1, ["base"]), "write", {}) is DENY
