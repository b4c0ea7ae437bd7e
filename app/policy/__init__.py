"""Attribute-based access control: the generic engine and the book grant table."""

from app.policy.books import BookAction, actor_for, book_policy
from app.policy.engine import ACTOR_ID, EVERYONE, Actor, Decision, Grant, PolicyTable, RoleRules, SubjectProxy, can

__all__ = [
    "ACTOR_ID",
    "EVERYONE",
    "Actor",
    "BookAction",
    "Decision",
    "Grant",
    "PolicyTable",
    "RoleRules",
    "SubjectProxy",
    "actor_for",
    "book_policy",
    "can",
]
