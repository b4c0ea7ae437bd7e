"""
Attribute-based policy engine.

Rules are data: each role maps to a set of grants ``(action, conditions)``
plus the roles it extends. ``PolicyTable`` flattens the extension graph once
at construction, so evaluation is a plain scan over the actor's grants:

    ALLOW  if a superuser role is held, or
           some grant for the action has all of its conditions equal to the
           subject's attributes (a grant without conditions always matches)
    DENY   otherwise

The same resolved condition sets drive ``conditions_for``, which callers turn
into query filters so listing and per-record checks cannot drift apart.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from app.core.exceptions import ForbiddenError, UnauthenticatedError
from app.core.logging import get_logger

logger = get_logger(__name__)

EVERYONE = "everyone"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class _ActorIdPlaceholder:
    """Condition value replaced by the acting user's id at evaluation time."""

    def __repr__(self) -> str:
        return "ACTOR_ID"


ACTOR_ID = _ActorIdPlaceholder()

_MISSING = object()


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


@dataclass(frozen=True)
class Actor:
    """The identity attempting an action. Anonymous actors have no id and no roles."""

    id: Optional[int] = None
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_authenticated(self) -> bool:
        return self.id is not None

    @classmethod
    def anonymous(cls) -> "Actor":
        return cls()

    @classmethod
    def with_roles(cls, actor_id: Optional[int], roles: Iterable[Any]) -> "Actor":
        return cls(id=actor_id, roles=frozenset(str(_plain(r)) for r in roles))


@dataclass(frozen=True)
class Grant:
    """Permission to perform ``action`` on subjects whose attributes equal ``conditions``."""

    action: str
    conditions: Tuple[Tuple[str, Any], ...] = ()

    def resolve(self, actor: Actor) -> Optional[Dict[str, Any]]:
        """
        Substitute placeholders for ``actor``.

        Returns:
            The concrete conditions, or None when the grant cannot apply
            (an ``ACTOR_ID`` condition for an anonymous actor)
        """
        resolved: Dict[str, Any] = {}
        for name, expected in self.conditions:
            if expected is ACTOR_ID:
                if actor.id is None:
                    return None
                expected = actor.id
            resolved[name] = _plain(expected)
        return resolved


def can(action: Any, **conditions: Any) -> Grant:
    """Build a grant: ``can(BookAction.READ, state=BookState.VISIBLE)``."""
    return Grant(action=str(_plain(action)), conditions=tuple(sorted(conditions.items())))


@dataclass(frozen=True)
class RoleRules:
    grants: Tuple[Grant, ...] = ()
    extends: Tuple[str, ...] = ()


class SubjectProxy:
    """
    Deferred handle to a subject.

    ``loader`` runs at most once, and only when a decision actually depends
    on the subject's attributes.
    """

    def __init__(self, loader: Callable[[], Any]):
        self._loader = loader
        self._loaded = False
        self._value: Any = None

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def get(self) -> Any:
        if not self._loaded:
            self._value = self._loader()
            self._loaded = True
        return self._value


def subject_attribute(subject: Any, name: str) -> Any:
    if isinstance(subject, Mapping):
        return subject.get(name, _MISSING)
    return getattr(subject, name, _MISSING)


def matches(conditions: Mapping[str, Any], subject: Any) -> bool:
    """True when every condition equals the subject's attribute; absent attributes never match."""
    for name, expected in conditions.items():
        actual = subject_attribute(subject, name)
        if actual is _MISSING or _plain(actual) != expected:
            return False
    return True


class PolicyTable:
    """
    Flattened grant table for one resource type.

    Args:
        rules: role name -> RoleRules; ``EVERYONE`` applies to every actor
        superuser: optional role that is allowed every action
        resource: name used in log lines and error messages
    """

    def __init__(
        self,
        rules: Mapping[Any, RoleRules],
        superuser: Optional[Any] = None,
        resource: str = "resource",
    ):
        normalized = {str(_plain(role)): spec for role, spec in rules.items()}
        self.resource = resource
        self.superuser = str(_plain(superuser)) if superuser is not None else None
        self._grants: Dict[str, Tuple[Grant, ...]] = {
            role: self._flatten(role, normalized, ()) for role in normalized
        }

    @staticmethod
    def _flatten(role: str, rules: Mapping[str, RoleRules], trail: Tuple[str, ...]) -> Tuple[Grant, ...]:
        if role in trail:
            raise ValueError(f"Cyclic role extension: {' -> '.join(trail + (role,))}")
        if role not in rules:
            raise ValueError(f"Role '{trail[-1]}' extends unknown role '{role}'")

        spec = rules[role]
        grants: List[Grant] = list(spec.grants)
        for parent in spec.extends:
            for grant in PolicyTable._flatten(str(_plain(parent)), rules, trail + (role,)):
                if grant not in grants:
                    grants.append(grant)
        return tuple(grants)

    @property
    def roles(self) -> FrozenSet[str]:
        return frozenset(self._grants)

    def grants_for(self, role: Any) -> Tuple[Grant, ...]:
        """All grants of ``role`` including the ones it extends."""
        return self._grants.get(str(_plain(role)), ())

    def is_superuser(self, actor: Actor) -> bool:
        return self.superuser is not None and self.superuser in actor.roles

    def conditions_for(self, actor: Actor, action: Any) -> List[Dict[str, Any]]:
        """
        Resolved condition sets under which ``actor`` may perform ``action``.

        An empty dict in the result means "any subject"; an empty list means
        the action is never allowed.
        """
        if self.is_superuser(actor):
            return [{}]

        action = str(_plain(action))
        result: List[Dict[str, Any]] = []
        for role in (EVERYONE, *sorted(actor.roles)):
            for grant in self._grants.get(role, ()):
                if grant.action != action:
                    continue
                resolved = grant.resolve(actor)
                if resolved is not None and resolved not in result:
                    result.append(resolved)
        return result

    def evaluate(self, actor: Actor, action: Any, subject: Any) -> Decision:
        """
        Decide whether ``actor`` may perform ``action`` on ``subject``.

        ``subject`` may be a model instance, a mapping describing a partial
        shape, or a ``SubjectProxy``; the proxy is only resolved when some
        candidate grant has conditions to check.
        """
        candidates = self.conditions_for(actor, action)
        if not candidates:
            return Decision.DENY
        if any(not conditions for conditions in candidates):
            return Decision.ALLOW

        target = subject.get() if isinstance(subject, SubjectProxy) else subject
        if any(matches(conditions, target) for conditions in candidates):
            return Decision.ALLOW
        return Decision.DENY

    def authorize(self, actor: Actor, action: Any, subject: Any) -> None:
        """
        Raise unless ``evaluate`` allows the action.

        Raises:
            UnauthenticatedError: Denied and the actor is anonymous
            ForbiddenError: Denied and the actor is identified
        """
        if self.evaluate(actor, action, subject) is Decision.ALLOW:
            return

        action_name = str(_plain(action))
        context = {"action": action_name, "resource": self.resource}
        if not actor.is_authenticated:
            logger.info(f"Anonymous {action_name} on {self.resource} denied")
            raise UnauthenticatedError("Authentication required", context=context)

        logger.warning(f"User {actor.id} denied {action_name} on {self.resource}")
        raise ForbiddenError(
            f"Not allowed to {action_name} this {self.resource}",
            context=context,
        )
