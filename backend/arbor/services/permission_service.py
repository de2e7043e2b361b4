"""Permission checking: a single pure function.

This is the ONE place where access rules are defined. Everything else in
the system builds a ``NodeAccess`` snapshot and calls ``can_access``.

Resolution order (first match wins):
    1. The owner may do anything with their node.
    2. Reads of a public node are allowed.
    3. Explicit ACL grants: the read set allows read, the write set allows
       write and delete (and read).
    4. Role fallback: administrators may do anything; editors may read and
       write any page or document.
    5. Otherwise deny, with a reason code naming the check that failed.

Same inputs, same answer: nothing here reads storage or mutable state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional

from ..models.enums import NodeKind, Operation, Role

if TYPE_CHECKING:
    from ..core.auth import Actor


class DenyReason(str, Enum):
    """Why a check failed. For user-facing messages, not for control flow."""

    PRIVATE_NO_READ_GRANT = "PRIVATE_NO_READ_GRANT"
    NO_WRITE_GRANT = "NO_WRITE_GRANT"
    DELETE_REQUIRES_OWNER_GRANT_OR_ADMIN = "DELETE_REQUIRES_OWNER_GRANT_OR_ADMIN"
    MANAGE_REQUIRES_OWNER_OR_ADMIN = "MANAGE_REQUIRES_OWNER_OR_ADMIN"
    INACTIVE_ACTOR = "INACTIVE_ACTOR"


class AllowReason(str, Enum):
    OWNER = "OWNER"
    PUBLIC = "PUBLIC"
    ACL = "ACL"
    ROLE = "ROLE"


@dataclass(frozen=True)
class NodeAccess:
    """Everything the resolver needs to know about one resource."""

    kind: NodeKind
    node_id: str
    owner_id: str
    is_public: bool = False
    read: frozenset = field(default_factory=frozenset)
    write: frozenset = field(default_factory=frozenset)


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str

    def __bool__(self) -> bool:
        return self.allowed


# Operations an ACL set unlocks.
_ACL_SETS = {
    Operation.READ: ("read", "write"),
    Operation.WRITE: ("write",),
    Operation.DELETE: ("write",),
    Operation.MANAGE_PERMISSIONS: (),
}

# Role fallback: operations each role may perform on each kind regardless of
# ownership or grants.
_ROLE_OPERATIONS: dict[Role, dict[NodeKind, frozenset]] = {
    Role.ADMINISTRATOR: {
        kind: frozenset(Operation) for kind in NodeKind
    },
    Role.EDITOR: {
        NodeKind.PAGE: frozenset({Operation.READ, Operation.WRITE}),
        NodeKind.DOCUMENT: frozenset({Operation.READ, Operation.WRITE}),
        NodeKind.FOLDER: frozenset(),
    },
    Role.READ_ONLY: {kind: frozenset() for kind in NodeKind},
}

_DENY_REASONS = {
    Operation.READ: DenyReason.PRIVATE_NO_READ_GRANT,
    Operation.WRITE: DenyReason.NO_WRITE_GRANT,
    Operation.DELETE: DenyReason.DELETE_REQUIRES_OWNER_GRANT_OR_ADMIN,
    Operation.MANAGE_PERMISSIONS: DenyReason.MANAGE_REQUIRES_OWNER_OR_ADMIN,
}


def can_access(actor: Actor, node: NodeAccess, operation: Operation) -> AccessDecision:
    """Decide whether *actor* may perform *operation* on *node*."""
    if not actor.is_active:
        return AccessDecision(False, DenyReason.INACTIVE_ACTOR.value)

    if actor.id == node.owner_id:
        return AccessDecision(True, AllowReason.OWNER.value)

    if operation == Operation.READ and node.is_public:
        return AccessDecision(True, AllowReason.PUBLIC.value)

    for set_name in _ACL_SETS[operation]:
        if actor.id in getattr(node, set_name):
            return AccessDecision(True, AllowReason.ACL.value)

    if operation in _ROLE_OPERATIONS[actor.role][node.kind]:
        return AccessDecision(True, AllowReason.ROLE.value)

    return AccessDecision(False, _DENY_REASONS[operation].value)


def role_allows(actor: Actor, kind: NodeKind, operation: Operation) -> bool:
    """Whether the role alone grants *operation* on every node of *kind*."""
    return actor.is_active and operation in _ROLE_OPERATIONS[actor.role][kind]


def node_access(
    node,
    read: Iterable[str] = (),
    write: Iterable[str] = (),
    kind: Optional[NodeKind] = None,
    is_public: Optional[bool] = None,
) -> NodeAccess:
    """Snapshot a page, folder or document for ``can_access``.

    Documents take their public flag and grants from their folder; pass
    them explicitly.
    """
    return NodeAccess(
        kind=kind or node.kind,
        node_id=node.id,
        owner_id=node.owner_id,
        is_public=bool(node.is_public if is_public is None else is_public),
        read=frozenset(read),
        write=frozenset(write),
    )


def can_create_root(actor: Actor, kind: NodeKind) -> AccessDecision:
    """Whether *actor* may add a node with no parent (a new tree root).

    There is no parent to hold a grant, so only the role decides: the same
    role that may write any node of the kind may start a new tree.
    """
    if not actor.is_active:
        return AccessDecision(False, DenyReason.INACTIVE_ACTOR.value)
    if Operation.WRITE in _ROLE_OPERATIONS[actor.role][kind]:
        return AccessDecision(True, AllowReason.ROLE.value)
    return AccessDecision(False, DenyReason.NO_WRITE_GRANT.value)
