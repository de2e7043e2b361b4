"""Tree schemas shared by both node kinds."""

import re
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.enums import NodeKind, Operation, PageStatus

# Ids are path segments, so they may not contain the separator.
_NODE_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\- ]{0,63}$")

# Sibling order is stored in a 32-bit INTEGER column.
ORDER_MIN = -2**31
ORDER_MAX = 2**31 - 1


def order_field(default=None):
    return Field(default, ge=ORDER_MIN, le=ORDER_MAX)


def validate_node_id(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not _NODE_ID_RE.match(v):
        raise ValueError(
            "Node id must be 1-64 characters of letters, digits, spaces, '.', '_' or '-'"
        )
    return v


class TreeNode(BaseModel):
    """Recursive tree entry; children are already in sibling order."""
    id: str
    kind: NodeKind
    name: str
    label: str
    parent_id: Optional[str] = None
    order: int = 0
    path: str
    visible: bool = True
    is_public: bool = False
    status: Optional[PageStatus] = None
    children: List['TreeNode'] = []


class NodeSummary(BaseModel):
    """One entry of an ancestor chain."""
    id: str
    kind: NodeKind
    name: str
    parent_id: Optional[str] = None
    order: int
    path: str

    class Config:
        from_attributes = True


class AccessCheckResponse(BaseModel):
    kind: NodeKind
    node_id: str
    operation: Operation
    allowed: bool
    reason: str
