"""Database models."""

from .enums import NodeKind, Role, PageStatus, Operation, AclPermission, TREE_KINDS
from .page import Page
from .folder import Folder
from .document import Document
from .user import User, AclEntry

__all__ = [
    "NodeKind", "Role", "PageStatus", "Operation", "AclPermission", "TREE_KINDS",
    "Page", "Folder", "Document",
    "User", "AclEntry",
]
