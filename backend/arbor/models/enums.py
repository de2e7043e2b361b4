"""Closed value sets shared by models, services and schemas."""

from enum import Enum


class NodeKind(str, Enum):
    PAGE = "page"
    FOLDER = "folder"
    DOCUMENT = "document"


# Kinds that form a tree of their own.
TREE_KINDS = (NodeKind.PAGE, NodeKind.FOLDER)


class Role(str, Enum):
    """Global actor role, least to most privileged."""

    READ_ONLY = "read-only"
    EDITOR = "editor"
    ADMINISTRATOR = "administrator"


class PageStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Operation(str, Enum):
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    MANAGE_PERMISSIONS = "manage-permissions"


class AclPermission(str, Enum):
    READ = "read"
    WRITE = "write"


def enum_values(enum_cls) -> list[str]:
    """Store enum *values* (not member names) in SQLAlchemy Enum columns."""
    return [member.value for member in enum_cls]
