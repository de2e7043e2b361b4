"""User and AclEntry models.

Users carry the global role consulted by the access resolver. Credentials
are verified elsewhere; this table only answers "who is this and what role".
AclEntries grant read or write on one node to one actor, independent of role.
"""

from sqlalchemy import Boolean, Column, DateTime, Enum, Index, String

from ..database import Base
from .enums import AclPermission, NodeKind, Role, enum_values
from .timestamps import utcnow


class User(Base):
    """Actor account.

    Roles:
        administrator -- may delete and manage permissions anywhere
        editor        -- may read and write any page or document
        read-only     -- relies on ownership, ACL entries and public flags
    """

    __tablename__ = "users"

    user_id = Column(String(64), primary_key=True)
    display_name = Column(String(255), nullable=False, default="Default User")
    role = Column(
        Enum(Role, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=Role.READ_ONLY,
    )
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class AclEntry(Base):
    """Explicit grant of one permission on one node to one actor."""

    __tablename__ = "node_acl"
    __table_args__ = (
        Index("ix_node_acl_node", "node_kind", "node_id"),
    )

    node_kind = Column(
        Enum(NodeKind, native_enum=False, length=20, values_callable=enum_values),
        primary_key=True,
    )
    node_id = Column(String(64), primary_key=True)
    actor_id = Column(String(64), primary_key=True)
    permission = Column(
        Enum(AclPermission, native_enum=False, length=10, values_callable=enum_values),
        primary_key=True,
    )
    created_at = Column(DateTime, nullable=False, default=utcnow)
