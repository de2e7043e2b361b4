"""Page model: an entry in the navigable content/menu tree."""

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Index, Integer, String, Text

from ..database import Base
from .enums import PageStatus, NodeKind, enum_values
from .timestamps import utcnow


class Page(Base):
    """Content page. ``parent_id`` points at another page (NULL = menu root)."""

    __tablename__ = "pages"
    __table_args__ = (
        Index("ix_pages_parent_id", "parent_id"),
        Index("ix_pages_path", "path"),
    )

    kind = NodeKind.PAGE

    id = Column(String(64), primary_key=True)
    title = Column(String(255), nullable=False)
    # Optional label shown in navigation instead of the title
    menu_title = Column(String(255), nullable=True)
    slug = Column(String(255), nullable=False, unique=True)
    body = Column(Text, nullable=False, default="")

    # Tree placement
    parent_id = Column(String(64), ForeignKey("pages.id"), nullable=True)
    order = Column(Integer, nullable=False, default=0)
    # Derived: "/<root-id>/.../<id>", maintained by the PathMaintainer
    path = Column(Text, nullable=False)
    # "Show in menu"
    visible = Column(Boolean, nullable=False, default=True)

    status = Column(
        Enum(PageStatus, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=PageStatus.DRAFT,
    )
    owner_id = Column(String(64), nullable=False)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    published_at = Column(DateTime, nullable=True)

    @property
    def name(self) -> str:
        return self.title

    @property
    def label(self) -> str:
        """Navigation label: the menu title override, else the title."""
        return self.menu_title or self.title

    @property
    def is_public(self) -> bool:
        """Published pages are readable by anyone."""
        return self.status == PageStatus.PUBLISHED
