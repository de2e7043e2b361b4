"""Folder model: an entry in the document-folder tree."""

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text

from ..database import Base
from .enums import NodeKind
from .timestamps import utcnow


class Folder(Base):
    """Document folder. ``parent_id`` points at another folder (NULL = root).

    ``document_count`` and ``total_size`` are subtree rollups (this folder's
    documents plus every descendant folder's), kept current by the
    StatsAggregator inside the same transaction as the change.
    """

    __tablename__ = "folders"
    __table_args__ = (
        Index("ix_folders_parent_id", "parent_id"),
        Index("ix_folders_path", "path"),
    )

    kind = NodeKind.FOLDER

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)

    # Tree placement
    parent_id = Column(String(64), ForeignKey("folders.id"), nullable=True)
    order = Column(Integer, nullable=False, default=0)
    path = Column(Text, nullable=False)
    # Stored for parity with pages; folders are listed to every authorized actor.
    visible = Column(Boolean, nullable=False, default=True)

    # Any authenticated actor may read a public folder
    is_public = Column(Boolean, nullable=False, default=False)
    owner_id = Column(String(64), nullable=False)

    # Subtree rollups
    document_count = Column(Integer, nullable=False, default=0)
    total_size = Column(BigInteger, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def title(self) -> str:
        return self.name

    @property
    def label(self) -> str:
        return self.name
