"""Document model: metadata of a stored file attached to a folder.

The bytes themselves live with an external storage provider keyed by id.
"""

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, String

from ..database import Base
from .enums import NodeKind
from .timestamps import utcnow


class Document(Base):
    """File metadata. ``size`` feeds the folder rollups."""

    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_folder_id", "folder_id"),
    )

    kind = NodeKind.DOCUMENT

    id = Column(String(64), primary_key=True)
    folder_id = Column(String(64), ForeignKey("folders.id"), nullable=False)
    filename = Column(String(255), nullable=False)
    title = Column(String(255), nullable=True)
    mime_type = Column(String(127), nullable=False, default="application/octet-stream")
    size = Column(BigInteger, nullable=False, default=0)
    uploaded_by = Column(String(64), nullable=False)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def owner_id(self) -> str:
        return self.uploaded_by
