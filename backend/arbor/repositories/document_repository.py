"""Repository for document metadata attached to folders."""

from typing import Dict, Iterable, List, Tuple

from sqlalchemy import func

from ..exceptions import DocumentNotFoundError
from ..models import Document
from .base import BaseRepository


class DocumentRepository(BaseRepository[Document]):
    """Data access layer for documents."""

    model_class = Document
    not_found_error = DocumentNotFoundError

    def list_by_folder(self, folder_id: str) -> List[Document]:
        return (
            self.db.query(Document)
            .filter(Document.folder_id == folder_id)
            .order_by(Document.created_at.desc(), Document.id)
            .all()
        )

    def count_by_folder(self, folder_id: str) -> int:
        return self.db.query(func.count(Document.id)).filter(Document.folder_id == folder_id).scalar() or 0

    def direct_totals(self, folder_ids: Iterable[str]) -> Dict[str, Tuple[int, int]]:
        """(document count, byte total) of documents directly inside each folder.

        Folders without documents are absent from the result.
        """
        ids = list(set(folder_ids))
        if not ids:
            return {}
        rows = (
            self.db.query(
                Document.folder_id,
                func.count(Document.id),
                func.coalesce(func.sum(Document.size), 0),
            )
            .filter(Document.folder_id.in_(ids))
            .group_by(Document.folder_id)
            .all()
        )
        return {folder_id: (int(count), int(size)) for folder_id, count, size in rows}
