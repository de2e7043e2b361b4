"""Data access repositories."""

from .base import BaseRepository
from .node_store import NodeStore, PageRepository, FolderRepository, sort_siblings
from .document_repository import DocumentRepository

__all__ = [
    "BaseRepository",
    "NodeStore",
    "PageRepository",
    "FolderRepository",
    "DocumentRepository",
    "sort_siblings",
]
