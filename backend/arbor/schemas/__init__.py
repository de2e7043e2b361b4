"""Pydantic schemas for request/response validation."""

from .node import TreeNode, NodeSummary, AccessCheckResponse
from .batch import BatchOp, BatchRequest, BatchResponse
from .page import PageCreate, PageUpdate, PageResponse, PageListResponse, Pagination
from .document import DocumentCreate, DocumentMove, DocumentResponse
from .folder import FolderCreate, FolderUpdate, FolderResponse, FolderPermissions, FolderStats, FolderContents

__all__ = [
    "TreeNode", "NodeSummary", "AccessCheckResponse",
    "BatchOp", "BatchRequest", "BatchResponse",
    "PageCreate", "PageUpdate", "PageResponse", "PageListResponse", "Pagination",
    "DocumentCreate", "DocumentMove", "DocumentResponse",
    "FolderCreate", "FolderUpdate", "FolderResponse", "FolderPermissions", "FolderStats", "FolderContents",
]
