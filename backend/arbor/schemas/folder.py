"""Folder schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .document import DocumentResponse
from .node import order_field, validate_node_id


class FolderCreate(BaseModel):
    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=255)
    parent_id: Optional[str] = None
    order: int = order_field(0)
    is_public: bool = False

    @field_validator('id', 'parent_id')
    @classmethod
    def validate_ids(cls, v: Optional[str]) -> Optional[str]:
        return validate_node_id(v)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be empty")
        return v


class FolderUpdate(BaseModel):
    """Partial update; ``parent_id: null`` moves the folder to the root."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    is_public: Optional[bool] = None
    parent_id: Optional[str] = None
    order: Optional[int] = order_field()

    @field_validator('parent_id')
    @classmethod
    def validate_parent(cls, v: Optional[str]) -> Optional[str]:
        return validate_node_id(v)


class FolderResponse(BaseModel):
    id: str
    name: str
    parent_id: Optional[str] = None
    order: int
    path: str
    visible: bool
    is_public: bool
    owner_id: str
    document_count: int
    total_size: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FolderPermissions(BaseModel):
    """Replacement ACL: actor ids granted read and write."""
    read: List[str] = []
    write: List[str] = []


class FolderStats(BaseModel):
    """Stored subtree rollups plus the direct subfolder count."""
    document_count: int
    total_size: int
    subfolder_count: int


class FolderContents(BaseModel):
    folder: FolderResponse
    subfolders: List[FolderResponse]
    documents: List[DocumentResponse]
