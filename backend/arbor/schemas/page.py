"""Page schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..models.enums import PageStatus
from .node import order_field, validate_node_id


class PageCreate(BaseModel):
    """Schema for creating a page. ``id`` and ``slug`` are generated when omitted."""
    id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=255)
    menu_title: Optional[str] = Field(None, max_length=255)
    slug: Optional[str] = Field(None, max_length=255)
    body: str = ""
    parent_id: Optional[str] = None
    order: int = order_field(0)
    visible: bool = True

    @field_validator('id', 'parent_id')
    @classmethod
    def validate_ids(cls, v: Optional[str]) -> Optional[str]:
        return validate_node_id(v)

    @field_validator('title')
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty")
        return v


class PageUpdate(BaseModel):
    """Partial update. Only fields present in the request are applied.

    Placement fields (``parent_id``, ``order``, ``visible``) go through the
    batch coordinator, so cycles and paths are handled as for a batch.
    """
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    menu_title: Optional[str] = Field(None, max_length=255)
    slug: Optional[str] = Field(None, min_length=1, max_length=255)
    body: Optional[str] = None
    status: Optional[PageStatus] = None
    parent_id: Optional[str] = None
    order: Optional[int] = order_field()
    visible: Optional[bool] = None

    @field_validator('parent_id')
    @classmethod
    def validate_parent(cls, v: Optional[str]) -> Optional[str]:
        return validate_node_id(v)


class PageResponse(BaseModel):
    id: str
    title: str
    menu_title: Optional[str] = None
    slug: str
    body: str
    parent_id: Optional[str] = None
    order: int
    path: str
    visible: bool
    status: PageStatus
    is_public: bool
    owner_id: str
    created_at: datetime
    updated_at: datetime
    published_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class PageListResponse(BaseModel):
    items: List[PageResponse]
    pagination: Pagination
