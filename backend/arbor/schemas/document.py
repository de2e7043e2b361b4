"""Document metadata schemas. File bytes are stored elsewhere."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class DocumentCreate(BaseModel):
    id: Optional[str] = Field(None, min_length=1, max_length=64)
    folder_id: str
    filename: str = Field(..., min_length=1, max_length=255)
    title: Optional[str] = Field(None, max_length=255)
    mime_type: str = "application/octet-stream"
    size: int = Field(0, ge=0)


class DocumentMove(BaseModel):
    folder_id: str


class DocumentResponse(BaseModel):
    id: str
    folder_id: str
    filename: str
    title: Optional[str] = None
    mime_type: str
    size: int
    uploaded_by: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
