"""API routes."""

from .pages import router as pages_router
from .folders import router as folders_router
from .documents import router as documents_router
from .access import router as access_router

__all__ = [
    "pages_router",
    "folders_router",
    "documents_router",
    "access_router",
]
