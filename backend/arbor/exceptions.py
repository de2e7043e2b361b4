"""Custom exception hierarchy for Arbor."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Node errors
    NODE_NOT_FOUND = "NODE_NOT_FOUND"
    NODE_KIND_MISMATCH = "NODE_KIND_MISMATCH"
    FOLDER_NOT_EMPTY = "FOLDER_NOT_EMPTY"
    SLUG_CONFLICT = "SLUG_CONFLICT"

    # Document errors
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"

    # Batch errors
    DUPLICATE_IN_BATCH = "DUPLICATE_IN_BATCH"
    CYCLE_DETECTED = "CYCLE_DETECTED"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Auth
    UNAUTHORIZED = "UNAUTHORIZED"
    PERMISSION_DENIED = "PERMISSION_DENIED"

    # Concurrency errors
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"

class ArborException(Exception):
    """
    Base exception for all Arbor errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class NodeNotFoundError(ArborException):
    """Node not found in the tree of the requested kind."""

    def __init__(self, node_id: str, kind: Optional[str] = None):
        details = {"node_id": node_id}
        if kind:
            details["kind"] = kind
        super().__init__(
            f"Node not found: {node_id}",
            ErrorCode.NODE_NOT_FOUND,
            status_code=404,
            details=details
        )


class NodeKindMismatchError(ArborException):
    """Node exists, but belongs to the other tree."""

    def __init__(self, node_id: str, expected: str, actual: str):
        super().__init__(
            f"Node {node_id} is a {actual}, not a {expected}",
            ErrorCode.NODE_KIND_MISMATCH,
            status_code=400,
            details={"node_id": node_id, "expected": expected, "actual": actual}
        )


class DocumentNotFoundError(ArborException):
    """Document not found in database."""

    def __init__(self, doc_id: str):
        super().__init__(
            f"Document not found: {doc_id}",
            ErrorCode.DOCUMENT_NOT_FOUND,
            status_code=404,
            details={"doc_id": doc_id}
        )


class DuplicateInBatchError(ArborException):
    """The same node appears more than once in a batch."""

    def __init__(self, node_id: str):
        super().__init__(
            f"Node appears more than once in batch: {node_id}",
            ErrorCode.DUPLICATE_IN_BATCH,
            status_code=400,
            details={"node_id": node_id}
        )


class CycleDetectedError(ArborException):
    """Applying the proposed parents would close a cycle."""

    def __init__(self, offending_id: str):
        super().__init__(
            f"Would create circular reference at node: {offending_id}",
            ErrorCode.CYCLE_DETECTED,
            status_code=400,
            details={"offending_id": offending_id}
        )
        self.offending_id = offending_id


class FolderNotEmptyError(ArborException):
    """Folder still has subfolders or documents."""

    def __init__(self, folder_id: str, subfolders: int, documents: int):
        super().__init__(
            "Cannot delete folder with subfolders or documents. Move or delete them first.",
            ErrorCode.FOLDER_NOT_EMPTY,
            status_code=409,
            details={"folder_id": folder_id, "subfolders": subfolders, "documents": documents}
        )


class SlugConflictError(ArborException):
    """Another page already uses this slug."""

    def __init__(self, slug: str):
        super().__init__(
            f"A page with slug '{slug}' already exists",
            ErrorCode.SLUG_CONFLICT,
            status_code=409,
            details={"slug": slug}
        )


class ValidationError(ArborException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class AuthenticationError(ArborException):
    """Request lacks valid authentication credentials."""

    def __init__(self, message: str = "Invalid or missing authentication token"):
        super().__init__(
            message,
            ErrorCode.UNAUTHORIZED,
            status_code=401,
        )


class PermissionDeniedError(ArborException):
    """Actor lacks permission for the requested operation."""

    def __init__(self, reason: str, node_id: Optional[str] = None, operation: Optional[str] = None):
        details: Dict[str, Any] = {"reason": reason}
        if node_id:
            details["node_id"] = node_id
        if operation:
            details["operation"] = operation
        super().__init__(
            "You do not have permission to perform this action",
            ErrorCode.PERMISSION_DENIED,
            status_code=403,
            details=details
        )
        self.reason = reason


class ConcurrentModificationError(ArborException):
    """Another writer holds the tree, or the tree changed underneath us."""

    retryable = True

    def __init__(self, message: str = "The tree was modified concurrently; retry the request"):
        super().__init__(
            message,
            ErrorCode.CONCURRENT_MODIFICATION,
            status_code=409,
            details={"retryable": True}
        )


class PartialBatchFailure(Exception):
    """A write failed after earlier rows of the same batch were written.

    Internal to the bulk mutation coordinator: it is always turned into a
    rolled-back outcome and never reaches a caller.
    """

    def __init__(self, node_id: str, original_error: Exception):
        super().__init__(f"Write failed for {node_id}: {original_error}")
        self.node_id = node_id
        self.original_error = original_error
