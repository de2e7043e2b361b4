"""Exception handlers for structured error responses."""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from ..exceptions import ArborException, ConcurrentModificationError

logger = logging.getLogger(__name__)


async def arbor_exception_handler(request: Request, exc: ArborException) -> JSONResponse:
    """
    Handle custom exceptions and return structured JSON responses.

    Logs error details and converts exception to standardized JSON format.

    Args:
        request: FastAPI request object
        exc: ArborException instance

    Returns:
        JSONResponse with error details
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"ArborException: {exc.error_code.value}",
        extra={
            "error_code": exc.error_code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
            "status_code": exc.status_code
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def lock_timeout_handler(request: Request, exc: OperationalError) -> JSONResponse:
    """Lock waits that run out outside a batch (single-node writes) are retryable too."""
    logger.warning(
        "Database lock wait timed out",
        extra={"path": request.url.path, "method": request.method},
        exc_info=exc,
    )
    return await arbor_exception_handler(request, ConcurrentModificationError())
