"""Main FastAPI application.

``create_app`` builds everything explicitly from a ``Settings`` object: the
engine, the session factory and the routers. Nothing connects at import
time. Run with::

    uvicorn arbor.main:create_app --factory
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import func, select, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from .api import access_router, documents_router, folders_router, pages_router
from .core.config import ConfigurationError, Environment, Settings, settings as default_settings
from .core.logging_config import redact, setup_logging
from .database import build_engine, build_session_factory, get_db, init_schema
from .exceptions import ArborException
from .models import Document, Folder, Page
from .middleware.exception_handler import arbor_exception_handler, lock_timeout_handler
from .middleware.request_context import RequestContextMiddleware

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


def _prepare_database(app: FastAPI) -> None:
    """Check the database is reachable, then create any missing tree tables."""
    engine = app.state.engine
    masked = redact(engine.url.render_as_string(hide_password=False))
    logger.info("Connecting to %s database: %s", engine.dialect.name, masked)

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except OperationalError as e:
        logger.critical("Database unreachable at %s: %s", masked, redact(str(e.orig)))
        raise SystemExit(1) from e

    init_schema(engine)
    logger.info("Database ready")


def _warn_insecure_development(settings: Settings) -> None:
    if settings.uses_default_secret:
        if settings.auth_enabled:
            logger.critical(
                "SECURITY: AUTH_ENABLED=true but JWT_SECRET_KEY is the default. "
                "Anyone can forge tokens. Generate a secure key: openssl rand -hex 32"
            )
        else:
            logger.warning(
                "SECURITY: JWT_SECRET_KEY is the default. "
                "Set a secure key before enabling auth: openssl rand -hex 32"
            )

    if not settings.auth_enabled:
        logger.warning(
            "SECURITY: Authentication is disabled (AUTH_ENABLED=false). "
            "Every request runs as an administrator. Set AUTH_ENABLED=true for production."
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle for the Arbor API."""
    settings: Settings = app.state.settings

    logger.info(f"Environment: {settings.environment.value}")
    try:
        settings.validate_production_config()
    except ConfigurationError as e:
        logger.critical(f"STARTUP BLOCKED: {e}")
        raise SystemExit(1) from e

    if settings.environment == Environment.DEVELOPMENT:
        _warn_insecure_development(settings)

    _prepare_database(app)

    logger.info(
        "Arbor API started | env=%s | db=%s | auth=%s | cors=%s",
        settings.environment.value,
        app.state.engine.dialect.name,
        "enabled" if settings.auth_enabled else "disabled",
        ",".join(settings.get_cors_origins()),
    )

    yield  # App runs here

    app.state.engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application and everything it owns from *settings*."""
    if settings is None:
        settings = default_settings

    setup_logging(log_level=settings.log_level, log_format=settings.log_format)

    app = FastAPI(
        title="Arbor API",
        description=(
            "REST API for two hierarchical resource trees: the content page menu "
            "and the document folder tree. Provides ordering, visibility, access "
            "control and atomic batch placement.\n\n"
            "**Authentication:** When `AUTH_ENABLED=true`, every tree endpoint requires a "
            "`Bearer` token in the `Authorization` header. The public menu and "
            "published pages by slug are always open."
        ),
        version=API_VERSION,
        lifespan=lifespan,
    )

    engine = build_engine(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.started_at = time.monotonic()

    # Middleware stack (outermost first; CORS wraps request context).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )
    app.add_middleware(RequestContextMiddleware)

    # Register exception handlers
    app.add_exception_handler(ArborException, arbor_exception_handler)
    app.add_exception_handler(OperationalError, lock_timeout_handler)

    # Include routers
    app.include_router(pages_router)
    app.include_router(folders_router)
    app.include_router(documents_router)
    app.include_router(access_router)

    @app.get("/")
    def root():
        """Root endpoint."""
        return {
            "name": "Arbor API",
            "version": API_VERSION,
            "status": "running"
        }

    @app.get("/health")
    def health_check(db: Session = Depends(get_db)):
        """Database status, uptime and the size of each tree.

        A failing count reports ``degraded`` with a 200 rather than a 5xx.
        """
        counts = {"page_count": Page, "folder_count": Folder, "document_count": Document}
        db_status = "ok"
        try:
            counts = {key: db.scalar(select(func.count()).select_from(model)) or 0
                      for key, model in counts.items()}
        except OperationalError:
            db.rollback()
            logger.warning("Health check query failed", exc_info=True)
            db_status = "error"
            counts = dict.fromkeys(counts, 0)

        return {
            "status": "healthy" if db_status == "ok" else "degraded",
            "db": db_status,
            "uptime_seconds": round(time.monotonic() - app.state.started_at),
            "version": API_VERSION,
            **counts,
        }

    return app
