"""
Civil Service Leave Engine - Main Application Entry Point
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException

from leave_engine.api.router import api_router
from leave_engine.constants import DEFAULT_VERSION, SERVICE_NAME
from leave_engine.core.config import settings
from leave_engine.core.errors import (
    leave_engine_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler,
)
from leave_engine.core.exceptions import LeaveEngineError
from leave_engine.core.logging import setup_logging
from leave_engine.db.session import create_tables

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _mask_database_url(url: str) -> str:
    """Mask password in DATABASE_URL for safe logging; show full path for sqlite."""
    try:
        parsed = urlparse(url)
        if parsed.scheme == "sqlite":
            return url
        if parsed.password:
            netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
            if parsed.port:
                netloc += f":{parsed.port}"
            return urlunparse(parsed._replace(netloc=netloc))
    except ValueError:
        return "***"
    return url


app = FastAPI(
    title="Civil Service Leave Engine",
    description="Leave lifecycle, multi-level approval and balance ledger service",
    version=settings.VERSION or DEFAULT_VERSION,
)

# Configure CORS - must be before other middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(LeaveEngineError, leave_engine_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include all API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def startup_log_config() -> None:
    """Log DATABASE_URL at startup so it can be verified against Alembic."""
    masked = _mask_database_url(settings.DATABASE_URL)
    logger.info("%s starting: env=%s DATABASE_URL=%s", SERVICE_NAME, settings.APP_ENV, masked)


@app.on_event("startup")
def bootstrap_local_schema() -> None:
    """
    Create tables directly for local SQLite databases.

    Staging and production schemas are managed with ``alembic upgrade head``.
    """
    if settings.APP_ENV == "local" and settings.DATABASE_URL.startswith("sqlite"):
        create_tables()
        logger.info("Local SQLite schema ensured")
