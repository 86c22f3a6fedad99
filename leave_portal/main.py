"""
Leave Portal Backend - Main Application Entry Point
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from leave_portal.api.router import api_router
from leave_portal.core.config import settings
from leave_portal.core.errors import (
    http_exception_handler,
    leave_workflow_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from leave_portal.core.exceptions import LeaveWorkflowError
from leave_portal.core.logging import setup_logging
from leave_portal.db.session import init_sqlite_schema

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
    title="Leave Portal Backend",
    description="Public-service leave lifecycle and multi-level approval engine",
    version=settings.VERSION or "1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(LeaveWorkflowError, leave_workflow_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include all API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def startup_log_config() -> None:
    """Log DATABASE_URL at startup so it can be verified against Alembic."""
    masked = _mask_database_url(settings.DATABASE_URL)
    logger.info("DATABASE_URL (app): %s", masked)
    init_sqlite_schema()
    logger.info(
        "Scheduler thresholds: reminder=%sh dedup=%sh hr=%sd escalation=%s",
        settings.REMINDER_THRESHOLD_HOURS,
        settings.REMINDER_DEDUP_HOURS,
        settings.HR_REMINDER_THRESHOLD_DAYS,
        settings.ESCALATION_THRESHOLD_HOURS or "off",
    )


async def _handle_operational_error(request, exc: Exception):
    if "no such table" in str(exc).lower():
        return JSONResponse(
            status_code=500,
            content={"detail": "Run alembic upgrade head"},
        )
    return await generic_exception_handler(request, exc)


app.add_exception_handler(OperationalError, _handle_operational_error)
