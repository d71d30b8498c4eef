import socket
from contextlib import asynccontextmanager
from typing import Final

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .domain.exceptions import DomainError
from .infrastructure.database.database import get_main_engine, init_db
from .logging_config import get_logger, setup_logging
from .logging_utils import log_startup
from .middleware import log_requests_middleware
from .presentation.api_routes import api_router
from .presentation.error_handlers import (
    handle_domain_error,
    handle_request_validation_error,
    handle_unexpected_error,
)
from .telemetry import setup_telemetry


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Setup logging first
    setup_logging()
    logger = get_logger(__name__)

    # Initialize database schema once at startup
    init_db(get_main_engine())
    logger.info("Database initialized successfully")

    log_startup(socket.gethostname(), settings.debug, settings.database_url)

    yield

    # Write edits that are still waiting for their autosave
    registry = getattr(app.state, "registry", None)
    if registry is not None:
        registry.close_all()
    logger.info("Application shutdown completed")


app: Final = FastAPI(
    title=settings.app_name,
    version=settings.version,
    debug=settings.debug,
    lifespan=lifespan,
    description="""
Editing service for construction and interior-design quotations with undo/redo,
saved versions and version comparison.

## Core Features

- **Quotation editing** - client details, floors, rooms and priced items in a
  main and an additional section
- **Automatic pricing** - square-foot, direct-amount and rate-based items,
  discount, GST and payment stages
- **Undo/redo** of the last 50 edits per quotation
- **Versions** - numbered snapshots that can be restored and compared
- **Autosave** - edits are written to storage after a short pause
    """.strip(),
    openapi_tags=[
        {
            "name": "quotations",
            "description": "Open, edit and save quotations",
        },
        {
            "name": "versions",
            "description": "Save, restore and compare quotation versions",
        },
    ],
)

# Setup OpenTelemetry tracing
setup_telemetry(app)

app.middleware("http")(log_requests_middleware)


# Add global exception handlers
@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Global handler for domain-specific errors."""
    logger = get_logger(__name__)
    logger.warning(
        "Domain error occurred",
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=request.url.path,
        method=request.method,
    )
    return handle_domain_error(exc, request)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Global handler for Pydantic validation errors."""
    logger = get_logger(__name__)
    logger.warning(
        "Request validation error occurred",
        errors=exc.errors(),
        path=request.url.path,
        method=request.method,
    )
    return handle_request_validation_error(exc, request)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    """Global handler for database errors."""
    logger = get_logger(__name__)
    logger.error(
        "Database error occurred",
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    return handle_unexpected_error(
        "A database error occurred. Please try again.", request
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Global handler for unexpected errors."""
    logger = get_logger(__name__)
    logger.error(
        "Unexpected error occurred",
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    return handle_unexpected_error(
        "An unexpected error occurred. Please try again.", request
    )


# Include routers
app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("src.main:app", host=settings.host, port=settings.port)
