"""Eye-Doo timeline service: FastAPI application entry point."""

import uuid
from contextlib import asynccontextmanager

# CRITICAL ORDER: configure_structlog MUST be called before all other eyedoo imports
# to avoid the structlog cache pitfall (structlog caches the processor chain on first use).
from eyedoo.core.logging import configure_structlog
from eyedoo.core.config import get_settings as _get_settings_early

_early_settings = _get_settings_early()
configure_structlog(
    log_level="DEBUG" if _early_settings.debug else "INFO",
    json_logs=not _early_settings.debug,
)

import structlog

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from eyedoo.api.routes import api_router
from eyedoo.core.config import get_settings
from eyedoo.core.exceptions import ErrorCode, EyeDooError, PersistenceError
from eyedoo.middleware.correlation import get_correlation_id, setup_correlation_middleware
from eyedoo.persistence import close_store, init_store

logger = structlog.get_logger(__name__)

# HTTP status per engine error code
ERROR_STATUS: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION: 422,
    ErrorCode.INVALID_ORDERING: 409,
    ErrorCode.CONFLICT: 409,
    ErrorCode.INSUFFICIENT_BUFFER: 409,
    ErrorCode.FINALIZED: 423,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.ALREADY_EXISTS: 409,
    ErrorCode.CONCURRENT_MODIFICATION: 409,
    ErrorCode.PERSISTENCE: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    app.state.shutting_down = False

    settings = get_settings()
    logger.info("startup_begin", app_name=settings.app_name, debug=settings.debug)

    await init_store()

    yield

    app.state.shutting_down = True
    logger.info("shutdown_begin")
    await close_store()
    logger.info("shutdown_complete")


async def eyedoo_exception_handler(request: Request, exc: EyeDooError) -> JSONResponse:
    """Render engine errors with their code and a debug_id for log lookup."""
    debug_id = str(uuid.uuid4())
    status_code = ERROR_STATUS.get(exc.code, 400)

    log = logger.error if isinstance(exc, PersistenceError) and status_code >= 500 else logger.info
    log(
        "timeline_request_rejected",
        status_code=status_code,
        code=exc.code.value,
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        detail=str(exc),
    )

    return JSONResponse(
        status_code=status_code,
        content={**exc.to_dict(), "debug_id": debug_id},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled errors with debug_id tracking.

    Logs full exception with traceback, returns generic 500 to client.
    """
    debug_id = str(uuid.uuid4())

    logger.error(
        "unhandled_exception",
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "debug_id": debug_id},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Event timelines with scheduling validation and finalization",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Correlation ID middleware (runs first on incoming requests)
    setup_correlation_middleware(app)

    app.exception_handler(EyeDooError)(eyedoo_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)

    app.include_router(api_router, prefix="/api")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "eyedoo.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
