"""
FormForge - Backend Application

FastAPI application for building forms, collecting responses and
analyzing them.

Features:
    - Form definitions with validated, ordered fields
    - Authenticated response submission with user-agent classification
    - Per-form and per-owner analytics with per-aggregation isolation
    - Store connection supervision with backoff and fallback

Run:
    python main.py
    # or
    uvicorn main:app --reload
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIASGIMiddleware
from sqlalchemy.exc import InterfaceError, OperationalError

from config.settings import settings
from core import database
from core.connection import ConnectionSupervisor
from utils.exceptions import FormForgeError, InvalidInputError, StoreUnavailableError, UnknownError
from utils.logging import setup_logging, get_logger
from utils.rate_limit import limiter, rate_limit_exceeded_handler

from routers import auth_router, forms_router, responses_router

# Initialize logging
setup_logging()
logger = get_logger(__name__)


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events:
        - Startup: Connect to the store and initialize tables
        - Shutdown: Close pooled connections

    The API keeps serving when the store is unreachable; store-backed
    endpoints answer 503 until a connection exists.
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Debug mode: {settings.DEBUG}")

    try:
        await database.supervisor.connect()
    except StoreUnavailableError as e:
        logger.error(f"Starting without a store connection: {e.message}")
    else:
        async with database.supervisor.engine.begin() as conn:
            await conn.run_sync(database.Base.metadata.create_all)
            logger.info("Database tables initialized")

    yield

    logger.info("Shutting down application")
    await database.supervisor.dispose()


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title=settings.APP_NAME,
    description="Form builder API: forms, responses and analytics",
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Attach rate limiter to app state
app.state.limiter = limiter


# =============================================================================
# Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=500)

# Applies the default limit to routes without their own decorator
app.add_middleware(SlowAPIASGIMiddleware)


# =============================================================================
# Exception Handlers
# =============================================================================

def _error_response(exc: FormForgeError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.to_dict(include_details=settings.DEBUG)),
    )


@app.exception_handler(FormForgeError)
async def formforge_exception_handler(request: Request, exc: FormForgeError):
    """
    Handle FormForge exceptions.

    Returns ``{error, message}`` with the exception's status code;
    ``details`` only in debug mode.
    """
    if exc.status_code >= 500:
        logger.error(f"{exc.kind}: {exc.message}", extra={"details": exc.details})
    else:
        logger.info(f"{exc.kind} on {request.url.path}: {exc.message}")
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]
    return _error_response(
        InvalidInputError("Invalid request", details={"errors": errors})
    )


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
async def store_error_handler(request: Request, exc: Exception):
    logger.error(f"Store error on {request.url.path}: {exc}")
    return _error_response(StoreUnavailableError(details={"error": str(exc)}))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    return _error_response(UnknownError(details={"error": str(exc)}))


# Rate limit exceeded handler
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


# =============================================================================
# Routers
# =============================================================================

app.include_router(auth_router)
app.include_router(forms_router)
app.include_router(responses_router)


# =============================================================================
# Health Check Endpoints
# =============================================================================

@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - basic health check."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION
    }


@app.get("/api/health", tags=["Health"])
async def health_check(store: ConnectionSupervisor = Depends(database.get_supervisor)):
    """
    Detailed health check.

    Reports ``degraded`` while the store is unreachable.
    """
    db_healthy = await store.check_health()
    return {
        "status": "healthy" if db_healthy else "degraded",
        "components": {
            "database": store.status(include_details=settings.DEBUG),
        },
        "version": settings.APP_VERSION
    }


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
