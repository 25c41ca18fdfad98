"""FastAPI main application for the civic program administration backend."""

from contextlib import asynccontextmanager
import time

import asyncpg
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from civic_admin.api.routes import (
    auth,
    delegates,
    elections,
    groupings,
    positions,
    programs,
    roles,
)
from civic_admin.core.config import settings
from civic_admin.core.database import close_db_pool, init_db_pool
from civic_admin.core.exceptions import CivicAdminError, RateLimitedError
from civic_admin.core.logging_config import get_logger, setup_logging
from civic_admin.core.responses import error_body, error_response_dict, success_response

# Setup logging
setup_logging()
logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if settings.ENVIRONMENT == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - runs on startup and shutdown."""
    logger.info("Starting civic admin backend...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    # Initialize async database pool (skip in test environment)
    if settings.ENVIRONMENT != "test":
        await init_db_pool(settings)

    yield

    if settings.ENVIRONMENT != "test":
        await close_db_pool()
    logger.info("Shutting down civic admin backend...")


app = FastAPI(
    title="Civic Admin Backend",
    description="""
    Administration API for multi-tenant civic education programs.

    Every resource belongs to a program. A user's standing in a program comes
    from their program assignment: program admins manage positions, elections and
    roles; any member may view them, record votes and read results.

    ## Authentication

    ```
    Authorization: Bearer <your_jwt_token>
    ```

    ## API Versioning

    - `/v1/*` - Version 1 (current stable)
    - `/*` - Latest version (may change)
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(SecurityHeadersMiddleware)

if settings.ENVIRONMENT == "development":
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "Origin"],
    )


# Exception handlers
@app.exception_handler(CivicAdminError)
async def domain_exception_handler(request: Request, exc: CivicAdminError):
    """Render service-layer errors with their status code."""
    headers = None
    if isinstance(exc, RateLimitedError) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}

    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.message}")
    else:
        logger.debug(f"{type(exc).__name__} on {request.url.path}: {exc.message}")

    return error_response_dict(
        error_body(exc.message, errors=exc.errors), exc.status_code, headers
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with standardized error responses."""
    if isinstance(exc.detail, dict):
        return error_response_dict(exc.detail, exc.status_code, exc.headers)
    return error_response_dict(error_body(exc.detail), exc.status_code, exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors."""
    errors = {}
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors[field] = error["msg"]

    return error_response_dict(error_body("Validation failed", errors=errors), 422)


@app.exception_handler(asyncpg.exceptions.PostgresError)
async def database_exception_handler(
    request: Request, exc: asyncpg.exceptions.PostgresError
):
    logger.error(f"Database error: {exc}", exc_info=True)
    return error_response_dict(error_body("Database error occurred"), 500)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors."""
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return error_response_dict(error_body("An unexpected error occurred"), 500)


ROUTERS = (
    auth.router,
    programs.router,
    roles.router,
    positions.router,
    groupings.router,
    delegates.router,
    elections.router,
)

v1_router = APIRouter(prefix="/v1")
for router in ROUTERS:
    v1_router.include_router(router)
app.include_router(v1_router)

# Unversioned aliases for the latest version
for router in ROUTERS:
    app.include_router(router)


@app.get("/health")
async def health_check():
    """Liveness probe; reports whether the database pool is up."""
    from civic_admin.core.database import _pool

    return success_response(
        data={
            "status": "healthy",
            "timestamp": time.time(),
            "database_pool": "ready" if _pool else "not initialized",
        }
    )
