"""
Main FastAPI Application

Entry point for the bizos agent platform API: workflows and their
scheduler, the event bus, agent sessions with human-in-the-loop
confirmations, and the tool catalogue.
"""
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import time
from contextlib import asynccontextmanager

from bizos import __version__
from bizos.config import get_settings
from bizos.database import engine, init_db
from bizos.middleware.tenant import TenantMiddleware
from bizos.middleware.rate_limit import RateLimitMiddleware
from bizos.utils.logging import setup_logging, get_logger
from bizos.core.exceptions import (
    AuthenticationError,
    SchedulerAuthError,
    TenantIsolationError,
)

from bizos.api.endpoints import (
    auth,
    users,
    workflows,
    workflow_runs,
    scheduler,
    events,
    agents,
    agent_registry,
    confirmations,
    tool_definitions,
    audit,
)

settings = get_settings()

setup_logging(
    log_level=settings.LOG_LEVEL,
    json_format=(settings.ENVIRONMENT == "production")
)
logger = get_logger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting application in {settings.ENVIRONMENT} mode")

    # Production schemas are managed by migrations
    if settings.ENVIRONMENT == "development":
        logger.warning("Initializing database tables (dev mode)")
        init_db()

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application")
    engine.dispose()
    logger.info("Application shutdown complete")

app = FastAPI(
    title="bizos",
    description="Multi-tenant agent platform: scheduled and event-driven workflows, agent sessions and HITL confirmations",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# ============================================================================
# MIDDLEWARE CONFIGURATION
# ============================================================================

allowed_origins = ["*"] if settings.ENVIRONMENT == "development" else [
    "http://localhost:3000",
    "http://localhost:8000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add X-Process-Time header to track request duration."""
    start_time = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = str(time.time() - start_time)
    return response

# Middleware added last runs first: TenantMiddleware must wrap the rate limiter
app.add_middleware(RateLimitMiddleware)
app.add_middleware(TenantMiddleware)

# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

def _typed_error_handler(error_type: str):
    """Build a handler that returns the exception's detail tagged with ``type``."""
    async def handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "type": error_type},
            headers=exc.headers or {}
        )
    return handler

app.add_exception_handler(AuthenticationError, _typed_error_handler("authentication_error"))
app.add_exception_handler(SchedulerAuthError, _typed_error_handler("scheduler_auth_error"))

@app.exception_handler(TenantIsolationError)
async def tenant_isolation_error_handler(request: Request, exc: TenantIsolationError):
    logger.error(
        f"TENANT ISOLATION VIOLATION: {exc.detail}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "tenant_id": getattr(request.state, "tenant_id", None)
        }
    )
    return await _typed_error_handler("tenant_isolation_error")(request, exc)

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Full traceback to the log; the client sees details only with DEBUG on."""
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}: {exc}",
        exc_info=True,
        extra={"tenant_id": getattr(request.state, "tenant_id", None)}
    )
    content = {"detail": "Internal server error", "type": "internal_error"}
    if settings.DEBUG:
        content = {"detail": str(exc), "type": type(exc).__name__}
    return JSONResponse(status_code=500, content=content)

# ============================================================================
# ROUTES
# ============================================================================

@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": __version__
    }

@app.get("/", tags=["root"])
async def root():
    return {
        "message": "bizos API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }

for module in (
    auth,
    users,
    workflows,
    workflow_runs,
    scheduler,
    events,
    agents,
    agent_registry,
    confirmations,
    tool_definitions,
    audit,
):
    app.include_router(module.router, prefix="/api/v1")

if __name__ == "__main__":
    import uvicorn

    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug: {settings.DEBUG}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    uvicorn.run(
        "bizos.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
