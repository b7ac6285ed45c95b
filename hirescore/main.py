"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from .api.ai import router as ai_router
from .api.billing import router as billing_router
from .core.config import get_settings
from .core.quota import InsufficientQuotaError, QuotaNotFoundError, QuotaUnavailableError
from .core.security import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    limiter,
    rate_limit_exceeded_handler,
)
from .db.database import init_db, close_db

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(f"Starting HireScore in {settings.environment} mode")

    if not settings.ai_gateway_api_key:
        logger.warning("AI_GATEWAY_API_KEY is not set. AI features will fail until it is configured.")
    if not settings.auth_enabled:
        logger.warning("No JWT secret or JWKS URL configured. All requests run as the development user.")

    # In production with PostgreSQL, use Alembic migrations instead
    if settings.auto_migrate:
        logger.info("Initializing database...")
        await init_db()
        logger.info("Database initialized")

    yield

    logger.info("Shutting down HireScore")
    await close_db()


async def insufficient_quota_handler(request: Request, exc: InsufficientQuotaError) -> JSONResponse:
    """Out of tokens: the client shows an upgrade prompt."""
    return JSONResponse(
        status_code=402,
        content={
            "detail": {
                "error": "insufficient_tokens",
                "message": "You've run out of tokens. Upgrade to Premium for unlimited access!",
                "required_tokens": exc.required,
                "available_tokens": exc.remaining,
                "upgrade": True,
            }
        },
    )


async def quota_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    """Token storage is down: metered actions are refused rather than run unmetered."""
    return JSONResponse(
        status_code=503,
        content={
            "detail": {
                "error": "quota_unavailable",
                "message": "We couldn't verify your token balance. Please try again shortly.",
            }
        },
    )


# Create FastAPI app
app = FastAPI(
    title="HireScore API",
    description="Career development platform backend: AI mentoring, job matching and resume tools behind a token quota.",
    version="0.1.0",
    lifespan=lifespan,
)

# Add rate limiter state and exception handlers
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_exception_handler(InsufficientQuotaError, insufficient_quota_handler)
app.add_exception_handler(QuotaUnavailableError, quota_unavailable_handler)
app.add_exception_handler(QuotaNotFoundError, quota_unavailable_handler)

# Add security middleware (before CORS)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(ai_router, prefix="/api/v1")
app.include_router(billing_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "HireScore",
        "version": "0.1.0",
        "description": "Career development platform API",
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "ai_gateway_configured": bool(settings.ai_gateway_api_key),
        "auth_enabled": settings.auth_enabled,
    }
