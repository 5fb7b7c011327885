"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.api.v1.assistant_router import router as assistant_router
from app.api.v1.live_router import router as live_router
from app.core.config import settings
from app.core.database import Base, engine
from app.core.exceptions import (
    AppException,
    app_exception_handler,
    error_body,
    validation_exception_handler,
)
from app.core.limiter import limiter
from app.core.middleware import NoCacheMiddleware, TokenMiddleware
from app.core.redis import close_redis, init_redis, redis_healthy

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    logger.info(
        "Starting application",
        app_name=settings.app.name,
        environment=settings.app.env,
        auto_accept=settings.live_agent.auto_accept,
        llm_provider=settings.llm.provider,
    )
    await init_redis()
    if settings.app.creates_schema_on_startup:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    yield
    await close_redis()
    await engine.dispose()
    logger.info("Shutting down application")


app = FastAPI(
    title=settings.app.name,
    description="Live-agent chat synchronization over HTTP polling",
    version=settings.app.version,
    lifespan=lifespan,
    debug=settings.app.debug,
)

# Rate limiter
app.state.limiter = limiter


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """Custom handler for rate limit exceeded errors."""
    return JSONResponse(
        status_code=429,
        content=error_body(429, "Rate limit exceeded", "RATE_LIMIT_EXCEEDED"),
    )


# Exception handlers
app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)  # type: ignore[arg-type]
app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]

# Middleware (registration order: inner→outer, execution order: outer→inner)
app.add_middleware(TokenMiddleware)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(NoCacheMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.app.is_development else settings.server.cors_origins_list,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["ETag"],
)


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    redis_ok = await redis_healthy()
    return {"status": "healthy" if redis_ok else "degraded", "redis": redis_ok}


@app.get("/")
async def root() -> dict:
    """Root endpoint."""
    return {
        "app": settings.app.name,
        "version": settings.app.version,
        "docs": "/docs",
    }


# Register routers
app.include_router(live_router)
app.include_router(assistant_router)
