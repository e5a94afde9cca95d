"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from support_chat.core.config import settings
from support_chat.core.exceptions import AppException, InvalidInputError
from support_chat.db.mongodb import close_mongodb, connect_mongodb
from support_chat.db.redis import close_redis, connect_redis
from support_chat.domains.auth.router import router as auth_router
from support_chat.domains.chat.router import router as chat_router
from support_chat.middlewares.security import RateLimitMiddleware, SecurityHeadersMiddleware
from support_chat.sockets.server import get_fanout

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure root logging from settings."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    # Startup
    configure_logging()
    logger.info("Starting Support Chat in %s mode...", settings.environment)

    await connect_mongodb()
    await connect_redis()

    yield

    # Shutdown
    logger.info("Shutting down Support Chat...")
    await get_fanout().drain()
    await close_mongodb()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Support Chat",
        description="Customer support chat sessions with realtime delivery",
        version="0.1.0",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Security middlewares (order matters: first added = last executed)
    app.add_middleware(SecurityHeadersMiddleware)

    # Rate limiting (only in production)
    if settings.is_production:
        app.add_middleware(RateLimitMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
        expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining"],
    )

    # Exception handlers
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        return JSONResponse(status_code=exc.status_code, content=exc.to_envelope())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        error = InvalidInputError(
            "Request validation failed",
            details={
                "errors": [
                    {"loc": list(e.get("loc", [])), "msg": e.get("msg")}
                    for e in exc.errors()
                ]
            },
        )
        return JSONResponse(status_code=error.status_code, content=error.to_envelope())

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        message = str(exc) if settings.is_development else "An unexpected error occurred"
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error_kind": "INTERNAL_ERROR",
                "message": message,
                "details": {"type": type(exc).__name__} if settings.is_development else {},
            },
        )

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "environment": settings.environment}

    _register_routers(app)

    return app


def _register_routers(app: FastAPI) -> None:
    """Register all API routers."""
    api_prefix = settings.api_prefix

    app.include_router(auth_router, prefix=f"{api_prefix}/auth", tags=["Auth"])
    app.include_router(chat_router, prefix=f"{api_prefix}/chats", tags=["Chats"])
