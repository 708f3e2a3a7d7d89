"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from taskboard.api import router as api_router
from taskboard.config import Settings, get_settings
from taskboard.logging_config import configure_logging
from taskboard.middleware import LoggingMiddleware, RequestIDMiddleware, register_error_handlers
from taskboard.models import User
from taskboard.security import PasswordHasher, TokenCodec
from taskboard.store import EntityStore

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    settings: Settings = app.state.settings
    logger.info(
        "Starting Taskboard API",
        version=settings.app_version,
        environment=settings.environment,
    )

    yield

    # The store is volatile; everything in it is dropped here
    logger.info("Shutting down Taskboard API", users=app.state.store.count(User))


def create_app(settings: Settings | None = None, store: EntityStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Each app owns its own store, so tests can build isolated instances.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Team and task management with role-based access control",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store if store is not None else EntityStore()
    app.state.hasher = PasswordHasher(rounds=settings.password_hash_rounds)
    app.state.tokens = TokenCodec.from_settings(settings)

    # Add middleware (order matters - last added is first executed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_error_handlers(app, settings)

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint for load balancers."""
        return {"status": "healthy", "version": settings.app_version}

    return app


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "taskboard.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )


app = create_app()
