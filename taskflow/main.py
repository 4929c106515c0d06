"""
Taskflow Comments FastAPI Application
Entry point exposing the comment collaboration engine to the UI.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taskflow.api import comments, members, notifications
from taskflow.core.config import settings
from taskflow.core.logging_setup import configure_logging
from taskflow.database import AsyncSessionLocal, close_db, init_db
from taskflow.services.engine import CommentEngine

logger = structlog.get_logger(__name__)


def create_app(engine: Optional[CommentEngine] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        engine: Comment engine to serve. Defaults to one backed by the
            configured database.
    """
    comment_engine = engine or CommentEngine(AsyncSessionLocal)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        logger.info(
            "app_starting",
            environment=settings.environment,
            debug=settings.debug,
            version=settings.app_version,
        )

        if settings.debug:
            await init_db()
            logger.info("database_initialized")

        yield

        logger.info("app_stopping")
        await comment_engine.shutdown()
        await close_db()

    app = FastAPI(
        title=settings.app_name,
        description="Threaded comments, @mentions and notifications for Taskflow.",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.comment_engine = comment_engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Handle HTTP exceptions with consistent format."""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": exc.detail,
                "status_code": exc.status_code,
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("unhandled_error", path=request.url.path, method=request.method)
        detail = str(exc) if settings.debug else "Internal server error"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": detail,
                "status_code": 500,
            },
        )

    app.include_router(comments.router)
    app.include_router(members.router)
    app.include_router(notifications.router)

    @app.get("/health", tags=["Health"])
    async def health() -> dict:
        return {"status": "ok", "version": settings.app_version}

    return app


app = create_app()
