"""FastAPI application factory.

Main entry point for the tutoring Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tutoring import __version__
from tutoring.config.app_config import load_app_config
from tutoring.config.subjects import list_subjects
from tutoring.db.database import init_db
from tutoring.logging_setup import configure_logging
from tutoring.web.errors import register_exception_handlers
from tutoring.web.middleware import AuthMiddleware, request_id_middleware
from tutoring.web.routes import (
    auth_router,
    chat_router,
    chat_sessions_router,
    dashboard_router,
    exam_results_router,
    exams_router,
    health_router,
    profile_router,
    subjects_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    # Startup
    config = load_app_config()
    init_db()
    logger.info(
        "api_startup",
        environment=config.environment,
        llm_configured=config.llm.api_key is not None,
        subjects=len(list_subjects()),
    )
    yield
    logger.info("api_shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    configure_logging()
    config = load_app_config()

    app = FastAPI(
        title="Socratic Tutoring API",
        description="Tutor chat, practice exams and progress tracking",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    # Starlette runs the last added middleware first: CORS, then request id,
    # then authentication.
    app.add_middleware(AuthMiddleware)
    app.middleware("http")(request_id_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(profile_router)
    app.include_router(chat_sessions_router)
    app.include_router(exam_results_router)
    app.include_router(chat_router)
    app.include_router(exams_router)
    app.include_router(subjects_router)
    app.include_router(dashboard_router)

    return app


# Default app instance for uvicorn
app = create_app()
