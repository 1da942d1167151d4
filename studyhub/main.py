"""
StudyHub FastAPI Application Entry Point.

Run with: uvicorn studyhub.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studyhub.api.routes import (
    auth,
    bookmarks,
    connectivity,
    history,
    home,
    notes,
    students,
    subjects,
)
from studyhub.config import get_settings
from studyhub.data import DataBackend, EmergencyMonitor, RetryPolicy, SqlTableGateway, StudyData
from studyhub.db.session import build_engine, build_session_factory

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown."""
    # Startup
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if await app.state.study_data.check_connection():
        logger.info("Data service reachable")
    else:
        logger.warning("Data service unreachable at startup")
    yield
    # Shutdown
    if app.state.engine is not None:
        await app.state.engine.dispose()


def create_app(
    backend: DataBackend | None = None,
    monitor: EmergencyMonitor | None = None,
) -> FastAPI:
    """
    Build the application.

    Without a backend the app talks to Postgres through SqlTableGateway;
    tests pass an in-memory backend instead.
    """
    engine = None
    if backend is None:
        engine = build_engine(settings)
        backend = SqlTableGateway(build_session_factory(engine), reflect=settings.reflect_schema)

    monitor = monitor or EmergencyMonitor(threshold=settings.emergency_failure_threshold)

    app = FastAPI(
        title=settings.app_name,
        description="Study notes sharing API for college students",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.engine = engine
    app.state.backend = backend
    app.state.monitor = monitor
    app.state.study_data = StudyData(
        backend,
        monitor,
        read_policy=RetryPolicy.from_settings(settings),
        write_timeout=settings.write_timeout_seconds,
        connectivity_timeout=settings.connectivity_timeout_seconds,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(auth.router)
    app.include_router(students.router)
    app.include_router(subjects.router)
    app.include_router(notes.router)
    app.include_router(bookmarks.router)
    app.include_router(history.router)
    app.include_router(home.router)
    app.include_router(connectivity.router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "mode": "emergency" if app.state.monitor.active else "online",
        }

    return app


app = create_app()
