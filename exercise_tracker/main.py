"""Main FastAPI application for the exercise tracker."""

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from exercise_tracker.api import lifespan, router
from exercise_tracker.config import HOST, LOG_LEVEL, PORT, PUBLIC_DIR
from exercise_tracker.errors import register_exception_handlers
from exercise_tracker.logging_config import setup_logging
from exercise_tracker.storage import ExerciseStore, open_store

logger = logging.getLogger(__name__)


def create_app(store: Optional[ExerciseStore] = None) -> FastAPI:
    """Build the application around a single store.

    The store is started and stopped with the app's lifespan. When none is
    given, the backend selected by configuration is used.
    """
    setup_logging(LOG_LEVEL)

    app = FastAPI(
        title="Exercise Tracker API",
        description="FastAPI service for registering users and logging their exercises",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.store = store if store is not None else open_store()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    app.include_router(router)
    # Mounted last so API routes win; misses fall through to the 404 handler
    app.mount("/", StaticFiles(directory=PUBLIC_DIR), name="public")
    return app


app = create_app()


def run() -> None:
    """Serve ``app`` with uvicorn on HOST:PORT."""
    logger.info("Your app is listening on port %d", PORT)
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())
