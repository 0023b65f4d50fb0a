"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from facematch.config import Settings
    from facematch.ml.face_detector import FaceDetector
    from facematch.storage.store import EnrollmentStore

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from facematch.api.routes import router
from facematch.config import get_settings
from facematch.core.features import EMBEDDING_DIM, FEATURE_LAYOUT_VERSION
from facematch.ml.face_detector import create_detector
from facematch.ml.inference import InferencePool
from facematch.service.recognition import FaceRecognitionService
from facematch.storage.sql import SqlEnrollmentStore
from facematch.storage.store import InMemoryEnrollmentStore

logger = logging.getLogger(__name__)


def create_store(settings: Settings) -> EnrollmentStore:
    """Build the enrollment store selected by FACEMATCH_STORE_BACKEND."""
    if settings.store_backend == "memory":
        return InMemoryEnrollmentStore()
    store = SqlEnrollmentStore(settings.database_url)
    store.init()
    return store


def create_app(detector: FaceDetector | None = None, store: EnrollmentStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``detector`` and ``store`` override the configured ones, which lets an
    embedding application plug in its own face detector.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan: initialize on startup, clean up on shutdown."""
        settings = get_settings()
        app.state.settings = settings

        logging.basicConfig(
            level=settings.log_level,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )

        logger.info(
            "Starting FaceMatch (max_concurrent=%s, detector=%s, store=%s, embedding_dim=%s, layout=v%s)",
            settings.max_concurrent,
            settings.detector if detector is None else detector.model_name,
            settings.store_backend if store is None else type(store).__name__,
            EMBEDDING_DIM,
            FEATURE_LAYOUT_VERSION,
        )

        enrollment_store = store if store is not None else create_store(settings)
        face_detector = detector if detector is not None else create_detector(settings.detector)
        app.state.recognition_service = FaceRecognitionService(face_detector, enrollment_store, settings)

        inference_pool = InferencePool(settings)
        app.state.inference_pool = inference_pool

        logger.info("FaceMatch ready")
        yield

        logger.info("Shutting down FaceMatch")
        inference_pool.shutdown()
        if isinstance(enrollment_store, SqlEnrollmentStore):
            enrollment_store.close()
        logger.info("FaceMatch shutdown complete")

    application = FastAPI(
        title="FaceMatch",
        description="Landmark-geometry face enrollment and recognition API",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Serve the application with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "facematch.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
