"""Tests for application startup wiring."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING
from unittest.mock import patch

from facematch.config import Settings
from facematch.main import create_app, create_store
from facematch.ml.face_detector import PayloadFaceDetector
from facematch.ml.inference import InferencePool
from facematch.service.recognition import FaceRecognitionService
from facematch.storage.sql import SqlEnrollmentStore
from facematch.storage.store import InMemoryEnrollmentStore

if TYPE_CHECKING:
    from pathlib import Path


class TestCreateStore:
    def test_memory_backend(self) -> None:
        assert isinstance(create_store(Settings(store_backend="memory")), InMemoryEnrollmentStore)

    def test_sql_backend_creates_schema(self, tmp_path: Path) -> None:
        store = create_store(Settings(store_backend="sql", database_url=f"sqlite:///{tmp_path / 'fm.db'}"))
        try:
            assert isinstance(store, SqlEnrollmentStore)
            assert store.count() == 0
        finally:
            store.close()


class TestLifespan:
    async def test_startup_populates_state(self) -> None:
        app = create_app()
        with patch.dict(os.environ, {"FACEMATCH_STORE_BACKEND": "memory"}):
            async with app.router.lifespan_context(app):
                assert isinstance(app.state.settings, Settings)
                assert isinstance(app.state.recognition_service, FaceRecognitionService)
                assert isinstance(app.state.inference_pool, InferencePool)
                assert app.state.recognition_service.enrolled_count() == 0

    async def test_injected_store_is_used(self) -> None:
        store = InMemoryEnrollmentStore()
        app = create_app(detector=PayloadFaceDetector(), store=store)
        async with app.router.lifespan_context(app):
            service: FaceRecognitionService = app.state.recognition_service
            assert service.list_identities() == store.all()
