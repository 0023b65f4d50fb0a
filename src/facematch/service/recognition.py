"""Enrollment and recognition orchestration.

Sequences detection, embedding, store lookups and the match resolver into
the public operations. All methods are synchronous and CPU-bound; the HTTP
layer runs them on the inference thread pool.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from facematch.core.codec import EmbeddingCodecError, decode_embedding, encode_embedding
from facematch.core.features import EMBEDDING_DIM, InvalidObservationError
from facematch.core.matching import find_best_match
from facematch.core.outcomes import (
    AlreadyEnrolled,
    Enrolled,
    EnrollmentPhase,
    EnrollmentRejected,
    FailureReason,
    MatchResult,
)
from facematch.core.vectors import embed
from facematch.storage.store import EnrollmentRecord, NewEnrollment

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    import numpy as np
    from numpy.typing import NDArray

    from facematch.config import Settings
    from facematch.core.outcomes import EnrollmentOutcome
    from facematch.ml.face_detector import FaceDetector
    from facematch.storage.store import EnrollmentStore

logger = logging.getLogger(__name__)


class _FaceRejected(Exception):
    def __init__(self, reason: FailureReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message


class FaceRecognitionService:
    """Enrolls and recognizes faces against an injected store.

    The detector is called under a lock owned by the service, so a single
    detector instance may be shared by every worker thread.
    """

    def __init__(self, detector: FaceDetector, store: EnrollmentStore, settings: Settings) -> None:
        self._detector = detector
        self._store = store
        self._recognition_threshold = settings.recognition_threshold
        self._duplicate_threshold = settings.duplicate_threshold
        self._reject_duplicate_faces = settings.reject_duplicate_faces
        self._store_images = settings.store_images
        self._detector_lock = threading.Lock()

    @property
    def recognition_threshold(self) -> float:
        return self._recognition_threshold

    # -- Public API ---------------------------------------------------------

    def enroll(
        self,
        image: bytes,
        external_id: str,
        display_name: str,
        progress: Callable[[EnrollmentPhase], None] | None = None,
    ) -> EnrollmentOutcome:
        """Enroll the single face in ``image`` under ``external_id``.

        ``progress``, when given, receives ``PROCESSING`` and then the
        terminal phase of the call. A call that raises (for instance on a
        malformed detector payload) ends in ``ERROR``.
        """
        if progress is not None:
            progress(EnrollmentPhase.PROCESSING)

        try:
            outcome = self._enroll(image, external_id, display_name)
        except Exception:
            if progress is not None:
                progress(EnrollmentPhase.ERROR)
            raise
        logger.info("Enrollment of %s: %s (%s)", external_id, outcome.phase, outcome.message)

        if progress is not None:
            progress(outcome.phase)
        return outcome

    def recognize(self, image: bytes) -> MatchResult:
        """Match the single face in ``image`` against every enrolled record."""
        result = self._recognize(image)
        if result.matched:
            logger.info("Recognized record %s (score=%.4f)", result.identity, result.score)
        else:
            logger.info("Recognition failed: %s", result.reason)
        return result

    def remove_identity(self, identity: int) -> None:
        self._store.delete_by_id(identity)

    def get_identity(self, identity: int) -> EnrollmentRecord | None:
        return self._store.get_by_id(identity)

    def list_identities(self) -> list[EnrollmentRecord]:
        return self._store.all()

    def enrolled_count(self) -> int:
        return self._store.count()

    # -- Internal -----------------------------------------------------------

    def _enroll(self, image: bytes, external_id: str, display_name: str) -> EnrollmentOutcome:
        try:
            embedding = self._embed_single_face(image)
        except _FaceRejected as exc:
            return EnrollmentRejected(reason=exc.reason, message=exc.message)

        existing = self._store.find_by_external_id(external_id)
        if existing is not None:
            return AlreadyEnrolled(
                reason=FailureReason.DUPLICATE_EXTERNAL_IDENTIFIER,
                existing=existing,
                message=f"External identifier '{external_id}' is already enrolled",
            )

        if self._reject_duplicate_faces:
            snapshot = self._store.all()
            try:
                candidates = self._decode_candidates(snapshot)
            except EmbeddingCodecError as exc:
                return EnrollmentRejected(reason=FailureReason.CODEC_LENGTH_MISMATCH, message=str(exc))
            duplicate = find_best_match(embedding, candidates, self._duplicate_threshold)
            if duplicate is not None:
                owner = next(r for r in snapshot if r.id == duplicate.identity)
                return AlreadyEnrolled(
                    reason=FailureReason.DUPLICATE_FACE,
                    existing=owner,
                    message=f"Face already enrolled as '{owner.external_id}' ({duplicate.score:.0%} similar)",
                )

        created_at = datetime.now(UTC)
        enrollment = NewEnrollment(
            external_id=external_id,
            display_name=display_name,
            embedding=encode_embedding(embedding),
            embedding_dim=len(embedding),
            image=image if self._store_images else None,
            created_at=created_at,
        )
        identity = self._store.insert(enrollment)
        record = EnrollmentRecord(
            id=identity,
            external_id=enrollment.external_id,
            display_name=enrollment.display_name,
            embedding=enrollment.embedding,
            embedding_dim=enrollment.embedding_dim,
            created_at=created_at,
            image=enrollment.image,
        )
        return Enrolled(record=record, message=f"Face enrolled for {display_name}")

    def _recognize(self, image: bytes) -> MatchResult:
        try:
            query = self._embed_single_face(image)
        except _FaceRejected as exc:
            return MatchResult.not_matched(exc.reason, exc.message)

        snapshot = self._store.all()
        if not snapshot:
            return MatchResult.not_matched(
                FailureReason.EMPTY_ENROLLED_SET,
                "No identities are enrolled; enroll at least one face first",
            )

        try:
            candidates = self._decode_candidates(snapshot)
        except EmbeddingCodecError as exc:
            return MatchResult.not_matched(FailureReason.CODEC_LENGTH_MISMATCH, str(exc))

        match = find_best_match(query, candidates, self._recognition_threshold)
        if match is None:
            return MatchResult.not_matched(
                FailureReason.BELOW_SIMILARITY_THRESHOLD,
                f"Face not recognized; similarity is below the required {self._recognition_threshold:.0%}",
            )

        record = next(r for r in snapshot if r.id == match.identity)
        return MatchResult(
            matched=True,
            score=match.score,
            message=f"Recognized {record.display_name} with {int(match.score * 100)}% confidence",
            identity=record.id,
            external_id=record.external_id,
            display_name=record.display_name,
        )

    def _embed_single_face(self, image: bytes) -> NDArray[np.float32]:
        with self._detector_lock:
            observations = self._detector.detect(image)

        if not observations:
            raise _FaceRejected(FailureReason.NO_FACE_DETECTED, "No face detected in the image")
        if len(observations) > 1:
            raise _FaceRejected(
                FailureReason.MULTIPLE_FACES_DETECTED,
                f"{len(observations)} faces detected; make sure only one person is in the image",
            )

        try:
            return embed(observations[0])
        except InvalidObservationError as exc:
            raise _FaceRejected(FailureReason.INVALID_FACE_GEOMETRY, str(exc)) from exc

    @staticmethod
    def _decode_candidates(snapshot: Sequence[EnrollmentRecord]) -> list[tuple[int, NDArray[np.float32]]]:
        candidates: list[tuple[int, NDArray[np.float32]]] = []
        for record in snapshot:
            try:
                embedding = decode_embedding(record.embedding)
            except EmbeddingCodecError:
                logger.error("Record %s holds a malformed embedding (%d bytes)", record.id, len(record.embedding))
                raise
            if len(embedding) != record.embedding_dim:
                logger.warning(
                    "Record %s declares embedding dimension %d but holds %d components",
                    record.id,
                    record.embedding_dim,
                    len(embedding),
                )
            if len(embedding) != EMBEDDING_DIM:
                logger.warning(
                    "Record %s has embedding dimension %d, expected %d; it cannot match",
                    record.id,
                    len(embedding),
                    EMBEDDING_DIM,
                )
            candidates.append((record.id, embedding))
        return candidates
