"""Result types of the enrollment and recognition operations.

Enrollment outcomes form a closed union (``EnrollmentOutcome``); consumers
``match`` on the variant and close the match with ``assert_never``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from facematch.storage.store import EnrollmentRecord


class FailureReason(StrEnum):
    NO_FACE_DETECTED = "no_face_detected"
    MULTIPLE_FACES_DETECTED = "multiple_faces_detected"
    INVALID_FACE_GEOMETRY = "invalid_face_geometry"
    DUPLICATE_EXTERNAL_IDENTIFIER = "duplicate_external_identifier"
    DUPLICATE_FACE = "duplicate_face"
    EMPTY_ENROLLED_SET = "empty_enrolled_set"
    BELOW_SIMILARITY_THRESHOLD = "below_similarity_threshold"
    CODEC_LENGTH_MISMATCH = "codec_length_mismatch"


class EnrollmentPhase(StrEnum):
    """States of a single enrollment call."""

    IDLE = "idle"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"
    ALREADY_EXISTS = "already_exists"


@dataclass(frozen=True)
class Enrolled:
    record: EnrollmentRecord
    message: str

    phase: ClassVar[EnrollmentPhase] = EnrollmentPhase.SUCCESS


@dataclass(frozen=True)
class AlreadyEnrolled:
    """The identity or the face is already known; nothing was written."""

    reason: FailureReason
    existing: EnrollmentRecord
    message: str

    phase: ClassVar[EnrollmentPhase] = EnrollmentPhase.ALREADY_EXISTS


@dataclass(frozen=True)
class EnrollmentRejected:
    reason: FailureReason
    message: str

    phase: ClassVar[EnrollmentPhase] = EnrollmentPhase.ERROR


EnrollmentOutcome = Enrolled | AlreadyEnrolled | EnrollmentRejected


@dataclass(frozen=True)
class MatchResult:
    """Outcome of a recognition call.

    ``identity``, ``external_id`` and ``display_name`` are set only when
    ``matched`` is true; ``reason`` only when it is false.
    """

    matched: bool
    score: float
    message: str
    identity: int | None = None
    external_id: str | None = None
    display_name: str | None = None
    reason: FailureReason | None = None

    @classmethod
    def not_matched(cls, reason: FailureReason, message: str, score: float = 0.0) -> MatchResult:
        return cls(matched=False, score=score, message=message, reason=reason)
