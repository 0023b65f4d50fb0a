"""Pydantic request/response schemas for the FaceMatch API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from facematch.core.outcomes import EnrollmentPhase, FailureReason


class IdentityResponse(BaseModel):
    """An enrolled identity. Embedding and image bytes are never returned."""

    id: int
    external_id: str
    display_name: str
    embedding_dim: int
    has_image: bool
    created_at: datetime


class IdentityListResponse(BaseModel):
    total: int
    identities: list[IdentityResponse]


class EnrollmentResponse(BaseModel):
    """Result of an enrollment call."""

    status: EnrollmentPhase = Field(description="Terminal phase: 'success', 'error' or 'already_exists'")
    message: str
    reason: FailureReason | None = None
    identity: IdentityResponse | None = Field(
        default=None,
        description="The new record on success, the conflicting record on 'already_exists'",
    )


class RecognitionResponse(BaseModel):
    """Result of a recognition call."""

    matched: bool
    score: float = Field(ge=0.0, le=1.0, description="Similarity of the best match (0.0-1.0)")
    threshold: float = Field(ge=0.0, le=1.0)
    message: str
    identity_id: int | None = None
    external_id: str | None = None
    display_name: str | None = None
    reason: FailureReason | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    detector: str
    enrolled_identities: int
    embedding_dim: int
    feature_layout_version: int
    similarity_formula: str
    concurrent_requests: int
    queue_depth: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
