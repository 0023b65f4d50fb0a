"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated, TypeVar, assert_never

from fastapi import APIRouter, Depends, Form, HTTPException, Request, Response, UploadFile, status
from fastapi.responses import JSONResponse

from facematch.api.middleware import get_settings_from_request, read_upload, verify_api_key
from facematch.api.schemas import (
    EnrollmentResponse,
    ErrorResponse,
    HealthResponse,
    IdentityListResponse,
    IdentityResponse,
    RecognitionResponse,
)
from facematch.core.features import EMBEDDING_DIM, FEATURE_LAYOUT_VERSION
from facematch.core.outcomes import AlreadyEnrolled, Enrolled, EnrollmentRejected, FailureReason
from facematch.core.vectors import SIMILARITY_FORMULA
from facematch.ml.face_detector import DetectionPayloadError

if TYPE_CHECKING:
    from collections.abc import Callable

    from facematch.ml.inference import InferencePool
    from facematch.service.recognition import FaceRecognitionService
    from facematch.storage.store import EnrollmentRecord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])

T = TypeVar("T")

_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
}


def _get_service(request: Request) -> FaceRecognitionService:
    service: FaceRecognitionService = request.app.state.recognition_service
    return service


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


async def _run(request: Request, func: Callable[..., T], *args: object) -> T:
    """Run a service call on the worker pool, mapping pool and payload errors to HTTP."""
    pool = _get_inference_pool(request)
    try:
        return await pool.run(func, *args)
    except TimeoutError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="All workers are busy, retry later",
        ) from None
    except DetectionPayloadError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def _identity_response(record: EnrollmentRecord) -> IdentityResponse:
    return IdentityResponse(
        id=record.id,
        external_id=record.external_id,
        display_name=record.display_name,
        embedding_dim=record.embedding_dim,
        has_image=record.image is not None,
        created_at=record.created_at,
    )


@router.post(
    "/identities",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        **_ERROR_RESPONSES,
        status.HTTP_409_CONFLICT: {"model": EnrollmentResponse},
        422: {"model": EnrollmentResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
    summary="Enroll a face under an external identifier",
)
async def enroll_identity(
    request: Request,
    file: UploadFile,
    external_id: Annotated[str, Form(min_length=1, max_length=255)],
    display_name: Annotated[str, Form(min_length=1, max_length=255)],
) -> JSONResponse:
    """Detect the single face in the upload and persist its embedding."""
    image = await read_upload(request, file)
    service = _get_service(request)
    outcome = await _run(request, service.enroll, image, external_id, display_name)

    match outcome:
        case Enrolled(record=record, message=message):
            status_code = status.HTTP_201_CREATED
            body = EnrollmentResponse(status=outcome.phase, message=message, identity=_identity_response(record))
        case AlreadyEnrolled(reason=reason, existing=existing, message=message):
            status_code = status.HTTP_409_CONFLICT
            body = EnrollmentResponse(
                status=outcome.phase,
                message=message,
                reason=reason,
                identity=_identity_response(existing),
            )
        case EnrollmentRejected(reason=FailureReason.CODEC_LENGTH_MISMATCH, message=message):
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Enrolled data is corrupt: {message}",
            )
        case EnrollmentRejected(reason=reason, message=message):
            status_code = 422
            body = EnrollmentResponse(status=outcome.phase, message=message, reason=reason)
        case _:
            assert_never(outcome)

    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.post(
    "/recognize",
    response_model=RecognitionResponse,
    responses={**_ERROR_RESPONSES, status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse}},
    summary="Recognize the face in an image",
)
async def recognize(request: Request, file: UploadFile) -> RecognitionResponse:
    """Match the single face in the upload against every enrolled identity."""
    image = await read_upload(request, file)
    service = _get_service(request)
    result = await _run(request, service.recognize, image)

    if result.reason is FailureReason.CODEC_LENGTH_MISMATCH:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Enrolled data is corrupt: {result.message}",
        )

    return RecognitionResponse(
        matched=result.matched,
        score=result.score,
        threshold=service.recognition_threshold,
        message=result.message,
        identity_id=result.identity,
        external_id=result.external_id,
        display_name=result.display_name,
        reason=result.reason,
    )


@router.get(
    "/identities",
    response_model=IdentityListResponse,
    summary="List enrolled identities",
)
async def list_identities(request: Request) -> IdentityListResponse:
    service = _get_service(request)
    records = await _run(request, service.list_identities)
    return IdentityListResponse(
        total=len(records),
        identities=[_identity_response(r) for r in records],
    )


@router.get(
    "/identities/{identity_id}",
    response_model=IdentityResponse,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
    summary="Get an enrolled identity",
)
async def get_identity(request: Request, identity_id: int) -> IdentityResponse:
    service = _get_service(request)
    record = await _run(request, service.get_identity, identity_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Identity {identity_id} not found")
    return _identity_response(record)


@router.delete(
    "/identities/{identity_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
    summary="Remove an enrolled identity",
)
async def remove_identity(request: Request, identity_id: int) -> Response:
    service = _get_service(request)
    record = await _run(request, service.get_identity, identity_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Identity {identity_id} not found")

    await _run(request, service.remove_identity, identity_id)
    logger.info("Removed identity %s (external_id=%s)", identity_id, record.external_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = get_settings_from_request(request)
    service = _get_service(request)
    pool = _get_inference_pool(request)
    enrolled = await _run(request, service.enrolled_count)
    return HealthResponse(
        status="ok",
        detector=settings.detector,
        enrolled_identities=enrolled,
        embedding_dim=EMBEDDING_DIM,
        feature_layout_version=FEATURE_LAYOUT_VERSION,
        similarity_formula=SIMILARITY_FORMULA,
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )
