"""Request guards: API key authentication and upload limits."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, HTTPException, Request, UploadFile, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

if TYPE_CHECKING:
    from facematch.config import Settings

_bearer_scheme = HTTPBearer(auto_error=False)


def get_settings_from_request(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


async def verify_api_key(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> None:
    """Check the Bearer token against the configured API key.

    If no API key is configured (FACEMATCH_API_KEY not set), all requests pass.
    If configured, requests must include 'Authorization: Bearer <key>'.
    """
    settings = get_settings_from_request(request)
    if settings.api_key is None:
        return

    if credentials is None or not secrets.compare_digest(credentials.credentials.encode(), settings.api_key.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def read_upload(request: Request, file: UploadFile) -> bytes:
    """Read an uploaded file, enforcing FACEMATCH_MAX_FILE_SIZE.

    Reads one byte past the limit so oversized uploads are rejected without
    buffering them completely.
    """
    limit = get_settings_from_request(request).max_file_size
    data = await file.read(limit + 1)
    if len(data) > limit:
        raise HTTPException(
            status_code=413,
            detail=f"Upload exceeds the {limit} byte limit",
        )
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty upload")
    return data
