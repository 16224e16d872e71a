"""API endpoints for media uploads.

These endpoints support:
- Pre-signed PUT URLs for client-direct uploads (single and batch)
- Server-side upload from a URL (also the target of peer delegation)
- Deletion of stored objects by public URL
"""

import secrets
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field, field_validator

from media_gateway.core.config import settings
from media_gateway.core.rate_limit import limiter
from media_gateway.services.upload_service import UploadService
from media_gateway.utils.strings import FILENAME_PATTERN

router = APIRouter(prefix="/media", tags=["media"])


# =============================================================================
# Request/Response Models
# =============================================================================


def _check_filename(value: str) -> str:
    if not FILENAME_PATTERN.match(value):
        raise ValueError("Invalid filename")
    return value


class SignedUrlRequest(BaseModel):
    """Request a pre-signed upload URL for one file."""

    filename: str = Field(..., min_length=1, description="Original filename with extension")

    @field_validator("filename")
    @classmethod
    def validate_filename(cls, value: str) -> str:
        return _check_filename(value)


class SignedUrlsRequest(BaseModel):
    """Request pre-signed upload URLs for several files."""

    filenames: list[str] = Field(..., min_length=1, max_length=20)

    @field_validator("filenames")
    @classmethod
    def validate_filenames(cls, values: list[str]) -> list[str]:
        return [_check_filename(value) for value in values]


class UploadFromUrlRequest(BaseModel):
    """Store a remote resource under a topic folder."""

    url: str = Field(..., description="Source URL to fetch")
    folder: str = Field(..., min_length=1, description="Topic folder for the object key")
    file_ext: str = Field(
        ..., pattern=r"^\.?[A-Za-z0-9]+$", description="Extension of the stored file"
    )


class DeleteByUrlRequest(BaseModel):
    """Delete stored objects by their public URLs."""

    urls: list[str] = Field(..., min_length=1)


class SignedUrlResponse(BaseModel):
    signed_url: str
    public_url: str
    filename: str
    key: str
    expires_at: str


# =============================================================================
# Dependencies
# =============================================================================


@lru_cache
def get_upload_service() -> UploadService:
    return UploadService()


def require_upload_token(token: str | None = Query(None)) -> None:
    """Reject callers that do not present the shared upload credential."""
    expected = settings.CDN_UPLOAD_CREDENTIAL
    if not expected or not token or not secrets.compare_digest(token, expected):
        raise HTTPException(status_code=403, detail="Forbidden")


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/register-put-signed-url")
@limiter.limit("20/30seconds")
async def register_put_signed_url(
    request: Request,
    body: SignedUrlRequest,
    service: UploadService = Depends(get_upload_service),
):
    """Issue a pre-signed PUT URL for one file."""
    signed = await service.issue_signed_upload_url(body.filename)
    return {"status": 200, "data": SignedUrlResponse(**signed.to_dict())}


@router.post("/register-put-signed-urls")
@limiter.limit("10/30seconds")
async def register_put_signed_urls(
    request: Request,
    body: SignedUrlsRequest,
    service: UploadService = Depends(get_upload_service),
):
    """Issue pre-signed PUT URLs for distinct filenames."""
    signed = await service.issue_signed_upload_urls(body.filenames)
    return {"status": 200, "data": [SignedUrlResponse(**item.to_dict()) for item in signed]}


@router.post("/upload-file-from-url", dependencies=[Depends(require_upload_token)])
async def upload_file_from_url(
    body: UploadFromUrlRequest,
    service: UploadService = Depends(get_upload_service),
):
    """Store a remote file. ``data`` is null when the upload failed.

    Requests arriving here are handled locally, never delegated again.
    """
    outcome = await service.run_upload(
        body.folder, body.file_ext, source_url=body.url, allow_delegation=False
    )
    return {
        "status": 200,
        "data": outcome.url,
        "error": {
            "stage": outcome.failed_stage.value,
            "kind": outcome.error_kind.value,
        }
        if not outcome.ok
        else None,
    }


@router.post("/delete-files-by-url", dependencies=[Depends(require_upload_token)])
async def delete_files_by_url(
    body: DeleteByUrlRequest,
    service: UploadService = Depends(get_upload_service),
):
    """Delete stored objects; reports the outcome of every URL."""
    results = await service.delete_each_by_url(body.urls)
    return {"status": 200, "data": results}
