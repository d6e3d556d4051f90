from __future__ import annotations

import mimetypes
from typing import Optional

import httpx

MAX_UPLOAD_BYTES = 100 * 1024 * 1024
MAX_RETRIES = 2
ALLOWED_UPLOAD_CONTENT_TYPES = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/webp",
        "video/mp4",
        "video/quicktime",
        "video/x-msvideo",
        "video/webm",
    }
)
_ALLOWED_SUMMARY = "JPG, PNG, WebP images or MP4, MOV, AVI, WebM videos"


class UploadValidationError(ValueError):
    def __init__(self, message: str, *, reason: str) -> None:
        super().__init__(message)
        self.reason = reason


def resolve_content_type(content_type: Optional[str], filename: Optional[str]) -> str:
    cleaned = (content_type or "").split(";")[0].strip().lower()
    if not cleaned or cleaned == "application/octet-stream":
        guessed = mimetypes.guess_type(filename or "")[0]
        if guessed:
            cleaned = guessed.lower()
    return cleaned


def validate_upload(*, content_type: Optional[str], size_bytes: int, filename: Optional[str] = None) -> str:
    """Reject oversized or unsupported files before anything touches the network."""
    resolved = resolve_content_type(content_type, filename)
    if resolved not in ALLOWED_UPLOAD_CONTENT_TYPES:
        raise UploadValidationError(
            f"Unsupported file type for {filename or 'upload'} ({resolved or 'unknown'}). "
            f"Allowed: {_ALLOWED_SUMMARY}.",
            reason="unsupported_type",
        )
    if size_bytes > MAX_UPLOAD_BYTES:
        size_mb = size_bytes / (1024 * 1024)
        raise UploadValidationError(
            f"File is too large ({size_mb:.1f}MB). Maximum size is {MAX_UPLOAD_BYTES // (1024 * 1024)}MB.",
            reason="too_large",
        )
    if size_bytes <= 0:
        raise UploadValidationError("File is empty.", reason="empty")
    return resolved


def is_recoverable_upload_error(exc: BaseException) -> bool:
    if isinstance(exc, UploadValidationError):
        return False
    if isinstance(exc, (httpx.TransportError, TimeoutError, ConnectionError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
    else:
        status_code = getattr(exc, "status_code", None)
    if status_code is None:
        # Client wrappers re-raise transport failures without a status.
        cause = exc.__cause__
        return cause is not None and is_recoverable_upload_error(cause)
    return status_code >= 500 or status_code == 429


def can_retry_upload(exc: BaseException, *, attempts: int) -> bool:
    """`attempts` counts retries already made, not the first try."""
    return is_recoverable_upload_error(exc) and attempts < MAX_RETRIES
