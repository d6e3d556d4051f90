import httpx
import pytest

from app.client.api import ListingApiRequestError
from app.services import uploads
from app.services.uploads import (
    UploadValidationError,
    can_retry_upload,
    is_recoverable_upload_error,
    resolve_content_type,
    validate_upload,
)


@pytest.mark.parametrize(
    ("content_type", "size", "reason"),
    [
        ("application/pdf", 10, "unsupported_type"),
        ("image/gif", 10, "unsupported_type"),
        ("image/png", 0, "empty"),
    ],
)
def test_validate_upload_rejects(content_type, size, reason):
    with pytest.raises(UploadValidationError) as excinfo:
        validate_upload(content_type=content_type, size_bytes=size, filename="file")
    assert excinfo.value.reason == reason


def test_size_limit_is_read_at_call_time(monkeypatch):
    assert validate_upload(content_type="video/mp4", size_bytes=50 * 1024 * 1024) == "video/mp4"
    monkeypatch.setattr(uploads, "MAX_UPLOAD_BYTES", 1024)
    with pytest.raises(UploadValidationError, match="too large"):
        validate_upload(content_type="video/mp4", size_bytes=2048)


def test_content_type_guessed_from_filename():
    assert resolve_content_type("application/octet-stream", "clip.mp4") == "video/mp4"
    assert resolve_content_type("IMAGE/PNG; charset=binary", None) == "image/png"
    assert validate_upload(content_type=None, size_bytes=10, filename="photo.jpg") == "image/jpeg"


def test_recoverable_errors():
    request = httpx.Request("POST", "https://api.test/products/1/images")
    assert is_recoverable_upload_error(httpx.ConnectError("refused", request=request))
    assert is_recoverable_upload_error(ListingApiRequestError("busy", status_code=429))
    assert is_recoverable_upload_error(ListingApiRequestError("down", status_code=503))
    assert not is_recoverable_upload_error(ListingApiRequestError("bad", status_code=400))
    assert not is_recoverable_upload_error(UploadValidationError("big", reason="too_large"))


def test_recoverable_cause_chain():
    wrapped = ListingApiRequestError("Request failed")
    wrapped.__cause__ = httpx.ReadTimeout("timed out")
    assert is_recoverable_upload_error(wrapped)

    bare = ListingApiRequestError("Request failed")
    assert not is_recoverable_upload_error(bare)


def test_retry_budget():
    error = ListingApiRequestError("down", status_code=502)
    assert can_retry_upload(error, attempts=0)
    assert can_retry_upload(error, attempts=1)
    assert not can_retry_upload(error, attempts=2)
