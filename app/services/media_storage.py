from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Optional

import boto3
from botocore.config import Config

from app.config import settings

logger = logging.getLogger(__name__)

IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"

_EXTENSION_BY_CONTENT_TYPE = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "video/mp4": "mp4",
    "video/quicktime": "mov",
    "video/x-msvideo": "avi",
    "video/webm": "webm",
}


class MediaStorageConfigurationError(RuntimeError):
    pass


@dataclass
class StoredObject:
    key: str
    url: str
    content_type: Optional[str]
    size_bytes: int


class MediaStorage:
    """
    Thin wrapper around S3-compatible storage for product uploads and generated images.
    """

    def __init__(self) -> None:
        if not settings.MEDIA_STORAGE_BUCKET:
            raise MediaStorageConfigurationError("MEDIA_STORAGE_BUCKET is required")
        if not settings.MEDIA_STORAGE_ENDPOINT:
            raise MediaStorageConfigurationError("MEDIA_STORAGE_ENDPOINT is required")
        if not settings.MEDIA_STORAGE_ACCESS_KEY or not settings.MEDIA_STORAGE_SECRET_KEY:
            raise MediaStorageConfigurationError(
                "MEDIA_STORAGE_ACCESS_KEY and MEDIA_STORAGE_SECRET_KEY are required"
            )

        addressing_style = "path" if settings.MEDIA_STORAGE_FORCE_PATH_STYLE else "auto"
        self.bucket = settings.MEDIA_STORAGE_BUCKET
        self.prefix = (settings.MEDIA_STORAGE_PREFIX or "").strip("/")
        self.presign_ttl = int(settings.MEDIA_STORAGE_PRESIGN_TTL_SECONDS or 3600)
        self.public_base_url = (settings.MEDIA_STORAGE_PUBLIC_BASE_URL or "").rstrip("/") or None

        session = boto3.session.Session()
        self.client = session.client(
            "s3",
            endpoint_url=settings.MEDIA_STORAGE_ENDPOINT,
            aws_access_key_id=settings.MEDIA_STORAGE_ACCESS_KEY,
            aws_secret_access_key=settings.MEDIA_STORAGE_SECRET_KEY,
            region_name=settings.MEDIA_STORAGE_REGION or "us-east-1",
            use_ssl=bool(settings.MEDIA_STORAGE_USE_SSL),
            config=Config(
                s3={"addressing_style": addressing_style},
                signature_version="s3v4",
            ),
        )

    def build_key(self, *, sha256: str, ext: str, kind: str) -> str:
        """
        Content-addressed keys: <prefix>/<kind>/<sha[:2]>/<sha>.<ext>
        """
        ext_clean = ext.lstrip(".") if ext else "bin"
        parts = [p for p in [self.prefix, kind] if p]
        parts.append(sha256[:2])
        return "/".join(parts + [f"{sha256}.{ext_clean}"])

    def upload_bytes(
        self,
        *,
        key: str,
        data: bytes,
        content_type: Optional[str],
        cache_control: Optional[str] = None,
    ) -> None:
        kwargs = {"Bucket": self.bucket, "Key": key, "Body": data}
        if content_type:
            kwargs["ContentType"] = content_type
        if cache_control:
            kwargs["CacheControl"] = cache_control
        self.client.put_object(**kwargs)

    def presign_get(self, *, key: str, expires_in: Optional[int] = None) -> str:
        ttl = int(expires_in or self.presign_ttl)
        return self.client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=ttl,
        )

    def resolve_url(self, *, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return self.presign_get(key=key)

    def download_bytes(self, *, key: str) -> tuple[bytes, Optional[str]]:
        obj = self.client.get_object(Bucket=self.bucket, Key=key)
        body = obj.get("Body")
        data = body.read() if body else b""
        return data, obj.get("ContentType")

    def store(self, *, data: bytes, content_type: Optional[str], kind: str) -> StoredObject:
        sha = hashlib.sha256(data).hexdigest()
        ext = _EXTENSION_BY_CONTENT_TYPE.get((content_type or "").lower(), "bin")
        key = self.build_key(sha256=sha, ext=ext, kind=kind)
        self.upload_bytes(key=key, data=data, content_type=content_type, cache_control=IMMUTABLE_CACHE_CONTROL)
        logger.info("Stored media object", extra={"key": key, "kind": kind, "size_bytes": len(data)})
        return StoredObject(key=key, url=self.resolve_url(key=key), content_type=content_type, size_bytes=len(data))


def get_media_storage() -> MediaStorage:
    return MediaStorage()
