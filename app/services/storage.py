from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import uuid4

import httpx

from app.errors import ApiError, ValidationError
from app.settings import get_settings, get_upload_buckets

logger = logging.getLogger("app.storage")

ALLOWED_IMAGE_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/heic": "heic",
}


@dataclass(frozen=True, slots=True)
class StoredObject:
    bucket: str
    path: str
    url: str


class StorageError(ApiError):
    kind = "upstream_error"
    default_status_code = 502
    default_code = "STORAGE_ERROR"

    def __init__(self, message: str = "File upload failed."):
        super().__init__(message=message)


def resolve_bucket(kind: str) -> str:
    buckets = get_upload_buckets()
    bucket = buckets.get(kind)
    if bucket is None:
        raise ValidationError(
            "INVALID_UPLOAD_KIND",
            f"Unknown upload type: {kind}",
            details={"allowed": sorted(buckets)},
        )
    return bucket


def validate_image(content_type: str | None, size: int) -> str:
    """Return the file extension for an accepted image upload."""
    normalized = (content_type or "").split(";", 1)[0].strip().lower()
    extension = ALLOWED_IMAGE_TYPES.get(normalized)
    if extension is None:
        raise ValidationError(
            "UNSUPPORTED_FILE_TYPE",
            "Only image files are allowed (JPEG, PNG, WEBP, HEIC).",
        )
    max_bytes = get_settings().upload_max_bytes
    if size == 0:
        raise ValidationError("EMPTY_FILE", "No file uploaded.")
    if size > max_bytes:
        raise ValidationError(
            "FILE_TOO_LARGE",
            f"File exceeds the {max_bytes // (1024 * 1024)} MB limit.",
            details={"max_bytes": max_bytes},
        )
    return extension


def build_object_path(org_id: str, user_id: str, extension: str) -> str:
    return f"{org_id}/{user_id}/{uuid4()}.{extension}"


class StorageClient:
    def __init__(self, base_url: str, *, service_key: str, timeout: float = 30.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.timeout = timeout

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/object/public/{bucket}/{path}"

    def upload(self, bucket: str, path: str, content: bytes, content_type: str) -> StoredObject:
        url = f"{self.base_url}/object/{bucket}/{path}"
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": content_type,
            "x-upsert": "false",
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(url, headers=headers, content=content)
        except httpx.RequestError as exc:
            logger.exception("storage_upload_failed", extra={"bucket": bucket, "path": path})
            raise StorageError() from exc

        if response.is_error:
            logger.error(
                "storage_upload_rejected",
                extra={"bucket": bucket, "path": path, "status_code": response.status_code},
            )
            raise StorageError()
        return StoredObject(bucket=bucket, path=path, url=self.public_url(bucket, path))


def get_storage_client() -> StorageClient:
    settings = get_settings()
    return StorageClient(
        settings.storage_base_url,
        service_key=settings.storage_service_key,
        timeout=settings.storage_timeout_seconds,
    )
