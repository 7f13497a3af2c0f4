from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile

from app.models import User
from app.schemas import UploadResponse
from app.security import get_current_user
from app.services.storage import (
    StorageClient,
    build_object_path,
    get_storage_client,
    resolve_bucket,
    validate_image,
)

router = APIRouter(tags=["uploads"])


@router.post("/api/v1/upload/{kind}", response_model=UploadResponse, status_code=201)
async def upload(
    kind: str,
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    storage: StorageClient = Depends(get_storage_client),
) -> UploadResponse:
    bucket = resolve_bucket(kind)
    content = await file.read()
    extension = validate_image(file.content_type, len(content))
    path = build_object_path(user.org_id, user.id, extension)
    stored = storage.upload(bucket, path, content, file.content_type or "application/octet-stream")
    return UploadResponse(url=stored.url, path=stored.path, bucket=stored.bucket)
