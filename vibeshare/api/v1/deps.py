from __future__ import annotations

from fastapi import HTTPException, Request, UploadFile

from vibeshare.core.config import settings
from vibeshare.services.categorization import Categorizer
from vibeshare.services.storage import MediaStore, MediaUpload

_ACCEPTED_MEDIA_PREFIXES = ("image/", "video/")


def get_media_store(request: Request) -> MediaStore:
    return request.app.state.media_store


def get_categorizer(request: Request) -> Categorizer:
    return request.app.state.categorizer


async def read_media_upload(file: UploadFile | None) -> MediaUpload | None:
    if file is None or not file.filename:
        return None

    media_type = str(file.content_type or "application/octet-stream").strip().lower()
    if not media_type.startswith(_ACCEPTED_MEDIA_PREFIXES):
        raise HTTPException(status_code=400, detail="Only image and video uploads are supported")

    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail=f"File too large (max {settings.max_upload_size_mb} MB)")

    return MediaUpload(filename=file.filename, content_type=media_type, data=data)
