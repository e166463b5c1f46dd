from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from vibeshare.api.v1.deps import get_categorizer, get_media_store, read_media_upload
from vibeshare.core.config import settings
from vibeshare.db.session import get_db
from vibeshare.models.user import User
from vibeshare.schemas.common import MessageResponse
from vibeshare.schemas.post import FailedDetectionOut, PostOut
from vibeshare.services.auth import get_current_user
from vibeshare.services.categorization import Categorizer
from vibeshare.services.moderation import detect_failure
from vibeshare.services.pending_posts import (
    clear_pending_posts,
    confirm_pending_post,
    reject_pending_post,
    stage_pending_post,
)
from vibeshare.services.posts import create_post, get_community
from vibeshare.services.storage import MediaStore

router = APIRouter(prefix="/posts", tags=["posts"])


@router.post(
    "",
    response_model=PostOut,
    responses={403: {"model": FailedDetectionOut, "description": "Content held for confirmation"}},
)
async def submit_post(
    community_id: int = Form(...),
    content: str = Form(...),
    file: UploadFile | None = File(default=None),
    db: AsyncSession = Depends(get_db),
    media_store: MediaStore = Depends(get_media_store),
    categorizer: Categorizer = Depends(get_categorizer),
    current_user: User = Depends(get_current_user),
) -> PostOut | JSONResponse:
    text = content.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Post content is required")

    upload = await read_media_upload(file)
    community = await get_community(db, community_id)
    failed_detection = await detect_failure(
        categorizer,
        text,
        community_name=community.name,
        timeout_ms=settings.categorization_timeout_ms,
    )

    if not failed_detection:
        return await create_post(
            db,
            media_store,
            user_id=current_user.id,
            community_id=community.id,
            content=text,
            upload=upload,
        )

    staged = await stage_pending_post(
        db,
        media_store,
        user_id=current_user.id,
        community_id=community.id,
        content=text,
        upload=upload,
    )
    return JSONResponse(status_code=403, content=staged.model_dump(by_alias=True))


@router.post("/pending/{confirmation_token}/confirm", response_model=PostOut)
async def confirm_post(
    confirmation_token: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PostOut:
    return await confirm_pending_post(db, token=confirmation_token, user_id=current_user.id)


@router.post("/pending/{confirmation_token}/reject", response_model=MessageResponse)
async def reject_post(
    confirmation_token: str,
    db: AsyncSession = Depends(get_db),
    media_store: MediaStore = Depends(get_media_store),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    await reject_pending_post(db, media_store, token=confirmation_token, user_id=current_user.id)
    return MessageResponse(message="Post rejected")


@router.delete("/pending", response_model=MessageResponse)
async def clear_pending(
    db: AsyncSession = Depends(get_db),
    media_store: MediaStore = Depends(get_media_store),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    await clear_pending_posts(db, media_store, caller=current_user)
    return MessageResponse(message="Pending posts cleared")
