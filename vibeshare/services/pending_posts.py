"""Pending-post confirmation workflow.

A submission that fails content detection is staged as a ``PendingPost``
and its author gets a single-use confirmation token. Presenting the token
again either publishes the content as a ``Post`` (confirm) or throws it
away together with its media (reject). Records nobody resolves are swept
once they are older than the retention window.

Confirm and reject claim the staged record with one conditional
``DELETE ... RETURNING`` keyed on token, owner and status, so two racing
requests cannot both win. Confirm inserts the post in the same transaction
as the claim: if the insert fails the claim is rolled back and the staged
content survives.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta

from sqlalchemy import and_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from vibeshare.core.config import settings
from vibeshare.core.errors import AuthorizationError, NotFoundError
from vibeshare.models.common import utcnow
from vibeshare.models.social import PENDING_STATUS, PendingPost, Post
from vibeshare.models.user import ROLE_MODERATOR, User
from vibeshare.schemas.post import FailedDetectionOut, PostOut
from vibeshare.services.posts import post_out, require_membership
from vibeshare.services.storage import MediaStore, MediaUpload, delete_media_quietly, extract_deletable_id

logger = logging.getLogger(__name__)


def generate_confirmation_token(user_id: int) -> str:
    nonce = secrets.token_urlsafe(24)
    tag = hmac.new(settings.jwt_secret.encode("utf-8"), f"{user_id}:{nonce}".encode("utf-8"), hashlib.sha256)
    return f"{nonce}.{tag.hexdigest()[:24]}"


def _claim(token: str, user_id: int):
    return (
        delete(PendingPost)
        .where(
            and_(
                PendingPost.confirmation_token == token,
                PendingPost.user_id == user_id,
                PendingPost.status == PENDING_STATUS,
            )
        )
        .returning(
            PendingPost.id,
            PendingPost.user_id,
            PendingPost.community_id,
            PendingPost.content,
            PendingPost.file_url,
            PendingPost.file_type,
        )
        .execution_options(synchronize_session=False)
    )


async def stage_pending_post(
    db: AsyncSession,
    media_store: MediaStore,
    *,
    user_id: int,
    community_id: int,
    content: str,
    upload: MediaUpload | None = None,
) -> FailedDetectionOut:
    await require_membership(db, community_id=community_id, user_id=user_id)

    media = await media_store.store(upload) if upload is not None else None
    token = generate_confirmation_token(user_id)
    db.add(
        PendingPost(
            user_id=user_id,
            community_id=community_id,
            content=content,
            file_url=media.url if media is not None else None,
            file_type=media.kind if media is not None else None,
            confirmation_token=token,
            status=PENDING_STATUS,
        )
    )
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        if media is not None:
            await delete_media_quietly(media_store, media.deletable_id)
        raise

    logger.info("Staged pending post for user_id=%s community_id=%s", user_id, community_id)
    return FailedDetectionOut(confirmation_token=token)


async def confirm_pending_post(db: AsyncSession, *, token: str, user_id: int) -> PostOut:
    claimed = (await db.execute(_claim(token, user_id))).one_or_none()
    if claimed is None:
        await db.rollback()
        raise NotFoundError("Post not found")

    post = Post(
        user_id=claimed.user_id,
        community_id=claimed.community_id,
        content=claimed.content,
        file_url=claimed.file_url,
        file_type=claimed.file_type,
    )
    db.add(post)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(post)

    logger.info("Confirmed pending post id=%s as post id=%s", claimed.id, post.id)
    return await post_out(db, post)


async def reject_pending_post(db: AsyncSession, media_store: MediaStore, *, token: str, user_id: int) -> None:
    claimed = (await db.execute(_claim(token, user_id))).one_or_none()
    if claimed is None:
        await db.rollback()
        raise NotFoundError("Post not found")

    await delete_media_quietly(media_store, extract_deletable_id(claimed.file_url))
    await db.commit()
    logger.info("Rejected pending post id=%s", claimed.id)


async def sweep_pending_posts(
    db: AsyncSession,
    media_store: MediaStore,
    *,
    now: datetime | None = None,
    retention: timedelta | None = None,
) -> int:
    """Delete every pending post older than the retention window, whoever owns it."""
    if retention is None:
        retention = timedelta(minutes=max(int(settings.pending_post_retention_minutes), 0))
    cutoff = (now or utcnow()) - retention

    rows = (
        await db.execute(
            delete(PendingPost)
            .where(PendingPost.created_at <= cutoff)
            .returning(PendingPost.file_url)
            .execution_options(synchronize_session=False)
        )
    ).all()
    await db.commit()

    for row in rows:
        await delete_media_quietly(media_store, extract_deletable_id(row.file_url))

    if rows:
        logger.info("Swept %s pending post(s) created before %s", len(rows), cutoff.isoformat())
    return len(rows)


async def clear_pending_posts(db: AsyncSession, media_store: MediaStore, *, caller: User) -> int:
    if caller.role != ROLE_MODERATOR:
        raise AuthorizationError("Unauthorized")
    return await sweep_pending_posts(db, media_store)
