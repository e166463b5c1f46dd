from __future__ import annotations

import logging

from sqlalchemy import and_, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from vibeshare.core.errors import AuthorizationError, NotFoundError
from vibeshare.models.community import Community, CommunityMember
from vibeshare.models.social import Comment, Post, PostLike
from vibeshare.models.user import User
from vibeshare.schemas.post import CommunityRef, PostOut, UserRef
from vibeshare.services.storage import MediaStore, MediaUpload, delete_media_quietly, extract_deletable_id
from vibeshare.services.text import as_iso, from_now

logger = logging.getLogger(__name__)

UNAUTHORIZED_COMMUNITY = "Unauthorized to post in this community"


async def is_community_member(db: AsyncSession, *, community_id: int, user_id: int) -> bool:
    row = (
        await db.execute(
            select(CommunityMember.id).where(
                and_(CommunityMember.community_id == community_id, CommunityMember.user_id == user_id)
            )
        )
    ).scalar_one_or_none()
    return row is not None


async def require_membership(db: AsyncSession, *, community_id: int, user_id: int) -> None:
    if not await is_community_member(db, community_id=community_id, user_id=user_id):
        raise AuthorizationError(UNAUTHORIZED_COMMUNITY)


async def get_community(db: AsyncSession, community_id: int) -> Community:
    community = await db.get(Community, community_id)
    if community is None:
        # Same answer as a non-member so community ids cannot be probed.
        raise AuthorizationError(UNAUTHORIZED_COMMUNITY)
    return community


async def post_out(db: AsyncSession, post: Post) -> PostOut:
    author = await db.get(User, post.user_id)
    community = await db.get(Community, post.community_id)
    likes = (await db.execute(select(PostLike.user_id).where(PostLike.post_id == post.id))).scalars().all()
    comments = (
        await db.execute(select(Comment.id).where(Comment.post_id == post.id).order_by(Comment.id.desc()))
    ).scalars().all()

    return PostOut(
        id=post.id,
        user=UserRef(
            id=post.user_id,
            name=author.name if author is not None else "",
            avatar=author.avatar_url if author is not None else None,
        ),
        community=CommunityRef(id=post.community_id, name=community.name if community is not None else ""),
        content=post.content,
        file_url=post.file_url,
        file_type=post.file_type,
        likes=[int(x) for x in likes],
        comments=[int(x) for x in comments],
        created_at=from_now(post.created_at),
        date_time=as_iso(post.created_at),
    )


async def create_post(
    db: AsyncSession,
    media_store: MediaStore,
    *,
    user_id: int,
    community_id: int,
    content: str,
    upload: MediaUpload | None = None,
) -> PostOut:
    await require_membership(db, community_id=community_id, user_id=user_id)

    media = await media_store.store(upload) if upload is not None else None
    post = Post(
        user_id=user_id,
        community_id=community_id,
        content=content,
        file_url=media.url if media is not None else None,
        file_type=media.kind if media is not None else None,
    )
    db.add(post)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        if media is not None:
            await delete_media_quietly(media_store, media.deletable_id)
        raise
    await db.refresh(post)
    return await post_out(db, post)


async def delete_post(db: AsyncSession, media_store: MediaStore, *, post_id: int) -> None:
    """Remove a post; likes, comments and saves go with it at the database."""
    row = (
        await db.execute(
            delete(Post)
            .where(Post.id == post_id)
            .returning(Post.id, Post.file_url)
            .execution_options(synchronize_session=False)
        )
    ).one_or_none()
    if row is None:
        await db.rollback()
        raise NotFoundError("Post not found")
    await db.commit()
    await delete_media_quietly(media_store, extract_deletable_id(row.file_url))
