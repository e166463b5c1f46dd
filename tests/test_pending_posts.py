from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import event, func, select

from vibeshare.core.errors import AuthorizationError, NotFoundError, UploadError
from vibeshare.models.common import utcnow
from vibeshare.models.social import PendingPost, Post
from vibeshare.models.user import User
from vibeshare.services.pending_posts import (
    clear_pending_posts,
    confirm_pending_post,
    generate_confirmation_token,
    reject_pending_post,
    stage_pending_post,
    sweep_pending_posts,
)
from vibeshare.schemas.post import PostOut
from vibeshare.services.posts import create_post, delete_post


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


async def _stage(db, media_store, seed, upload=None):
    return await stage_pending_post(
        db,
        media_store,
        user_id=seed.member_id,
        community_id=seed.community_id,
        content="weekend hiking photos",
        upload=upload,
    )


@pytest.mark.asyncio
async def test_stage_persists_pending_record_with_media(db, media_store, seed, png_upload) -> None:
    staged = await _stage(db, media_store, seed, png_upload)

    assert staged.type == "failedDetection"
    assert staged.confirmation_token
    assert staged.model_dump(by_alias=True) == {
        "type": "failedDetection",
        "confirmationToken": staged.confirmation_token,
    }

    row = (await db.execute(select(PendingPost))).scalar_one()
    (ref,) = media_store.objects.values()
    assert row.status == "pending"
    assert row.user_id == seed.member_id
    assert row.confirmation_token == staged.confirmation_token
    assert row.file_url == ref.url
    assert row.file_type == "image"
    assert await _count(db, Post) == 0


@pytest.mark.asyncio
async def test_stage_by_non_member_leaves_no_record_and_no_media(db, media_store, seed, png_upload) -> None:
    with pytest.raises(AuthorizationError):
        await stage_pending_post(
            db,
            media_store,
            user_id=seed.outsider_id,
            community_id=seed.community_id,
            content="not my community",
            upload=png_upload,
        )

    assert await _count(db, PendingPost) == 0
    assert media_store.objects == {}


@pytest.mark.asyncio
async def test_failed_upload_creates_no_record(db, media_store, seed, png_upload) -> None:
    media_store.fail_uploads = True

    with pytest.raises(UploadError):
        await _stage(db, media_store, seed, png_upload)

    assert await _count(db, PendingPost) == 0


@pytest.mark.asyncio
async def test_confirm_promotes_then_token_is_spent(db, media_store, seed, png_upload) -> None:
    staged = await _stage(db, media_store, seed, png_upload)
    (ref,) = media_store.objects.values()

    post = await confirm_pending_post(db, token=staged.confirmation_token, user_id=seed.member_id)

    assert post.id
    assert post.user.id == seed.member_id
    assert post.user.name == "Alice"
    assert post.community.id == seed.community_id
    assert post.community.name == "Programming"
    assert post.content == "weekend hiking photos"
    assert post.file_url == ref.url
    assert post.file_type == "image"
    assert post.created_at.endswith("ago")
    assert await _count(db, PendingPost) == 0

    with pytest.raises(NotFoundError):
        await confirm_pending_post(db, token=staged.confirmation_token, user_id=seed.member_id)
    assert await _count(db, Post) == 1
    assert media_store.deleted == []


@pytest.mark.asyncio
async def test_confirm_with_foreign_user_is_not_found(db, media_store, seed) -> None:
    staged = await _stage(db, media_store, seed)

    with pytest.raises(NotFoundError):
        await confirm_pending_post(db, token=staged.confirmation_token, user_id=seed.outsider_id)
    with pytest.raises(NotFoundError):
        await confirm_pending_post(db, token="not-a-token", user_id=seed.member_id)

    assert await _count(db, PendingPost) == 1
    assert await _count(db, Post) == 0


@pytest.mark.asyncio
async def test_confirm_keeps_staged_record_when_post_insert_fails(db, media_store, seed) -> None:
    staged = await _stage(db, media_store, seed)

    def _fail_insert(mapper, connection, target) -> None:
        raise RuntimeError("insert failed")

    event.listen(Post, "before_insert", _fail_insert)
    try:
        with pytest.raises(RuntimeError):
            await confirm_pending_post(db, token=staged.confirmation_token, user_id=seed.member_id)
    finally:
        event.remove(Post, "before_insert", _fail_insert)

    assert await _count(db, PendingPost) == 1
    post = await confirm_pending_post(db, token=staged.confirmation_token, user_id=seed.member_id)
    assert post.id


@pytest.mark.asyncio
async def test_reject_deletes_media_once_and_record(db, media_store, seed, png_upload) -> None:
    staged = await _stage(db, media_store, seed, png_upload)
    (ref,) = media_store.objects.values()

    await reject_pending_post(db, media_store, token=staged.confirmation_token, user_id=seed.member_id)

    assert media_store.deleted == [ref.deletable_id]
    assert media_store.objects == {}
    assert await _count(db, PendingPost) == 0
    assert await _count(db, Post) == 0

    with pytest.raises(NotFoundError):
        await reject_pending_post(db, media_store, token=staged.confirmation_token, user_id=seed.member_id)
    with pytest.raises(NotFoundError):
        await confirm_pending_post(db, token=staged.confirmation_token, user_id=seed.member_id)
    assert media_store.deleted == [ref.deletable_id]


@pytest.mark.asyncio
async def test_reject_survives_media_delete_failure(db, media_store, seed, png_upload) -> None:
    staged = await _stage(db, media_store, seed, png_upload)
    media_store.fail_deletes = True

    await reject_pending_post(db, media_store, token=staged.confirmation_token, user_id=seed.member_id)

    assert len(media_store.deleted) == 1
    assert await _count(db, PendingPost) == 0


@pytest.mark.asyncio
async def test_reject_by_other_user_is_not_found(db, media_store, seed, png_upload) -> None:
    staged = await _stage(db, media_store, seed, png_upload)

    with pytest.raises(NotFoundError):
        await reject_pending_post(db, media_store, token=staged.confirmation_token, user_id=seed.moderator_id)

    assert media_store.deleted == []
    assert await _count(db, PendingPost) == 1


@pytest.mark.asyncio
async def test_sweep_deletes_only_expired_records_of_any_owner(db, media_store, seed) -> None:
    now = utcnow()
    old_ref_id = "0" * 32
    db.add_all(
        [
            PendingPost(
                user_id=seed.member_id,
                community_id=seed.community_id,
                content="old with media",
                file_url=f"https://media.test/community_posts/{old_ref_id}.png",
                file_type="image",
                confirmation_token=generate_confirmation_token(seed.member_id),
                created_at=now - timedelta(hours=2),
            ),
            PendingPost(
                user_id=seed.outsider_id,
                community_id=seed.community_id,
                content="old, other owner",
                confirmation_token=generate_confirmation_token(seed.outsider_id),
                created_at=now - timedelta(minutes=61),
            ),
            PendingPost(
                user_id=seed.member_id,
                community_id=seed.community_id,
                content="fresh",
                confirmation_token=generate_confirmation_token(seed.member_id),
                created_at=now - timedelta(minutes=10),
            ),
        ]
    )
    await db.commit()

    swept = await sweep_pending_posts(db, media_store, now=now)

    assert swept == 2
    remaining = (await db.execute(select(PendingPost.content))).scalars().all()
    assert remaining == ["fresh"]
    assert media_store.deleted == [old_ref_id]


@pytest.mark.asyncio
async def test_clear_pending_posts_requires_moderator(db, media_store, seed) -> None:
    await _stage(db, media_store, seed)
    member = await db.get(User, seed.member_id)
    moderator = await db.get(User, seed.moderator_id)

    with pytest.raises(AuthorizationError):
        await clear_pending_posts(db, media_store, caller=member)

    assert await clear_pending_posts(db, media_store, caller=moderator) == 0
    assert await _count(db, PendingPost) == 1


def test_confirmation_tokens_are_unique() -> None:
    tokens = {generate_confirmation_token(1) for _ in range(50)}
    assert len(tokens) == 50


@pytest.mark.asyncio
async def test_create_post_requires_membership(db, media_store, seed, png_upload) -> None:
    with pytest.raises(AuthorizationError):
        await create_post(
            db,
            media_store,
            user_id=seed.outsider_id,
            community_id=seed.community_id,
            content="hello",
            upload=png_upload,
        )
    assert media_store.objects == {}
    assert await _count(db, Post) == 0


@pytest.mark.asyncio
async def test_delete_post_cascades_media(db, media_store, seed, png_upload) -> None:
    post = await create_post(
        db,
        media_store,
        user_id=seed.member_id,
        community_id=seed.community_id,
        content="release notes",
        upload=png_upload,
    )
    (ref,) = media_store.objects.values()

    await delete_post(db, media_store, post_id=post.id)

    assert media_store.deleted == [ref.deletable_id]
    assert await _count(db, Post) == 0
    with pytest.raises(NotFoundError):
        await delete_post(db, media_store, post_id=post.id)


@pytest.mark.asyncio
async def test_racing_confirm_and_reject_have_a_single_winner(
    file_session_factory, file_seed, media_store, png_upload
) -> None:
    async with file_session_factory() as db:
        staged = await _stage(db, media_store, file_seed, png_upload)
    token = staged.confirmation_token
    user_id = file_seed.member_id

    async def confirm() -> PostOut:
        async with file_session_factory() as db:
            return await confirm_pending_post(db, token=token, user_id=user_id)

    async def reject() -> None:
        async with file_session_factory() as db:
            await reject_pending_post(db, media_store, token=token, user_id=user_id)

    outcomes = await asyncio.gather(confirm(), reject(), return_exceptions=True)

    losers = [outcome for outcome in outcomes if isinstance(outcome, NotFoundError)]
    assert len(losers) == 1
    assert not any(isinstance(outcome, Exception) and not isinstance(outcome, NotFoundError) for outcome in outcomes)

    async with file_session_factory() as db:
        posts = await _count(db, Post)
        assert await _count(db, PendingPost) == 0
    if isinstance(outcomes[0], PostOut):
        assert posts == 1
        assert media_store.deleted == []
    else:
        assert posts == 0
        assert len(media_store.deleted) == 1
