from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

import vibeshare.models  # noqa: F401
from vibeshare.core.errors import MediaStoreError, UploadError
from vibeshare.db.base import Base
from vibeshare.db.session import create_engine_for, create_session_factory
from vibeshare.models.community import Community, CommunityMember
from vibeshare.models.user import ROLE_MODERATOR, User
from vibeshare.services.storage import MediaReference, MediaUpload


class InMemoryMediaStore:
    def __init__(self) -> None:
        self.objects: dict[str, MediaReference] = {}
        self.deleted: list[str] = []
        self.fail_uploads = False
        self.fail_deletes = False

    async def store(self, upload: MediaUpload) -> MediaReference:
        if self.fail_uploads:
            raise UploadError("media store unreachable")
        deletable_id = uuid.uuid4().hex
        ext = upload.content_type.split("/", 1)[-1]
        ref = MediaReference(
            url=f"https://media.test/community_posts/{deletable_id}.{ext}",
            deletable_id=deletable_id,
            kind=upload.kind,
        )
        self.objects[deletable_id] = ref
        return ref

    async def delete(self, deletable_id: str) -> None:
        self.deleted.append(deletable_id)
        if self.fail_deletes:
            raise MediaStoreError("media store unreachable")
        self.objects.pop(deletable_id, None)


@dataclass(frozen=True)
class Seed:
    # Plain ids: a service-level rollback expires every loaded instance.
    member_id: int
    outsider_id: int
    moderator_id: int
    community_id: int


async def _create_schema(url: str) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    engine = create_engine_for(url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, create_session_factory(engine)


async def _insert_seed(session: AsyncSession) -> Seed:
    member = User(name="Alice", email="alice@example.com")
    outsider = User(name="Bob", email="bob@example.com")
    moderator = User(name="Mona", email="mona@example.com", role=ROLE_MODERATOR)
    community = Community(name="Programming", description="Code and tooling")
    session.add_all([member, outsider, moderator, community])
    await session.flush()
    session.add(CommunityMember(community_id=community.id, user_id=member.id))
    seed = Seed(
        member_id=member.id,
        outsider_id=outsider.id,
        moderator_id=moderator.id,
        community_id=community.id,
    )
    await session.commit()
    return seed


@pytest_asyncio.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine, factory = await _create_schema("sqlite+aiosqlite://")
    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def file_session_factory(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Separate connections per session, so concurrent sessions really contend."""
    engine, factory = await _create_schema(f"sqlite+aiosqlite:///{tmp_path / 'vibeshare.db'}")
    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def media_store() -> InMemoryMediaStore:
    return InMemoryMediaStore()


@pytest.fixture
def png_upload() -> MediaUpload:
    return MediaUpload(filename="cat.png", content_type="image/png", data=b"\x89PNG\r\n\x1a\nfake")


@pytest_asyncio.fixture
async def seed(db: AsyncSession) -> Seed:
    return await _insert_seed(db)


@pytest_asyncio.fixture
async def file_seed(file_session_factory) -> Seed:
    async with file_session_factory() as session:
        return await _insert_seed(session)
