from __future__ import annotations

from arq.connections import RedisSettings
from arq.cron import cron

from vibeshare.core.config import settings
from vibeshare.core.logging import configure_logging
from vibeshare.db.session import SessionLocal
from vibeshare.services.pending_posts import sweep_pending_posts
from vibeshare.services.storage import S3MediaStore


async def startup(ctx) -> None:
    configure_logging()
    ctx["media_store"] = S3MediaStore.from_settings(settings)


async def sweep_pending_posts_job(ctx) -> dict:
    async with SessionLocal() as db:
        swept = await sweep_pending_posts(db, ctx["media_store"])
    return {"pending_posts_swept": swept}


class WorkerSettings:
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    on_startup = startup
    functions = [sweep_pending_posts_job]
    cron_jobs = [cron(sweep_pending_posts_job, minute=set(range(0, 60, 10)))]
