from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from vibeshare.models.common import utcnow
from vibeshare.models.social import PendingPost
from vibeshare.services.pending_posts import generate_confirmation_token
from vibeshare.workers import arq_worker


def test_sweep_runs_every_ten_minutes() -> None:
    (job,) = arq_worker.WorkerSettings.cron_jobs
    assert job.minute == {0, 10, 20, 30, 40, 50}
    assert arq_worker.sweep_pending_posts_job in arq_worker.WorkerSettings.functions


@pytest.mark.asyncio
async def test_sweep_job_clears_expired_records(monkeypatch, session_factory, db, media_store, seed) -> None:
    db.add(
        PendingPost(
            user_id=seed.member_id,
            community_id=seed.community_id,
            content="forgotten",
            confirmation_token=generate_confirmation_token(seed.member_id),
            created_at=utcnow() - timedelta(hours=3),
        )
    )
    await db.commit()
    monkeypatch.setattr(arq_worker, "SessionLocal", session_factory)

    result = await arq_worker.sweep_pending_posts_job({"media_store": media_store})

    assert result == {"pending_posts_swept": 1}
    count = (await db.execute(select(func.count()).select_from(PendingPost))).scalar_one()
    assert count == 0
