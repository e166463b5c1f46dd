from __future__ import annotations

import pytest

from vibeshare.core.errors import TransportError
from vibeshare.services.moderation import detect_failure


def _categorizer(categories: dict[str, float]):
    async def categorize(content: str, timeout_ms: int) -> dict[str, float]:
        return dict(categories)

    return categorize


@pytest.mark.asyncio
async def test_off_topic_content_fails_detection() -> None:
    failed = await detect_failure(
        _categorizer({"Travel": 0.8, "Food and Cooking": 0.3}),
        "best tapas in Madrid",
        community_name="Programming",
        timeout_ms=1000,
    )
    assert failed is True


@pytest.mark.asyncio
async def test_matching_category_passes_case_insensitively() -> None:
    failed = await detect_failure(
        _categorizer({"programming": 0.7, "Education": 0.4}),
        "teaching kids python",
        community_name="Programming",
        timeout_ms=1000,
    )
    assert failed is False


@pytest.mark.asyncio
async def test_unscored_content_passes() -> None:
    failed = await detect_failure(_categorizer({}), "hm", community_name="Programming", timeout_ms=10)
    assert failed is False


@pytest.mark.asyncio
async def test_backend_failure_propagates() -> None:
    async def broken(content: str, timeout_ms: int) -> dict[str, float]:
        raise TransportError(502, "Bad Gateway")

    with pytest.raises(TransportError):
        await detect_failure(broken, "hello", community_name="Programming", timeout_ms=1000)
