from __future__ import annotations

import logging

from vibeshare.services.categorization import Categorizer

logger = logging.getLogger(__name__)


def _normalize_label(label: str) -> str:
    return " ".join(str(label or "").split()).lower()


def categories_match_community(categories: dict[str, float], community_name: str) -> bool:
    wanted = _normalize_label(community_name)
    return any(_normalize_label(label) == wanted for label in categories)


async def detect_failure(
    categorizer: Categorizer,
    content: str,
    *,
    community_name: str,
    timeout_ms: int,
) -> bool:
    """True when the content was categorized but none of its categories is the community's topic.

    Content the backend could not score (nothing above threshold, or the call
    was cancelled by the timeout) is let through.
    """
    categories = await categorizer(content, timeout_ms)
    if not categories:
        return False
    failed = not categories_match_community(categories, community_name)
    if failed:
        logger.info(
            "Content failed detection for community=%r (categories=%s)",
            community_name,
            sorted(categories),
        )
    return failed
