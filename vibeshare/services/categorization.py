"""Pluggable text categorization.

Each backend scores free text against category labels and returns a plain
``{label: score}`` mapping. The backend is picked once from configuration
by :func:`create_categorizer`; callers only ever see the resulting
``Categorizer`` callable.

A call that runs past its ``timeout_ms`` is cancelled and yields whatever was
collected so far (in practice an empty mapping). Only real transport or
backend failures raise.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial
from typing import Any

import httpx

from vibeshare.core.config import Settings, settings as default_settings
from vibeshare.core.errors import ConfigurationError, InvalidPreferenceError, TransportError

logger = logging.getLogger(__name__)

Categories = dict[str, float]
Categorizer = Callable[[str, int], Awaitable[Categories]]

TEXTRAZOR = "TextRazor"
INTERFACE_API = "InterfaceAPI"
SERVICE_PREFERENCES = (TEXTRAZOR, INTERFACE_API)

SCORE_THRESHOLD = 0.2
CANDIDATE_LABELS = (
    "Programming",
    "Health and Fitness",
    "Travel",
    "Food and Cooking",
    "Music",
    "Sports",
    "Fashion",
    "Art and Design",
    "Business and Entrepreneurship",
    "Education",
)


@dataclass(frozen=True, slots=True)
class TextRazorConfig:
    api_url: str
    api_key: str
    classifier: str = "community"


@dataclass(frozen=True, slots=True)
class InterfaceAPIConfig:
    api_url: str
    api_key: str
    candidate_labels: tuple[str, ...] = CANDIDATE_LABELS
    score_threshold: float = SCORE_THRESHOLD


BackendConfig = TextRazorConfig | InterfaceAPIConfig


async def _post_before_deadline(
    service: str,
    timeout_ms: int,
    send: Callable[[httpx.AsyncClient], Awaitable[httpx.Response]],
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any] | None:
    """Run ``send`` and decode the JSON body; ``None`` means the deadline cancelled the call."""
    try:
        async with httpx.AsyncClient(timeout=None, transport=transport) as client:
            async with asyncio.timeout(max(int(timeout_ms), 0) / 1000):
                resp = await send(client)
    except TimeoutError:
        logger.info("%s request cancelled after %sms", service, timeout_ms)
        return None
    except httpx.HTTPError as exc:
        raise TransportError(None, f"{exc.__class__.__name__}: {exc}") from exc

    try:
        resp.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise TransportError(exc.response.status_code, exc.response.reason_phrase) from exc

    try:
        payload = resp.json()
    except ValueError as exc:
        raise TransportError(resp.status_code, "Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise TransportError(resp.status_code, "Unexpected response payload")
    return payload


async def fetch_textrazor_categories(
    config: TextRazorConfig,
    content: str,
    timeout_ms: int,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Categories:
    if not config.api_url or not config.api_key:
        raise ConfigurationError("TextRazor API key or URL not set")

    categories: Categories = {}
    payload = await _post_before_deadline(
        TEXTRAZOR,
        timeout_ms,
        lambda client: client.post(
            config.api_url,
            data={"text": content, "classifiers": config.classifier, "cleanup.mode": "stripTags"},
            headers={"X-TextRazor-Key": config.api_key, "Accept-Encoding": "gzip"},
        ),
        transport,
    )
    if payload is None:
        return categories

    response = payload.get("response") or {}
    for item in response.get("categories") or []:
        if not isinstance(item, dict) or item.get("label") is None or item.get("score") is None:
            continue
        # Duplicate labels: the last one wins.
        categories[str(item["label"])] = float(item["score"])
    return categories


async def fetch_interface_api_categories(
    config: InterfaceAPIConfig,
    content: str,
    timeout_ms: int,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Categories:
    if not config.api_url or not config.api_key:
        raise ConfigurationError("Interface API key or URL not set")

    categories: Categories = {}
    payload = await _post_before_deadline(
        INTERFACE_API,
        timeout_ms,
        lambda client: client.post(
            config.api_url,
            json={"inputs": content, "parameters": {"candidate_labels": list(config.candidate_labels)}},
            headers={"Authorization": f"Bearer {config.api_key}"},
        ),
        transport,
    )
    if payload is None:
        return categories

    labels = payload.get("labels") or []
    scores = payload.get("scores") or []
    for label, score in zip(labels, scores):
        if score is None:
            continue
        value = float(score)
        if value >= config.score_threshold:
            categories[str(label)] = value
    return categories


def resolve_backend_config(preference: str, cfg: Settings | None = None) -> BackendConfig:
    cfg = cfg or default_settings
    if preference == TEXTRAZOR:
        return TextRazorConfig(api_url=cfg.textrazor_api_url, api_key=cfg.textrazor_api_key)
    if preference == INTERFACE_API:
        return InterfaceAPIConfig(api_url=cfg.interface_api_url, api_key=cfg.interface_api_key)
    raise InvalidPreferenceError(preference)


def create_categorizer(
    preference: str,
    cfg: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Categorizer:
    """Build the categorizer for ``preference``.

    Credentials are not checked here: a missing URL or key surfaces as a
    ``ConfigurationError`` on the first call.
    """
    config = resolve_backend_config(preference, cfg)
    if isinstance(config, TextRazorConfig):
        fetch = partial(fetch_textrazor_categories, config, transport=transport)
    else:
        fetch = partial(fetch_interface_api_categories, config, transport=transport)

    async def categorize(content: str, timeout_ms: int) -> Categories:
        return await fetch(content, timeout_ms)

    return categorize
