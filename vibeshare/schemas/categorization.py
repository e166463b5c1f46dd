from __future__ import annotations

from pydantic import BaseModel, Field


class CategorizeIn(BaseModel):
    content: str
    timeout_ms: int | None = Field(default=None, ge=1, le=60_000)


class CategorizeOut(BaseModel):
    service: str
    categories: dict[str, float] = Field(default_factory=dict)
