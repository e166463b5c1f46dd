from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class UserRef(BaseModel):
    id: int
    name: str
    avatar: str | None = None


class CommunityRef(BaseModel):
    id: int
    name: str


class PostOut(BaseModel):
    id: int
    user: UserRef
    community: CommunityRef
    content: str
    file_url: str | None = None
    file_type: str | None = None
    likes: list[int] = Field(default_factory=list)
    comments: list[int] = Field(default_factory=list)
    created_at: str
    date_time: str


class FailedDetectionOut(BaseModel):
    """Returned instead of a post when moderation holds the content back."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["failedDetection"] = "failedDetection"
    confirmation_token: str = Field(alias="confirmationToken")
