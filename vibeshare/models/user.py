from __future__ import annotations

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from vibeshare.db.base import Base
from vibeshare.models.common import CreatedAtMixin

ROLE_GENERAL = "general"
ROLE_MODERATOR = "moderator"


class User(CreatedAtMixin, Base):
    __tablename__ = "users"
    __table_args__ = (CheckConstraint("role in ('general','moderator')", name="ck_users_role"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default=ROLE_GENERAL, nullable=False)


class Relationship(CreatedAtMixin, Base):
    __tablename__ = "relationships"
    __table_args__ = (
        UniqueConstraint("follower_user_id", "following_user_id", name="uq_relationship_pair"),
        CheckConstraint("follower_user_id <> following_user_id", name="ck_relationship_self"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    follower_user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    following_user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
