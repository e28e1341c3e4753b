"""
models/refresh_token.py — RefreshToken table definition.

No business logic. No imports from services or routes.

A row is the server-side half of a refresh token: the token is valid only
while its row exists AND expires_at is in the future. Expired rows are
deleted when a refresh finds them and in bulk by `flask purge-refresh-tokens`.

FK policy: user_id ON DELETE CASCADE — token is owned by the user.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskflow.app.extensions import db


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshToken(db.Model):
    __tablename__ = "refresh_tokens"

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # SHA-256 hex digest of the signed refresh token, never the token itself.
    # token_service._hash_token() computes it before any DB read/write.
    token_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,  # purge_expired_refresh_tokens() scans on this
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="refresh_tokens",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<RefreshToken id={self.id} "
            f"user_id={self.user_id} "
            f"expires_at={self.expires_at.isoformat()}>"
        )
