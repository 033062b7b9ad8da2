"""Persisted single-view grant."""

from datetime import datetime

from sqlalchemy import DateTime, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from grants.record import GrantState

from .base import Base


class MediaGrant(Base):
    __tablename__ = "media_grants"

    token: Mapped[str] = mapped_column(String(64), primary_key=True)
    media_ref: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[GrantState] = mapped_column(
        Enum(GrantState, name="grantstate"), nullable=False, default=GrantState.UNVIEWED
    )
    # Indexed for the expiry sweep.
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    consumed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
