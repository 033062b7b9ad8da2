"""Token record shared by every record store backend."""

import enum
from dataclasses import dataclass, replace
from datetime import datetime, timezone


class GrantState(str, enum.Enum):
    UNVIEWED = "unviewed"
    CONSUMED = "consumed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class TokenRecord:
    token: str
    media_ref: str
    created_at: datetime
    state: GrantState = GrantState.UNVIEWED
    consumed_at: datetime | None = None

    def consumed(self, at: datetime) -> "TokenRecord":
        return replace(self, state=GrantState.CONSUMED, consumed_at=at)
