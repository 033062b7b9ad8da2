"""Redis-backed grant records.

Each grant is one JSON string at ``media_grant:{token}`` written with
``SET NX EX``, so Redis both rejects duplicate tokens and expires the key
itself once the TTL passes. Consumption is an optimistic WATCH/MULTI
compare-and-set on that single key.
"""

import json
import logging
import math
from datetime import datetime

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from grants.errors import AlreadyConsumed, DuplicateToken, RecordNotFound, StoreUnavailable
from grants.record import GrantState, TokenRecord, as_utc, utcnow
from grants.store import Clock, RecordStore

logger = logging.getLogger(__name__)

GRANT_PREFIX = "media_grant:"
# Lost WATCHes before giving up; only a competing consume touches the key.
CONSUME_ATTEMPTS = 5


class RedisRecordStore(RecordStore):
    backend = "redis"

    def __init__(
        self,
        client: redis.Redis,
        ttl_seconds: float,
        timeout_seconds: float,
        clock: Clock = utcnow,
    ):
        super().__init__(ttl_seconds, timeout_seconds, clock)
        self._redis = client

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisRecordStore":
        return cls(redis.from_url(url, decode_responses=True), **kwargs)

    async def put(self, record: TokenRecord) -> None:
        await self._bounded("put", self._put(record))

    async def _put(self, record: TokenRecord) -> None:
        remaining = (self.expires_at(record) - self.clock()).total_seconds()
        try:
            created = await self._redis.set(
                _key(record.token),
                _encode(record),
                nx=True,
                ex=max(1, math.ceil(remaining)),
            )
        except RedisError as e:
            raise self._unavailable("put", e) from e
        if not created:
            raise DuplicateToken(record.token)

    async def get(self, token: str) -> TokenRecord | None:
        return await self._bounded("get", self._get(token))

    async def _get(self, token: str) -> TokenRecord | None:
        try:
            raw = await self._redis.get(_key(token))
        except RedisError as e:
            raise self._unavailable("get", e) from e
        if raw is None:
            return None
        record = _decode(raw)
        # Key expiry has one-second granularity; the clock is authoritative.
        if self.is_expired(record):
            return None
        return record

    async def try_consume(self, token: str) -> TokenRecord:
        return await self._bounded("try_consume", self._try_consume(token))

    async def _try_consume(self, token: str) -> TokenRecord:
        key = _key(token)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                for attempt in range(1, CONSUME_ATTEMPTS + 1):
                    try:
                        await pipe.watch(key)
                        raw = await pipe.get(key)
                        now = self.clock()
                        record = _decode(raw) if raw is not None else None
                        if record is None or self.is_expired(record, now):
                            raise RecordNotFound(token)
                        if record.state is GrantState.CONSUMED:
                            raise AlreadyConsumed(token)

                        consumed = record.consumed(now)
                        pipe.multi()
                        pipe.set(key, _encode(consumed), keepttl=True)
                        await pipe.execute()
                        return consumed
                    except WatchError:
                        logger.warning(
                            f"Consume of {token[:4]}... lost its watch (attempt {attempt}), re-reading"
                        )
        except RedisError as e:
            raise self._unavailable("try_consume", e) from e
        raise StoreUnavailable(f"Record store contention on consume after {CONSUME_ATTEMPTS} attempts")

    async def purge_expired(self) -> int:
        # Keys carry their own expiry.
        return 0

    async def close(self) -> None:
        await self._redis.aclose()


def _key(token: str) -> str:
    return f"{GRANT_PREFIX}{token}"


def _encode(record: TokenRecord) -> str:
    return json.dumps(
        {
            "token": record.token,
            "media_ref": record.media_ref,
            "state": record.state.value,
            "created_at": record.created_at.isoformat(),
            "consumed_at": record.consumed_at.isoformat() if record.consumed_at else None,
        }
    )


def _decode(raw: str | bytes) -> TokenRecord:
    data = json.loads(raw)
    consumed_at = data.get("consumed_at")
    return TokenRecord(
        token=data["token"],
        media_ref=data["media_ref"],
        state=GrantState(data["state"]),
        created_at=as_utc(datetime.fromisoformat(data["created_at"])),
        consumed_at=as_utc(datetime.fromisoformat(consumed_at)) if consumed_at else None,
    )
