"""Record store contract and the SQLAlchemy-backed implementation.

Every store is the single source of truth for grant state. Consumption is one
conditional write (state UNVIEWED → CONSUMED) so that concurrent callers,
across any number of service instances, see exactly one winner.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from grants.errors import AlreadyConsumed, DuplicateToken, RecordNotFound, StoreUnavailable
from grants.record import GrantState, TokenRecord, as_utc, utcnow
from models.base import create_tables
from models.media_grant import MediaGrant

logger = logging.getLogger(__name__)

T = TypeVar("T")
Clock = Callable[[], datetime]


class RecordStore(ABC):
    """Keyed TokenRecord storage with TTL and an atomic consume."""

    backend = "abstract"
    # Whether expired records need an external sweep to be reclaimed.
    needs_sweep = False

    def __init__(self, ttl_seconds: float, timeout_seconds: float, clock: Clock = utcnow):
        self.ttl = timedelta(seconds=ttl_seconds)
        self.timeout = timeout_seconds
        self.clock = clock

    def expires_at(self, record: TokenRecord) -> datetime:
        return record.created_at + self.ttl

    def is_expired(self, record: TokenRecord, now: datetime | None = None) -> bool:
        if now is None:
            now = self.clock()
        return now >= self.expires_at(record)

    async def _bounded(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Run a backend call under the store timeout."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"{self.backend} store {operation} timed out after {self.timeout}s")
            raise StoreUnavailable(f"Record store timed out during {operation}") from e

    def _unavailable(self, operation: str, exc: Exception) -> StoreUnavailable:
        logger.error(f"{self.backend} store {operation} failed: {exc}")
        return StoreUnavailable(f"Record store failed during {operation}")

    @abstractmethod
    async def put(self, record: TokenRecord) -> None:
        """Insert a new record.

        Raises:
            DuplicateToken: If a record with the same token exists.
            StoreUnavailable: On backend failure or timeout.
        """

    @abstractmethod
    async def get(self, token: str) -> TokenRecord | None:
        """Return the live record for ``token``, or None if absent or expired."""

    @abstractmethod
    async def try_consume(self, token: str) -> TokenRecord:
        """Atomically move a live UNVIEWED record to CONSUMED.

        Returns:
            The consumed record, for the single winning caller only.

        Raises:
            AlreadyConsumed: The record is live but another caller consumed it.
            RecordNotFound: No live record exists for the token.
            StoreUnavailable: On backend failure or timeout.
        """

    @abstractmethod
    async def purge_expired(self) -> int:
        """Physically remove expired records. Returns the number removed."""

    @abstractmethod
    async def close(self) -> None:
        """Release the backend connection pool."""


class SqlRecordStore(RecordStore):
    """Grants persisted in the ``media_grants`` table.

    TTL is enforced lazily in every query and reclaimed by the expiry
    sweeper (see workers.sweeper).
    """

    backend = "sql"
    needs_sweep = True

    def __init__(
        self,
        engine: AsyncEngine,
        ttl_seconds: float,
        timeout_seconds: float,
        clock: Clock = utcnow,
    ):
        super().__init__(ttl_seconds, timeout_seconds, clock)
        self._engine = engine
        self._sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def create_schema(self) -> None:
        try:
            await self._bounded("create_schema", create_tables(self._engine))
        except SQLAlchemyError as e:
            raise self._unavailable("create_schema", e) from e

    async def put(self, record: TokenRecord) -> None:
        await self._bounded("put", self._put(record))

    async def _put(self, record: TokenRecord) -> None:
        try:
            async with self._sessions() as db:
                db.add(
                    MediaGrant(
                        token=record.token,
                        media_ref=record.media_ref,
                        state=record.state,
                        created_at=record.created_at,
                        consumed_at=record.consumed_at,
                    )
                )
                await db.commit()
        except IntegrityError as e:
            raise DuplicateToken(record.token) from e
        except SQLAlchemyError as e:
            raise self._unavailable("put", e) from e

    async def get(self, token: str) -> TokenRecord | None:
        return await self._bounded("get", self._get(token))

    async def _get(self, token: str) -> TokenRecord | None:
        cutoff = self.clock() - self.ttl
        try:
            async with self._sessions() as db:
                result = await db.execute(
                    select(MediaGrant).where(
                        MediaGrant.token == token, MediaGrant.created_at > cutoff
                    )
                )
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise self._unavailable("get", e) from e
        return _to_record(row) if row is not None else None

    async def try_consume(self, token: str) -> TokenRecord:
        return await self._bounded("try_consume", self._try_consume(token))

    async def _try_consume(self, token: str) -> TokenRecord:
        now = self.clock()
        cutoff = now - self.ttl
        try:
            async with self._sessions() as db:
                # Compare-and-set in a single statement: the row lock taken by
                # the UPDATE serializes racing callers, and only one of them
                # can still match state = UNVIEWED.
                result = await db.execute(
                    update(MediaGrant)
                    .where(
                        MediaGrant.token == token,
                        MediaGrant.state == GrantState.UNVIEWED,
                        MediaGrant.created_at > cutoff,
                    )
                    .values(state=GrantState.CONSUMED, consumed_at=now)
                    .returning(MediaGrant)
                )
                row = result.scalar_one_or_none()
                await db.commit()
                if row is not None:
                    return _to_record(row)

                # Lost: tell "consumed" from "absent" for the caller's logs.
                state = (
                    await db.execute(
                        select(MediaGrant.state).where(
                            MediaGrant.token == token, MediaGrant.created_at > cutoff
                        )
                    )
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise self._unavailable("try_consume", e) from e

        if state is None:
            raise RecordNotFound(token)
        raise AlreadyConsumed(token)

    async def purge_expired(self) -> int:
        return await self._bounded("purge_expired", self._purge_expired())

    async def _purge_expired(self) -> int:
        cutoff = self.clock() - self.ttl
        try:
            async with self._sessions() as db:
                result = await db.execute(
                    delete(MediaGrant)
                    .where(MediaGrant.created_at <= cutoff)
                    .execution_options(synchronize_session=False)
                )
                await db.commit()
        except SQLAlchemyError as e:
            raise self._unavailable("purge_expired", e) from e
        return result.rowcount or 0

    async def close(self) -> None:
        await self._engine.dispose()


def _to_record(row: MediaGrant) -> TokenRecord:
    return TokenRecord(
        token=row.token,
        media_ref=row.media_ref,
        state=row.state,
        created_at=as_utc(row.created_at),
        consumed_at=as_utc(row.consumed_at) if row.consumed_at is not None else None,
    )
