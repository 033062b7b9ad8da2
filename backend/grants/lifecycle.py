"""Grant lifecycle: create on upload, begin and finalize on view.

State machine per token::

    UNVIEWED --finalize--> CONSUMED
    ANY      --TTL-------> ABSENT

``begin_view`` is a pure read and may be repeated (page reloads, retries,
duplicate tabs). ``finalize_view`` is the only entry point that consumes a
grant and reports success to exactly one caller.
"""

import enum
import logging
from collections.abc import Callable

from grants.errors import (
    AlreadyConsumed,
    CreationFailed,
    DuplicateToken,
    GrantExpired,
    RecordNotFound,
)
from grants.record import GrantState, TokenRecord
from grants.store import RecordStore
from grants.tokens import DEFAULT_TOKEN_LENGTH, generate_token

logger = logging.getLogger(__name__)

MAX_CREATE_ATTEMPTS = 3


class FinalizeResult(str, enum.Enum):
    OK = "ok"
    ALREADY_EXPIRED = "already_expired"


def _short(token: str) -> str:
    return f"{token[:4]}..."


class GrantManager:
    """Orchestrates grant state transitions against an injected record store."""

    def __init__(
        self,
        store: RecordStore,
        token_length: int = DEFAULT_TOKEN_LENGTH,
        max_attempts: int = MAX_CREATE_ATTEMPTS,
        token_factory: Callable[[int], str] = generate_token,
    ):
        self.store = store
        self.token_length = token_length
        self.max_attempts = max_attempts
        self._token_factory = token_factory

    async def create_grant(self, media_ref: str) -> str:
        """Create a grant for an uploaded object and return its token.

        Args:
            media_ref: URL or storage key returned by the object store.

        Returns:
            The new token.

        Raises:
            ValueError: If media_ref is empty.
            CreationFailed: If every attempt collided with an existing token.
            StoreUnavailable: If the store fails; not retried.
        """
        if not media_ref:
            raise ValueError("media_ref is required")

        for attempt in range(1, self.max_attempts + 1):
            token = self._token_factory(self.token_length)
            record = TokenRecord(token=token, media_ref=media_ref, created_at=self.store.clock())
            try:
                await self.store.put(record)
            except DuplicateToken:
                logger.warning(
                    f"Token collision on attempt {attempt}/{self.max_attempts}, regenerating"
                )
                continue
            logger.info(f"Created grant {_short(token)}")
            return token

        logger.error(f"Could not create a grant after {self.max_attempts} attempts")
        raise CreationFailed(f"No unique token after {self.max_attempts} attempts")

    async def begin_view(self, token: str) -> str:
        """Return the media reference of a viewable grant without consuming it.

        Raises:
            GrantExpired: If the token is unknown, TTL-expired or already consumed.
            StoreUnavailable: If the store fails.
        """
        record = await self.store.get(token)
        if record is None or record.state is not GrantState.UNVIEWED:
            raise GrantExpired(token)
        return record.media_ref

    async def finalize_view(self, token: str) -> FinalizeResult:
        """Consume the grant. Only the first caller gets ``OK``."""
        try:
            await self.store.try_consume(token)
        except AlreadyConsumed:
            logger.info(f"Grant {_short(token)} already consumed")
            return FinalizeResult.ALREADY_EXPIRED
        except RecordNotFound:
            logger.info(f"Grant {_short(token)} not found or expired")
            return FinalizeResult.ALREADY_EXPIRED
        logger.info(f"Grant {_short(token)} consumed")
        return FinalizeResult.OK
