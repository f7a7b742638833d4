"""
Fixed-window rate limiter backed by the database.

Each call is one conditional upsert on (identifier, action, window_start)
that returns the post-increment count, so concurrent callers never lose an
increment. The counter commits in its own short transaction: a denied or
failed operation still consumes quota. Expired windows are reclaimed lazily
with a small probability per call.
"""

from __future__ import annotations

import math
import random
import time
import uuid
from datetime import datetime, timezone
from typing import Callable

import structlog
from sqlalchemy import delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from tskills_registry.core.database import Database
from tskills_registry.core.errors import RateLimitError
from tskills_registry.models.rate_limit import RateLimitConfig, RateLimitCounter
from tskills_shared.schemas.rate_limits import RateLimitResult

log = structlog.get_logger()

AUTH_REQUIRED_RETRY_SECONDS = 3600
AUTH_REQUIRED_MESSAGE = "This action requires authentication"

_counters = RateLimitCounter.__table__


class RateLimiter:
    """Per-action request quotas for users and anonymous clients."""

    def __init__(
        self,
        db: Database,
        *,
        cleanup_probability: float = 0.01,
        clock: Callable[[], float] = time.time,
        rng: Callable[[], float] = random.random,
    ):
        self._db = db
        self.cleanup_probability = cleanup_probability
        self._clock = clock
        self._rng = rng

    async def check(self, identifier: str, action: str, is_authenticated: bool) -> RateLimitResult:
        """Count one request and report whether it is within quota."""
        async with self._db.transaction() as session:
            config = await session.get(RateLimitConfig, action)
            if config is None:
                return RateLimitResult(allowed=True)

            now = self._clock()
            limit = config.authenticated_limit if is_authenticated else config.anonymous_limit
            if limit == 0:
                return RateLimitResult(
                    allowed=False,
                    limit=0,
                    remaining=0,
                    reset_at=datetime.fromtimestamp(
                        now + AUTH_REQUIRED_RETRY_SECONDS, tz=timezone.utc
                    ),
                    retry_after=AUTH_REQUIRED_RETRY_SECONDS,
                    error=AUTH_REQUIRED_MESSAGE,
                )

            window = config.window_seconds
            window_start = int(now // window) * window
            count = await self._increment(session, identifier, action, window_start)

            if self._rng() < self.cleanup_probability:
                await self._sweep(session, now)

        window_end = window_start + window
        reset_at = datetime.fromtimestamp(window_end, tz=timezone.utc)
        remaining = max(0, limit - count)

        if count > limit:
            retry_after = max(1, math.ceil(window_end - now))
            log.info(
                "rate_limit.denied",
                identifier=identifier,
                action=action,
                count=count,
                limit=limit,
                retry_after=retry_after,
            )
            return RateLimitResult(
                allowed=False,
                limit=limit,
                remaining=0,
                reset_at=reset_at,
                retry_after=retry_after,
                error=f"Rate limit exceeded for '{action}'. Try again in {retry_after} seconds",
            )
        return RateLimitResult(allowed=True, limit=limit, remaining=remaining, reset_at=reset_at)

    async def enforce(self, identifier: str, action: str, is_authenticated: bool) -> RateLimitResult:
        """Like :meth:`check`, but raise ``RateLimitError`` when denied."""
        result = await self.check(identifier, action, is_authenticated)
        if not result.allowed:
            raise RateLimitError(
                result.error or "Rate limit exceeded",
                retry_after=result.retry_after or 1,
                limit=result.limit or 0,
                remaining=result.remaining or 0,
                reset_at=result.reset_at,
                action=action,
            )
        return result

    async def _increment(
        self, session: AsyncSession, identifier: str, action: str, window_start: int
    ) -> int:
        insert = pg_insert if self._db.dialect == "postgresql" else sqlite_insert
        stmt = (
            insert(_counters)
            .values(
                id=uuid.uuid4(),
                identifier=identifier,
                action=action,
                window_start=window_start,
                request_count=1,
                created_at=datetime.now(timezone.utc),
            )
            .on_conflict_do_update(
                index_elements=["identifier", "action", "window_start"],
                set_={"request_count": _counters.c.request_count + 1},
            )
            .returning(_counters.c.request_count)
        )
        result = await session.execute(stmt)
        return result.scalar_one()

    async def _sweep(self, session: AsyncSession, now: float) -> int:
        """Delete counters whose window ended more than one window ago."""
        configs = await session.execute(select(RateLimitConfig))
        removed = 0
        for config in configs.scalars().all():
            cutoff = now - 2 * config.window_seconds
            result = await session.execute(
                delete(_counters).where(
                    _counters.c.action == config.action,
                    _counters.c.window_start < cutoff,
                )
            )
            removed += result.rowcount
        log.debug("rate_limit.swept", removed=removed)
        return removed
