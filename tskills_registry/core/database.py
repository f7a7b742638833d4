"""
Database connection and session management.

The engine lives on a :class:`Database` handle owned by whoever creates it
(the app lifespan, a script, a test fixture) rather than on module globals,
so it can be disposed and rebuilt when credentials rotate.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from tskills_registry.models import RateLimitConfig
from tskills_shared.schemas.rate_limits import RateLimitRule

log = structlog.get_logger()


def _engine_for(url: str, echo: bool) -> AsyncEngine:
    connect_args = {}
    if url.startswith("sqlite"):
        # Writers queue on SQLite's file lock instead of failing fast.
        connect_args["timeout"] = 30
    return create_async_engine(url, echo=echo, future=True, connect_args=connect_args)


class Database:
    """Owns the async engine and hands out transactional sessions."""

    def __init__(self, url: str, *, echo: bool = False):
        self.url = url
        self._echo = echo
        self.engine = _engine_for(url, echo)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """One unit of work: commit on success, roll back on any error."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def init_db(self, rate_limits: list[RateLimitRule] | None = None) -> None:
        """Create all tables and seed rate-limit defaults (development only; use migrations in production)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        if rate_limits:
            await self.seed_rate_limits(rate_limits)

    async def seed_rate_limits(self, rules: list[RateLimitRule]) -> None:
        async with self.transaction() as session:
            for rule in rules:
                existing = await session.get(RateLimitConfig, rule.action)
                if existing is None:
                    session.add(RateLimitConfig(**rule.model_dump()))
                    continue
                existing.window_seconds = rule.window_seconds
                existing.anonymous_limit = rule.anonymous_limit
                existing.authenticated_limit = rule.authenticated_limit
                session.add(existing)
        log.info("db.rate_limits_seeded", actions=[r.action for r in rules])

    async def ping(self) -> bool:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    async def rotate(self, url: str | None = None) -> None:
        """Dispose pooled connections and rebuild the engine (e.g. after credential rotation)."""
        await self.engine.dispose()
        if url is not None:
            self.url = url
        self.engine = _engine_for(self.url, self._echo)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        log.info("db.rotated", dialect=self.dialect)

    async def dispose(self) -> None:
        await self.engine.dispose()
