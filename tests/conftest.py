"""
Shared fixtures: a temporary-file SQLite registry and a few users.
"""

from __future__ import annotations

import pytest

from tskills_registry.core.auth import Principal
from tskills_registry.core.config import Settings
from tskills_registry.core.database import Database
from tskills_registry.services.rate_limit import RateLimiter
from tskills_registry.services.registry import RegistryService


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'registry.db'}",
        secret_key="test-secret-key-with-enough-length-for-hs256",
        rate_limit_cleanup_probability=0.0,
    )


@pytest.fixture
async def db(settings):
    database = Database(settings.database_url)
    await database.init_db(settings.default_rate_limits)
    yield database
    await database.dispose()


@pytest.fixture
def registry(db, settings):
    limiter = RateLimiter(db, cleanup_probability=0.0)
    return RegistryService(db, limiter=limiter, settings=settings)


async def make_user(registry: RegistryService, github_id: int, username: str) -> Principal:
    user = await registry.sync_identity({"github_id": github_id, "username": username})
    return Principal(user_id=user.id, username=user.username, anonymous_id=f"anon-{username}")


@pytest.fixture
async def alice(registry):
    return await make_user(registry, 1, "alice")


@pytest.fixture
async def bob(registry):
    return await make_user(registry, 2, "bob")


@pytest.fixture
async def carol(registry):
    return await make_user(registry, 3, "carol")


@pytest.fixture
async def dave(registry):
    return await make_user(registry, 4, "dave")


@pytest.fixture
def anonymous():
    return Principal.anonymous("anon-device-1")


@pytest.fixture
async def acme(registry, alice, bob, carol):
    """Org ``acme``: alice owner, bob admin, carol member."""
    await registry.create_organization(alice, {"slug": "acme", "name": "Acme"})
    await registry.add_member(alice, "acme", {"username": "bob", "role": "admin"})
    await registry.add_member(alice, "acme", {"username": "carol"})
    return "acme"
