"""
User service: identity sync and lookups.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from tskills_registry.core.errors import ConflictError, NotFoundError
from tskills_registry.models.organization import Organization
from tskills_registry.models.skill import Skill
from tskills_registry.models.user import User
from tskills_shared.schemas.users import IdentitySync

log = structlog.get_logger()


async def get_user(user_id: uuid.UUID, session: AsyncSession) -> Optional[User]:
    return await session.get(User, user_id)


async def get_user_by_username(username: str, session: AsyncSession) -> User:
    """Case-insensitive lookup; raises NotFoundError."""
    result = await session.execute(
        select(User).where(func.lower(User.username) == username.lower())
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError(f"User not found: {username}", resource="user")
    return user


async def username_taken(username: str, session: AsyncSession) -> bool:
    result = await session.execute(
        select(User.id).where(func.lower(User.username) == username.lower())
    )
    return result.first() is not None


async def org_slug_taken(name: str, session: AsyncSession) -> bool:
    result = await session.execute(
        select(Organization.id).where(Organization.slug == name.lower())
    )
    return result.first() is not None


async def sync_identity(identity: IdentitySync, session: AsyncSession) -> User:
    """Create or refresh a user from verified external identity claims.

    A username change is written to every personally-owned skill's
    ``owner`` column in the same transaction. A new or changed username may not match an org slug, since both name
    skill owners.
    """
    result = await session.execute(select(User).where(User.github_id == identity.github_id))
    user = result.scalar_one_or_none()

    clash = await session.execute(
        select(User.id).where(func.lower(User.username) == identity.username.lower())
    )
    clash_id = clash.scalar_one_or_none()
    if clash_id is not None and (user is None or clash_id != user.id):
        raise ConflictError(f"Username already taken: {identity.username}")

    new_name = user is None or user.username.lower() != identity.username.lower()
    if new_name and await org_slug_taken(identity.username, session):
        raise ConflictError(f"Username already taken by an organization: {identity.username}")

    if user is None:
        user = User(
            github_id=identity.github_id,
            username=identity.username,
            email=identity.email,
            avatar_url=identity.avatar_url,
        )
        session.add(user)
        await session.flush()
        log.info("user.created", user_id=str(user.id), username=user.username)
        return user

    old_username = user.username
    user.username = identity.username
    user.email = identity.email
    user.avatar_url = identity.avatar_url
    user.updated_at = datetime.now(timezone.utc)
    session.add(user)
    await session.flush()

    if old_username != identity.username:
        await propagate_username(user.id, identity.username, session)
        log.info("user.renamed", user_id=str(user.id), old=old_username, new=identity.username)
    return user


async def propagate_username(user_id: uuid.UUID, username: str, session: AsyncSession) -> int:
    """Rewrite the denormalized owner name on the user's skills."""
    result = await session.execute(
        update(Skill)
        .where(Skill.owner_id == user_id)
        .values(owner=username, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
