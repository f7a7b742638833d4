"""
Versioning service: immutable skill versions and ``latest_version`` upkeep.

Every insert or delete of a version locks the owning skill row, writes, and
recomputes ``latest_version`` in the same transaction, so concurrent
publishers of the same skill serialize on the lock and the last one to commit
sees every surviving version.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import flag_modified
from sqlmodel import select

from tskills_registry.core.errors import ConflictError, NotFoundError
from tskills_registry.models.skill import Skill
from tskills_registry.models.skill_version import SkillVersion
from tskills_shared import semver
from tskills_shared.schemas.skills import VersionPublishRequest

log = structlog.get_logger()


async def lock_skill(skill_id: uuid.UUID, session: AsyncSession) -> Skill:
    """Re-read the skill row under ``SELECT ... FOR UPDATE``."""
    result = await session.execute(
        select(Skill)
        .where(Skill.id == skill_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def recompute_latest_version(skill: Skill, session: AsyncSession) -> Optional[str]:
    """Set ``latest_version`` to the highest-precedence surviving version."""
    result = await session.execute(
        select(SkillVersion.version).where(SkillVersion.skill_id == skill.id)
    )
    newest = semver.latest(result.scalars().all())
    # Always written: the in-memory value may predate a concurrent commit.
    skill.latest_version = newest
    flag_modified(skill, "latest_version")
    skill.updated_at = datetime.now(timezone.utc)
    session.add(skill)
    await session.flush()
    return newest


async def publish_version(
    skill: Skill,
    req: VersionPublishRequest,
    publisher_id: uuid.UUID,
    session: AsyncSession,
) -> SkillVersion:
    skill = await lock_skill(skill.id, session)

    existing = await session.execute(
        select(SkillVersion.id).where(
            SkillVersion.skill_id == skill.id,
            SkillVersion.version == req.version,
        )
    )
    if existing.first() is not None:
        raise ConflictError(f"Version {req.version} already exists for {skill.owner}/{skill.name}")

    version = SkillVersion(
        skill_id=skill.id,
        version=req.version,
        content=req.content,
        published_by=publisher_id,
    )
    session.add(version)
    await session.flush()

    latest = await recompute_latest_version(skill, session)
    log.info(
        "skill.version_published",
        skill_id=str(skill.id),
        version=req.version,
        latest=latest,
        publisher=str(publisher_id),
    )
    return version


async def delete_version(skill: Skill, version: str, session: AsyncSession) -> Optional[str]:
    """Delete one version and return the recomputed latest."""
    skill = await lock_skill(skill.id, session)
    row = await _find_version(skill.id, version, session)
    if row is None:
        raise NotFoundError(f"Version not found: {version}", resource="version")

    await session.delete(row)
    await session.flush()

    latest = await recompute_latest_version(skill, session)
    log.info("skill.version_deleted", skill_id=str(skill.id), version=version, latest=latest)
    return latest


async def _find_version(
    skill_id: uuid.UUID, version: str, session: AsyncSession
) -> Optional[SkillVersion]:
    result = await session.execute(
        select(SkillVersion).where(
            SkillVersion.skill_id == skill_id,
            SkillVersion.version == version,
        )
    )
    return result.scalar_one_or_none()


async def get_version(
    skill: Skill, version: Optional[str], session: AsyncSession
) -> SkillVersion:
    """Fetch a version, defaulting to the skill's latest."""
    wanted = version or skill.latest_version
    if wanted is None:
        raise NotFoundError(
            f"No versions published for {skill.owner}/{skill.name}", resource="version"
        )
    row = await _find_version(skill.id, wanted, session)
    if row is None:
        raise NotFoundError(f"Version not found: {wanted}", resource="version")
    return row


async def list_versions(skill_id: uuid.UUID, session: AsyncSession) -> list[SkillVersion]:
    """All versions, highest precedence first."""
    result = await session.execute(
        select(SkillVersion).where(SkillVersion.skill_id == skill_id)
    )
    rows = list(result.scalars().all())
    rows.sort(key=lambda v: semver.precedence_key(v.version), reverse=True)
    return rows
