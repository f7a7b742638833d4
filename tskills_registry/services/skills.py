"""
Skill service: metadata writes, search, download counts, deprecation.

Authorization is decided by the caller (``RegistryService``) before any of
these run; search is the exception and filters by the caller's visibility.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import delete, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from tskills_registry.core import policy
from tskills_registry.core.auth import Principal
from tskills_registry.models.skill import Skill
from tskills_registry.models.skill_version import SkillVersion
from tskills_shared.schemas.skills import SearchParams

log = structlog.get_logger()

# Characters that would change the meaning of a LIKE pattern or a filter list.
_SEARCH_STRIP_RE = re.compile(r"[,().%_*\\]")


def sanitize_query(query: str) -> str:
    return _SEARCH_STRIP_RE.sub("", query).strip()


async def find_skill(owner: str, name: str, session: AsyncSession) -> Optional[Skill]:
    result = await session.execute(
        select(Skill).where(Skill.owner == owner, Skill.name == name)
    )
    return result.scalar_one_or_none()


async def create_skill(skill: Skill, session: AsyncSession) -> Skill:
    session.add(skill)
    await session.flush()
    log.info(
        "skill.created",
        skill_id=str(skill.id),
        owner=skill.owner,
        name=skill.name,
        visibility=skill.visibility,
    )
    return skill


async def update_skill(skill: Skill, changes: dict, session: AsyncSession) -> Skill:
    for key, value in changes.items():
        setattr(skill, key, value)
    skill.updated_at = datetime.now(timezone.utc)
    session.add(skill)
    await session.flush()
    log.info("skill.updated", skill_id=str(skill.id), fields=sorted(changes))
    return skill


async def set_deprecation(
    skill: Skill, deprecated: bool, message: Optional[str], session: AsyncSession
) -> Skill:
    skill.deprecated = deprecated
    skill.deprecation_message = message if deprecated else None
    skill.updated_at = datetime.now(timezone.utc)
    session.add(skill)
    await session.flush()
    log.info("skill.deprecation_set", skill_id=str(skill.id), deprecated=deprecated)
    return skill


async def delete_skill(skill: Skill, session: AsyncSession) -> None:
    await session.execute(
        delete(SkillVersion)
        .where(SkillVersion.skill_id == skill.id)
        .execution_options(synchronize_session=False)
    )
    await session.delete(skill)
    await session.flush()
    log.info("skill.deleted", skill_id=str(skill.id), owner=skill.owner, name=skill.name)


async def increment_downloads(skill_id: uuid.UUID, session: AsyncSession) -> None:
    """Atomic ``downloads = downloads + 1``."""
    await session.execute(
        update(Skill)
        .where(Skill.id == skill_id)
        .values(downloads=Skill.downloads + 1)
        .execution_options(synchronize_session=False)
    )


async def search_skills(
    principal: Principal, params: SearchParams, session: AsyncSession
) -> list[Skill]:
    """Skills visible to ``principal`` matching the query and filters.

    Name/description matching, visibility and ordering run in SQL; tag and
    tool overlap is checked on the loaded rows (the columns are JSON lists),
    in which case pagination happens after filtering.
    """
    stmt = select(Skill).where(policy.visible_skills_clause(principal))

    if params.query:
        term = sanitize_query(params.query)
        if term:
            pattern = f"%{term}%"
            stmt = stmt.where(or_(Skill.name.ilike(pattern), Skill.description.ilike(pattern)))

    stmt = stmt.order_by(Skill.downloads.desc(), Skill.name)

    wanted_tags = set(params.tags)
    wanted_tools = set(params.tools)
    if not wanted_tags and not wanted_tools:
        stmt = stmt.offset(params.offset).limit(params.limit)
        result = await session.execute(stmt)
        return [s for s in result.scalars().all() if policy.can_view(principal, s)]

    result = await session.execute(stmt)
    matches = [
        s
        for s in result.scalars().all()
        if (not wanted_tags or wanted_tags.intersection(s.tags))
        and (not wanted_tools or wanted_tools.intersection(s.tools))
        and policy.can_view(principal, s)
    ]
    return matches[params.offset:params.offset + params.limit]
