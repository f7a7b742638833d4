"""
Team service: teams within an organization and their binary memberships.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from tskills_registry.core.errors import ConflictError, NotFoundError, ValidationError
from tskills_registry.models.org_member import OrgMember
from tskills_registry.models.organization import Organization
from tskills_registry.models.skill import Skill
from tskills_registry.models.team import Team
from tskills_registry.models.team_member import TeamMember
from tskills_registry.models.user import User
from tskills_shared.schemas.common import Visibility
from tskills_shared.schemas.teams import TeamCreateRequest

log = structlog.get_logger()


async def get_team(org_id: uuid.UUID, slug: str, session: AsyncSession) -> Team:
    result = await session.execute(
        select(Team).where(Team.org_id == org_id, Team.slug == slug)
    )
    team = result.scalar_one_or_none()
    if team is None:
        raise NotFoundError(f"Team not found: {slug}", resource="team")
    return team


async def list_teams(org_id: uuid.UUID, session: AsyncSession) -> list[Team]:
    result = await session.execute(
        select(Team).where(Team.org_id == org_id).order_by(Team.slug)
    )
    return list(result.scalars().all())


async def create_team(org: Organization, req: TeamCreateRequest, session: AsyncSession) -> Team:
    existing = await session.execute(
        select(Team.id).where(Team.org_id == org.id, Team.slug == req.slug)
    )
    if existing.first() is not None:
        raise ConflictError(f"Team slug already taken in {org.slug}: {req.slug}")

    team = Team(org_id=org.id, slug=req.slug, name=req.name, description=req.description)
    session.add(team)
    await session.flush()

    log.info("team.created", org_id=str(org.id), team_id=str(team.id), slug=team.slug)
    return team


async def delete_team(team: Team, session: AsyncSession) -> int:
    """Delete a team. Team-visibility skills fall back to org visibility.

    Returns the number of skills whose visibility was rewritten.
    """
    rewritten = await session.execute(
        update(Skill)
        .where(Skill.team_id == team.id)
        .values(
            visibility=Visibility.ORG.value,
            team_id=None,
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    await session.execute(
        delete(TeamMember)
        .where(TeamMember.team_id == team.id)
        .execution_options(synchronize_session=False)
    )
    await session.delete(team)
    await session.flush()

    log.info(
        "team.deleted",
        org_id=str(team.org_id),
        team_id=str(team.id),
        skills_rewritten=rewritten.rowcount,
    )
    return rewritten.rowcount


async def list_team_members(team_id: uuid.UUID, session: AsyncSession) -> list[dict]:
    result = await session.execute(
        select(TeamMember, User.username)
        .join(User, User.id == TeamMember.user_id)
        .where(TeamMember.team_id == team_id)
        .order_by(User.username)
    )
    return [
        {"user_id": member.user_id, "username": username, "joined_at": member.joined_at}
        for member, username in result.all()
    ]


async def add_team_member(team: Team, user: User, session: AsyncSession) -> TeamMember:
    """Add an org member to one of the org's teams."""
    if await session.get(OrgMember, (team.org_id, user.id)) is None:
        raise ValidationError(
            f"{user.username} must be a member of the organization before joining a team",
            field="username",
        )
    if await session.get(TeamMember, (team.id, user.id)) is not None:
        raise ConflictError(f"{user.username} is already a member of team {team.slug}")

    member = TeamMember(team_id=team.id, user_id=user.id)
    session.add(member)
    await session.flush()

    log.info("team.member_added", team_id=str(team.id), user_id=str(user.id))
    return member


async def remove_team_member(team: Team, user: User, session: AsyncSession) -> None:
    member = await session.get(TeamMember, (team.id, user.id))
    if member is None:
        raise NotFoundError("Team membership not found", resource="team_membership")
    await session.delete(member)
    await session.flush()

    log.info("team.member_removed", team_id=str(team.id), user_id=str(user.id))
