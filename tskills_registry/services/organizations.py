"""
Organization service: org lifecycle and role-tagged memberships.

Every membership change that could leave an org without an owner locks the
org row first and then runs as a conditional statement that only matches
while another owner exists.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import delete, exists, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
from sqlmodel import select

from tskills_registry.core import policy
from tskills_registry.core.errors import (
    ConflictError,
    InvariantError,
    NotFoundError,
    PermissionDeniedError,
)
from tskills_registry.models.org_member import OrgMember
from tskills_registry.models.organization import Organization
from tskills_registry.models.skill import Skill
from tskills_registry.models.skill_version import SkillVersion
from tskills_registry.models.team import Team
from tskills_registry.models.team_member import TeamMember
from tskills_registry.models.user import User
from tskills_registry.services.users import username_taken
from tskills_shared.schemas.common import OrgRole
from tskills_shared.schemas.organizations import OrgCreateRequest

log = structlog.get_logger()

LAST_OWNER_RULE = "last_owner"


async def get_org_by_slug(slug: str, session: AsyncSession) -> Organization:
    """Get an org by slug; raises NotFoundError."""
    result = await session.execute(select(Organization).where(Organization.slug == slug))
    org = result.scalar_one_or_none()
    if org is None:
        raise NotFoundError(f"Organization not found: {slug}", resource="organization")
    return org


async def get_membership(
    org_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> OrgMember | None:
    return await session.get(OrgMember, (org_id, user_id))


async def _lock_org(org_id: uuid.UUID, session: AsyncSession) -> None:
    await session.execute(
        select(Organization.id).where(Organization.id == org_id).with_for_update()
    )


def _another_owner_exists(org_id: uuid.UUID, user_id: uuid.UUID):
    other = aliased(OrgMember)
    return exists(
        select(other.user_id).where(
            other.org_id == org_id,
            other.role == OrgRole.OWNER.value,
            other.user_id != user_id,
        )
    )


async def _add_membership(
    org_id: uuid.UUID, user_id: uuid.UUID, role: OrgRole, session: AsyncSession
) -> OrgMember:
    membership = OrgMember(org_id=org_id, user_id=user_id, role=role.value)
    session.add(membership)
    await session.flush()
    return membership


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

async def list_user_orgs(user_id: uuid.UUID, session: AsyncSession) -> list[dict]:
    """List all orgs a user belongs to, with their role."""
    result = await session.execute(
        select(Organization, OrgMember.role)
        .join(OrgMember, OrgMember.org_id == Organization.id)
        .where(OrgMember.user_id == user_id)
        .order_by(Organization.slug)
    )
    return [
        {"id": org.id, "slug": org.slug, "name": org.name, "role": role}
        for org, role in result.all()
    ]


async def create_org(
    req: OrgCreateRequest,
    creator_id: uuid.UUID,
    session: AsyncSession,
) -> Organization:
    """Create an org and its creator's owner membership.

    Both rows are written in the caller's transaction; a failure between them
    rolls back the org too.
    """
    existing = await session.execute(
        select(Organization.id).where(Organization.slug == req.slug)
    )
    if existing.first() is not None:
        raise ConflictError(f"Organization slug already taken: {req.slug}")
    # Org slugs and usernames share the skill-owner namespace.
    if await username_taken(req.slug, session):
        raise ConflictError(f"Organization slug already taken: {req.slug}")

    org = Organization(
        slug=req.slug,
        name=req.name,
        description=req.description,
        created_by=creator_id,
    )
    session.add(org)
    await session.flush()

    await _add_membership(org.id, creator_id, OrgRole.OWNER, session)

    log.info("org.created", org_id=str(org.id), slug=org.slug, creator=str(creator_id))
    return org


async def delete_org(org: Organization, session: AsyncSession) -> None:
    """Delete an org with its teams, memberships and org-owned skills."""
    skill_ids = select(Skill.id).where(Skill.owner_org_id == org.id)
    team_ids = select(Team.id).where(Team.org_id == org.id)
    no_sync = {"synchronize_session": False}

    await session.execute(
        delete(SkillVersion).where(SkillVersion.skill_id.in_(skill_ids)).execution_options(**no_sync)
    )
    await session.execute(delete(Skill).where(Skill.owner_org_id == org.id).execution_options(**no_sync))
    await session.execute(
        delete(TeamMember).where(TeamMember.team_id.in_(team_ids)).execution_options(**no_sync)
    )
    await session.execute(delete(Team).where(Team.org_id == org.id).execution_options(**no_sync))
    await session.execute(delete(OrgMember).where(OrgMember.org_id == org.id).execution_options(**no_sync))
    await session.delete(org)
    await session.flush()

    log.info("org.deleted", org_id=str(org.id), slug=org.slug)


# ---------------------------------------------------------------------------
# Memberships
# ---------------------------------------------------------------------------

async def list_members(org_id: uuid.UUID, session: AsyncSession) -> list[dict]:
    result = await session.execute(
        select(OrgMember, User.username)
        .join(User, User.id == OrgMember.user_id)
        .where(OrgMember.org_id == org_id)
        .order_by(User.username)
    )
    return [
        {
            "user_id": member.user_id,
            "username": username,
            "role": member.role,
            "joined_at": member.joined_at,
        }
        for member, username in result.all()
    ]


async def add_member(
    org: Organization,
    actor_role: OrgRole | None,
    user: User,
    role: OrgRole,
    session: AsyncSession,
) -> OrgMember:
    if not policy.can_assign_role(actor_role, None, role):
        raise PermissionDeniedError(
            f"Adding a member with role '{role.value}' requires a higher role",
            required_role=policy.required_role_for(None, role).value,
        )
    if await get_membership(org.id, user.id, session) is not None:
        raise ConflictError(f"{user.username} is already a member of {org.slug}")

    membership = await _add_membership(org.id, user.id, role, session)
    log.info("org.member_added", org_id=str(org.id), user_id=str(user.id), role=role.value)
    return membership


async def set_member_role(
    org: Organization,
    actor_role: OrgRole | None,
    target_id: uuid.UUID,
    new_role: OrgRole,
    session: AsyncSession,
) -> OrgMember:
    await _lock_org(org.id, session)
    membership = await get_membership(org.id, target_id, session)
    if membership is None:
        raise NotFoundError("Membership not found", resource="membership")

    current = OrgRole(membership.role)
    if not policy.can_assign_role(actor_role, current, new_role):
        raise PermissionDeniedError(
            f"Changing a role from '{current.value}' to '{new_role.value}' requires a higher role",
            required_role=policy.required_role_for(current, new_role).value,
        )
    if current == new_role:
        return membership

    stmt = (
        update(OrgMember)
        .where(OrgMember.org_id == org.id, OrgMember.user_id == target_id)
        .values(role=new_role.value)
        .execution_options(synchronize_session=False)
    )
    if current == OrgRole.OWNER:
        stmt = stmt.where(_another_owner_exists(org.id, target_id))

    result = await session.execute(stmt)
    if result.rowcount == 0:
        raise InvariantError(
            "Cannot demote the last owner of an organization",
            rule=LAST_OWNER_RULE,
        )
    await session.refresh(membership)

    log.info(
        "org.member_role_changed",
        org_id=str(org.id),
        user_id=str(target_id),
        old_role=current.value,
        new_role=new_role.value,
    )
    return membership


async def remove_member(
    org: Organization,
    actor_id: uuid.UUID,
    actor_role: OrgRole | None,
    target_id: uuid.UUID,
    session: AsyncSession,
) -> None:
    """Remove a membership and the target's memberships in the org's teams."""
    await _lock_org(org.id, session)
    membership = await get_membership(org.id, target_id, session)
    if membership is None:
        raise NotFoundError("Membership not found", resource="membership")

    target_role = OrgRole(membership.role)
    if not policy.can_remove_member(actor_role, target_role, actor_id == target_id):
        raise PermissionDeniedError(
            f"Removing a member with role '{target_role.value}' requires a higher role",
            required_role=policy.required_role_for(target_role, OrgRole.MEMBER).value,
        )

    stmt = (
        delete(OrgMember)
        .where(OrgMember.org_id == org.id, OrgMember.user_id == target_id)
        .execution_options(synchronize_session=False)
    )
    if target_role == OrgRole.OWNER:
        stmt = stmt.where(_another_owner_exists(org.id, target_id))

    result = await session.execute(stmt)
    if result.rowcount == 0:
        raise InvariantError(
            "Cannot remove the last owner of an organization",
            rule=LAST_OWNER_RULE,
        )
    session.expunge(membership)

    await session.execute(
        delete(TeamMember)
        .where(
            TeamMember.user_id == target_id,
            TeamMember.team_id.in_(select(Team.id).where(Team.org_id == org.id)),
        )
        .execution_options(synchronize_session=False)
    )
    log.info("org.member_removed", org_id=str(org.id), user_id=str(target_id), role=target_role.value)


async def count_owners(org_id: uuid.UUID, session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(OrgMember)
        .where(OrgMember.org_id == org_id, OrgMember.role == OrgRole.OWNER.value)
    )
    return result.scalar_one()
