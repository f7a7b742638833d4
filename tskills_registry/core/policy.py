"""
Authorization policy.

Pure functions over a Principal and an entity: no session, no I/O. Every
read and write in the registry asks one of these before touching the store.
``visible_skills_clause`` renders the ``can_view`` rule as a SQL predicate so
listings can be filtered in the database; ``can_view`` stays the deciding
check on every row returned.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import and_, false, or_

from tskills_registry.models.skill import Skill
from tskills_shared.schemas.common import ORG_ROLE_RANK, OrgRole, Visibility

if TYPE_CHECKING:
    from tskills_registry.core.auth import Principal


class ManageAction(str, Enum):
    CONTENT = "content"  # metadata updates, new versions
    DESTRUCTIVE = "destructive"  # deprecate, delete


_ORG_MANAGERS = frozenset({OrgRole.OWNER, OrgRole.ADMIN})


# ---------------------------------------------------------------------------
# Skills
# ---------------------------------------------------------------------------

def can_view(principal: Principal, skill: Skill) -> bool:
    if skill.visibility == Visibility.PUBLIC.value:
        return True
    if principal.user_id is None:
        return False
    if skill.owner_id is not None:
        return skill.owner_id == principal.user_id
    if skill.visibility == Visibility.ORG.value:
        return skill.owner_org_id in principal.org_roles
    if skill.visibility == Visibility.TEAM.value:
        return skill.team_id is not None and skill.team_id in principal.team_ids
    return False


def can_manage(principal: Principal, skill: Skill, action: ManageAction) -> bool:
    """Personal skills: only the owner. Org skills: any member for content,
    owner/admin for destructive actions."""
    if principal.user_id is None:
        return False
    if skill.owner_id is not None:
        return skill.owner_id == principal.user_id
    role = principal.role_in(skill.owner_org_id)
    if role is None:
        return False
    if action == ManageAction.DESTRUCTIVE:
        return role in _ORG_MANAGERS
    return True


def visible_skills_clause(principal: Principal):
    clauses = [Skill.visibility == Visibility.PUBLIC.value]
    if principal.user_id is not None:
        clauses.append(Skill.owner_id == principal.user_id)
    if principal.org_roles:
        clauses.append(and_(
            Skill.visibility == Visibility.ORG.value,
            Skill.owner_org_id.in_(list(principal.org_roles)),
        ))
    if principal.team_ids:
        clauses.append(and_(
            Skill.visibility == Visibility.TEAM.value,
            Skill.team_id.in_(list(principal.team_ids)),
        ))
    return or_(false(), *clauses)


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

def can_manage_org(role: Optional[OrgRole]) -> bool:
    """Teams and memberships: owner or admin."""
    return role in _ORG_MANAGERS


def can_delete_org(role: Optional[OrgRole]) -> bool:
    return role == OrgRole.OWNER


def can_publish_to_org(role: Optional[OrgRole]) -> bool:
    return role is not None


def can_assign_role(
    actor_role: Optional[OrgRole],
    current_role: Optional[OrgRole],
    new_role: OrgRole,
) -> bool:
    """Whether ``actor_role`` may move a membership from ``current_role``
    (None when adding) to ``new_role``.

    Only an owner touches owner-held records or grants owner, and nobody
    grants above their own rank.
    """
    if not can_manage_org(actor_role):
        return False
    if OrgRole.OWNER in (current_role, new_role):
        return actor_role == OrgRole.OWNER
    return ORG_ROLE_RANK[new_role] <= ORG_ROLE_RANK[actor_role]


def can_remove_member(
    actor_role: Optional[OrgRole],
    target_role: OrgRole,
    is_self: bool,
) -> bool:
    # Leaving is always allowed; last-owner protection is enforced by the store.
    if is_self:
        return actor_role is not None
    if not can_manage_org(actor_role):
        return False
    if target_role == OrgRole.OWNER:
        return actor_role == OrgRole.OWNER
    return True


def required_role_for(current_role: Optional[OrgRole], new_role: OrgRole) -> OrgRole:
    """The minimum actor role that ``can_assign_role`` would accept."""
    if OrgRole.OWNER in (current_role, new_role):
        return OrgRole.OWNER
    return OrgRole.ADMIN
