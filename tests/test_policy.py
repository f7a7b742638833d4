"""
Authorization policy tests: pure functions, no database.
"""

from __future__ import annotations

import uuid

import pytest

from tskills_registry.core.auth import Principal
from tskills_registry.core.policy import (
    ManageAction,
    can_assign_role,
    can_delete_org,
    can_manage,
    can_manage_org,
    can_publish_to_org,
    can_remove_member,
    can_view,
)
from tskills_registry.models.skill import Skill
from tskills_shared.schemas.common import OrgRole

OWNER, ADMIN, MEMBER = OrgRole.OWNER, OrgRole.ADMIN, OrgRole.MEMBER

ORG_ID = uuid.uuid4()
TEAM_ID = uuid.uuid4()
ALICE_ID = uuid.uuid4()


def _skill(visibility: str, *, personal: bool = False, team: bool = False) -> Skill:
    return Skill(
        owner="alice" if personal else "acme",
        owner_id=ALICE_ID if personal else None,
        owner_org_id=None if personal else ORG_ID,
        team_id=TEAM_ID if team else None,
        name="demo",
        visibility=visibility,
    )


ANON = Principal.anonymous()
ALICE = Principal(user_id=ALICE_ID, username="alice")
STRANGER = Principal(user_id=uuid.uuid4(), username="mallory")
ORG_MEMBER = Principal(user_id=uuid.uuid4(), username="carol", org_roles={ORG_ID: MEMBER})
ORG_ADMIN = Principal(user_id=uuid.uuid4(), username="bob", org_roles={ORG_ID: ADMIN})
TEAM_MEMBER = Principal(
    user_id=uuid.uuid4(), username="erin", org_roles={ORG_ID: MEMBER}, team_ids=frozenset({TEAM_ID})
)


class TestCanView:
    """Visibility rules."""

    @pytest.mark.parametrize("principal", [ANON, ALICE, STRANGER, ORG_MEMBER])
    def test_public_visible_to_anyone(self, principal):
        assert can_view(principal, _skill("public", personal=True))
        assert can_view(principal, _skill("public"))

    def test_private_only_owner(self):
        skill = _skill("private", personal=True)
        assert can_view(ALICE, skill)
        assert not can_view(STRANGER, skill)
        assert not can_view(ANON, skill)
        assert not can_view(ORG_ADMIN, skill)

    def test_org_visible_to_any_member(self):
        skill = _skill("org")
        assert can_view(ORG_MEMBER, skill)
        assert can_view(ORG_ADMIN, skill)
        assert not can_view(STRANGER, skill)
        assert not can_view(ANON, skill)

    def test_team_visible_to_team_members_only(self):
        skill = _skill("team", team=True)
        assert can_view(TEAM_MEMBER, skill)
        assert not can_view(ORG_MEMBER, skill)
        assert not can_view(STRANGER, skill)


class TestCanManage:
    def test_personal_owner_only(self):
        skill = _skill("public", personal=True)
        for action in ManageAction:
            assert can_manage(ALICE, skill, action)
            assert not can_manage(STRANGER, skill, action)
            assert not can_manage(ANON, skill, action)

    def test_org_member_content_but_not_destructive(self):
        skill = _skill("org")
        assert can_manage(ORG_MEMBER, skill, ManageAction.CONTENT)
        assert not can_manage(ORG_MEMBER, skill, ManageAction.DESTRUCTIVE)

    def test_org_admin_destructive(self):
        assert can_manage(ORG_ADMIN, _skill("org"), ManageAction.DESTRUCTIVE)

    def test_non_member_cannot_manage_public_org_skill(self):
        assert not can_manage(STRANGER, _skill("public"), ManageAction.CONTENT)


class TestRoleAssignment:
    """Escalation is blocked structurally."""

    def test_owner_can_grant_and_revoke_owner(self):
        assert can_assign_role(OWNER, MEMBER, OWNER)
        assert can_assign_role(OWNER, OWNER, ADMIN)

    def test_admin_cannot_touch_owner(self):
        assert not can_assign_role(ADMIN, MEMBER, OWNER)
        assert not can_assign_role(ADMIN, OWNER, MEMBER)
        assert not can_assign_role(ADMIN, None, OWNER)

    def test_admin_manages_members_and_admins(self):
        assert can_assign_role(ADMIN, MEMBER, ADMIN)
        assert can_assign_role(ADMIN, ADMIN, MEMBER)
        assert can_assign_role(ADMIN, None, MEMBER)

    def test_member_and_outsider_cannot_assign(self):
        assert not can_assign_role(MEMBER, MEMBER, MEMBER)
        assert not can_assign_role(None, None, MEMBER)


class TestRemoval:
    def test_self_removal_allowed_for_members(self):
        assert can_remove_member(MEMBER, MEMBER, is_self=True)
        assert can_remove_member(OWNER, OWNER, is_self=True)

    def test_admin_cannot_remove_owner(self):
        assert not can_remove_member(ADMIN, OWNER, is_self=False)
        assert can_remove_member(ADMIN, ADMIN, is_self=False)
        assert can_remove_member(OWNER, OWNER, is_self=False)

    def test_member_cannot_remove_others(self):
        assert not can_remove_member(MEMBER, MEMBER, is_self=False)


class TestOrgRules:
    def test_manage_delete_publish(self):
        assert can_manage_org(ADMIN) and can_manage_org(OWNER)
        assert not can_manage_org(MEMBER)
        assert can_delete_org(OWNER) and not can_delete_org(ADMIN)
        assert can_publish_to_org(MEMBER)
        assert not can_publish_to_org(None)
