"""
Integration tests for teams and the team-deletion visibility fix-up.
"""

from __future__ import annotations

import pytest

from tskills_registry.core.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)


@pytest.fixture
async def platform(registry, alice, acme):
    await registry.create_team(alice, acme, {"slug": "platform", "name": "Platform"})
    return "platform"


class TestTeamLifecycle:
    @pytest.mark.asyncio
    async def test_create_and_list(self, registry, alice, carol, acme, platform):
        teams = await registry.list_teams(carol, acme)
        assert [t.slug for t in teams] == ["platform"]

    @pytest.mark.asyncio
    async def test_duplicate_slug_in_same_org(self, registry, bob, acme, platform):
        with pytest.raises(ConflictError):
            await registry.create_team(bob, acme, {"slug": "platform", "name": "Again"})

    @pytest.mark.asyncio
    async def test_same_slug_in_other_org(self, registry, dave, platform):
        await registry.create_organization(dave, {"slug": "globex", "name": "Globex"})
        team = await registry.create_team(dave, "globex", {"slug": "platform", "name": "Platform"})
        assert team.slug == "platform"

    @pytest.mark.asyncio
    async def test_member_cannot_create(self, registry, carol, acme):
        with pytest.raises(PermissionDeniedError):
            await registry.create_team(carol, acme, {"slug": "ops", "name": "Ops"})

    @pytest.mark.asyncio
    async def test_outsider_sees_not_found(self, registry, dave, acme, platform):
        with pytest.raises(NotFoundError):
            await registry.list_teams(dave, acme)


class TestTeamMembers:
    @pytest.mark.asyncio
    async def test_add_and_remove(self, registry, bob, carol, acme, platform):
        await registry.add_team_member(bob, acme, platform, "carol")
        members = await registry.list_team_members(carol, acme, platform)
        assert [m["username"] for m in members] == ["carol"]

        await registry.remove_team_member(bob, acme, platform, "carol")
        assert await registry.list_team_members(carol, acme, platform) == []

    @pytest.mark.asyncio
    async def test_non_org_member_rejected(self, registry, alice, dave, acme, platform):
        with pytest.raises(ValidationError) as exc_info:
            await registry.add_team_member(alice, acme, platform, "dave")
        assert exc_info.value.field == "username"

    @pytest.mark.asyncio
    async def test_duplicate_add(self, registry, alice, acme, platform):
        await registry.add_team_member(alice, acme, platform, "carol")
        with pytest.raises(ConflictError):
            await registry.add_team_member(alice, acme, platform, "carol")

    @pytest.mark.asyncio
    async def test_remove_non_member(self, registry, alice, acme, platform):
        with pytest.raises(NotFoundError):
            await registry.remove_team_member(alice, acme, platform, "carol")


class TestDeleteTeam:
    @pytest.mark.asyncio
    async def test_team_skills_fall_back_to_org_visibility(
        self, registry, alice, bob, carol, acme, platform
    ):
        await registry.add_team_member(alice, acme, platform, "bob")
        skill = await registry.publish_skill(
            bob, {"name": "deploy-runbook", "org": acme, "team": platform}
        )
        assert skill.visibility == "team"
        assert skill.team_id is not None

        # carol is in the org but not the team
        with pytest.raises(NotFoundError):
            await registry.get_skill(carol, "acme/deploy-runbook")

        rewritten = await registry.delete_team(alice, acme, platform)
        assert rewritten == 1

        skill = await registry.get_skill(carol, "acme/deploy-runbook")
        assert skill.visibility == "org"
        assert skill.team_id is None

    @pytest.mark.asyncio
    async def test_delete_missing_team(self, registry, alice, acme):
        with pytest.raises(NotFoundError):
            await registry.delete_team(alice, acme, "ghost")
