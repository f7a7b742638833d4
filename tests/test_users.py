"""
Identity sync tests: first login, profile refresh and username propagation.
"""

from __future__ import annotations

import pytest

from tskills_registry.core.errors import ConflictError, ValidationError


class TestSyncIdentity:
    @pytest.mark.asyncio
    async def test_first_login_creates_user(self, registry):
        user = await registry.sync_identity(
            {"github_id": 42, "username": "octo", "email": "octo@example.com"}
        )
        assert user.username == "octo"
        assert user.email == "octo@example.com"

    @pytest.mark.asyncio
    async def test_second_login_updates_same_user(self, registry):
        first = await registry.sync_identity({"github_id": 42, "username": "octo"})
        second = await registry.sync_identity(
            {"github_id": 42, "username": "octo", "avatar_url": "https://avatars.example/42"}
        )
        assert second.id == first.id
        assert second.avatar_url == "https://avatars.example/42"

    @pytest.mark.asyncio
    async def test_username_taken_by_other_user(self, registry, alice):
        with pytest.raises(ConflictError):
            await registry.sync_identity({"github_id": 999, "username": "Alice"})

    @pytest.mark.asyncio
    async def test_invalid_username(self, registry):
        with pytest.raises(ValidationError) as exc_info:
            await registry.sync_identity({"github_id": 7, "username": "9lives"})
        assert exc_info.value.field == "username"


class TestUsernamePropagation:
    @pytest.mark.asyncio
    async def test_rename_rewrites_owner_of_personal_skills(self, registry, alice, acme):
        await registry.publish_skill(alice, {"name": "notes"})
        await registry.publish_skill(alice, {"name": "runbook", "org": acme})

        await registry.sync_identity({"github_id": 1, "username": "alice-renamed"})

        skill = await registry.get_skill(alice, "alice-renamed/notes")
        assert skill.owner == "alice-renamed"
        org_skill = await registry.get_skill(alice, "acme/runbook")
        assert org_skill.owner == "acme"

    @pytest.mark.asyncio
    async def test_refreshed_principal_uses_new_name(self, registry, alice):
        await registry.sync_identity({"github_id": 1, "username": "alice2"})
        skill = await registry.publish_skill(alice, {"name": "fresh"})
        assert skill.owner == "alice2"


class TestOwnerNamespace:
    @pytest.mark.asyncio
    async def test_new_user_cannot_take_org_slug(self, registry, alice, acme):
        await registry.publish_skill(alice, {"name": "runbook", "org": acme})
        with pytest.raises(ConflictError):
            await registry.sync_identity({"github_id": 99, "username": "ACME"})

        skill = await registry.get_skill(alice, "acme/runbook")
        assert skill.owner_org_id is not None
        assert skill.owner_id is None

    @pytest.mark.asyncio
    async def test_rename_to_org_slug_rejected(self, registry, alice, acme):
        await registry.publish_skill(alice, {"name": "notes"})
        with pytest.raises(ConflictError):
            await registry.sync_identity({"github_id": 1, "username": "acme"})

        skill = await registry.get_skill(alice, "alice/notes")
        assert skill.owner == "alice"

    @pytest.mark.asyncio
    async def test_case_only_rename_allowed(self, registry, alice):
        user = await registry.sync_identity({"github_id": 1, "username": "Alice"})
        assert user.username == "Alice"
