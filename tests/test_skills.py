"""
Integration tests for skill publishing, versions, deprecation, search and downloads.
"""

from __future__ import annotations

import asyncio

import pytest

from tskills_registry.core.errors import (
    AuthError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ValidationError,
)
from tskills_shared.semver import latest as semver_latest


async def _publish(registry, principal, ref, *versions):
    for version in versions:
        await registry.publish_version(principal, ref, {"version": version, "content": f"# {version}"})


class TestPublishSkill:
    @pytest.mark.asyncio
    async def test_personal_skill_defaults_public(self, registry, alice):
        skill = await registry.publish_skill(
            alice, {"name": "code-review", "description": "Review diffs", "tags": ["review"]}
        )
        assert skill.owner == "alice"
        assert skill.owner_id == alice.user_id
        assert skill.owner_org_id is None
        assert skill.visibility == "public"
        assert skill.latest_version is None

    @pytest.mark.asyncio
    async def test_org_skill_defaults_org(self, registry, carol, acme):
        skill = await registry.publish_skill(carol, {"name": "release-notes", "org": acme})
        assert skill.owner == "acme"
        assert skill.owner_id is None
        assert skill.visibility == "org"

    @pytest.mark.asyncio
    async def test_team_visibility_without_team(self, registry, alice, acme):
        with pytest.raises(ValidationError) as exc_info:
            await registry.publish_skill(alice, {"name": "runbook", "org": acme, "visibility": "team"})
        assert exc_info.value.field == "team"

    @pytest.mark.asyncio
    async def test_private_with_org_owner(self, registry, alice, acme):
        with pytest.raises(ValidationError) as exc_info:
            await registry.publish_skill(alice, {"name": "runbook", "org": acme, "visibility": "private"})
        assert exc_info.value.field == "visibility"

    @pytest.mark.asyncio
    async def test_org_visibility_for_personal_skill(self, registry, alice):
        with pytest.raises(ValidationError):
            await registry.publish_skill(alice, {"name": "runbook", "visibility": "org"})

    @pytest.mark.asyncio
    async def test_team_without_org(self, registry, alice):
        with pytest.raises(ValidationError):
            await registry.publish_skill(alice, {"name": "runbook", "team": "platform"})

    @pytest.mark.asyncio
    async def test_team_with_non_team_visibility(self, registry, alice, acme):
        await registry.create_team(alice, acme, {"slug": "platform", "name": "Platform"})
        with pytest.raises(ValidationError):
            await registry.publish_skill(
                alice, {"name": "runbook", "org": acme, "team": "platform", "visibility": "public"}
            )

    @pytest.mark.asyncio
    async def test_reserved_name(self, registry, alice):
        with pytest.raises(ValidationError) as exc_info:
            await registry.publish_skill(alice, {"name": "publish"})
        assert exc_info.value.field == "name"

    @pytest.mark.asyncio
    async def test_non_member_cannot_publish_to_org(self, registry, dave, acme):
        with pytest.raises(PermissionDeniedError):
            await registry.publish_skill(dave, {"name": "runbook", "org": acme})

    @pytest.mark.asyncio
    async def test_republish_updates_metadata(self, registry, alice):
        await registry.publish_skill(alice, {"name": "notes", "tags": ["a"], "visibility": "private"})
        skill = await registry.publish_skill(alice, {"name": "notes", "description": "Updated"})
        assert skill.description == "Updated"
        assert skill.tags == ["a"]
        assert skill.visibility == "private"

    @pytest.mark.asyncio
    async def test_anonymous_publish_is_rate_limited(self, registry, anonymous):
        with pytest.raises(RateLimitError) as exc_info:
            await registry.publish_skill(anonymous, {"name": "notes"})
        assert exc_info.value.retry_after == 3600
        assert exc_info.value.message == "This action requires authentication"


class TestVersions:
    @pytest.mark.asyncio
    async def test_latest_tracks_insert_and_delete(self, registry, alice):
        await registry.publish_skill(alice, {"name": "notes"})
        ref = "alice/notes"

        await _publish(registry, alice, ref, "1.0.0-2")
        assert (await registry.get_skill(alice, ref)).latest_version == "1.0.0-2"

        await _publish(registry, alice, ref, "1.0.0-11")
        assert (await registry.get_skill(alice, ref)).latest_version == "1.0.0-11"

        await _publish(registry, alice, ref, "1.0.1", "1.0.0")
        assert (await registry.get_skill(alice, ref)).latest_version == "1.0.1"

        assert await registry.delete_version(alice, ref, "1.0.1") == "1.0.0"
        assert (await registry.get_skill(alice, ref)).latest_version == "1.0.0"

        for version in ("1.0.0", "1.0.0-11", "1.0.0-2"):
            await registry.delete_version(alice, ref, version)
        assert (await registry.get_skill(alice, ref)).latest_version is None

    @pytest.mark.asyncio
    async def test_duplicate_version_conflicts(self, registry, alice):
        await registry.publish_skill(alice, {"name": "notes"})
        await _publish(registry, alice, "alice/notes", "1.0.0")
        with pytest.raises(ConflictError):
            await _publish(registry, alice, "alice/notes", "1.0.0")

    @pytest.mark.asyncio
    async def test_list_versions_newest_first(self, registry, alice):
        await registry.publish_skill(alice, {"name": "notes"})
        await _publish(registry, alice, "alice/notes", "0.9.0", "0.10.0", "0.10.0-rc.1")
        versions = await registry.list_versions(alice, "alice/notes")
        assert [v.version for v in versions] == ["0.10.0", "0.10.0-rc.1", "0.9.0"]

    @pytest.mark.asyncio
    async def test_get_version_defaults_to_latest(self, registry, alice, bob):
        await registry.publish_skill(alice, {"name": "notes"})
        await _publish(registry, alice, "alice/notes", "1.0.0", "2.0.0")
        assert (await registry.get_version(bob, "alice/notes")).version == "2.0.0"
        assert (await registry.get_version(bob, "alice/notes", "1.0.0")).content == "# 1.0.0"
        assert (await registry.get_version(bob, "alice/notes@1.0.0")).version == "1.0.0"

    @pytest.mark.asyncio
    async def test_get_version_without_versions(self, registry, alice):
        await registry.publish_skill(alice, {"name": "notes"})
        with pytest.raises(NotFoundError):
            await registry.get_version(alice, "alice/notes")

    @pytest.mark.asyncio
    async def test_invalid_version_string(self, registry, alice):
        await registry.publish_skill(alice, {"name": "notes"})
        with pytest.raises(ValidationError) as exc_info:
            await registry.publish_version(alice, "alice/notes", {"version": "v1", "content": "x"})
        assert exc_info.value.field == "version"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("version", ["1.0.0-\u00b2", "\u0661.0.0"])
    async def test_non_ascii_digits_rejected(self, registry, alice, version):
        await registry.publish_skill(alice, {"name": "notes"})
        await _publish(registry, alice, "alice/notes", "1.0.0")
        with pytest.raises(ValidationError) as exc_info:
            await registry.publish_version(alice, "alice/notes", {"version": version, "content": "x"})
        assert exc_info.value.field == "version"
        versions = await registry.list_versions(alice, "alice/notes")
        assert [v.version for v in versions] == ["1.0.0"]

    @pytest.mark.asyncio
    async def test_hyphenated_prerelease_accepted(self, registry, alice):
        await registry.publish_skill(alice, {"name": "notes"})
        await _publish(registry, alice, "alice/notes", "1.0.0-alpha-1", "1.0.0-alpha")
        skill = await registry.get_skill(alice, "alice/notes")
        assert skill.latest_version == "1.0.0-alpha-1"

    @pytest.mark.asyncio
    async def test_stranger_cannot_publish_version(self, registry, alice, bob):
        await registry.publish_skill(alice, {"name": "notes"})
        with pytest.raises(PermissionDeniedError):
            await _publish(registry, bob, "alice/notes", "1.0.0")

    @pytest.mark.asyncio
    async def test_private_skill_hidden_from_stranger(self, registry, alice, bob):
        await registry.publish_skill(alice, {"name": "notes", "visibility": "private"})
        with pytest.raises(NotFoundError):
            await _publish(registry, bob, "alice/notes", "1.0.0")
        with pytest.raises(NotFoundError):
            await registry.list_versions(bob, "alice/notes")

    @pytest.mark.asyncio
    async def test_org_member_publishes_admin_deletes(self, registry, bob, carol, acme):
        await registry.publish_skill(carol, {"name": "runbook", "org": acme})
        await _publish(registry, carol, "acme/runbook", "1.0.0", "1.1.0")
        with pytest.raises(PermissionDeniedError):
            await registry.delete_version(carol, "acme/runbook", "1.1.0")
        assert await registry.delete_version(bob, "acme/runbook", "1.1.0") == "1.0.0"

    @pytest.mark.asyncio
    async def test_concurrent_publishes_keep_true_maximum(self, registry, alice):
        await registry.publish_skill(alice, {"name": "notes"})
        versions = ["1.0.0", "1.2.0-rc.1", "0.9.9", "1.1.0", "1.2.0-beta.11", "1.0.1", "1.2.0-beta.2", "0.1.0"]

        await asyncio.gather(*(
            registry.publish_version(alice, "alice/notes", {"version": v, "content": v})
            for v in versions
        ))

        skill = await registry.get_skill(alice, "alice/notes")
        assert skill.latest_version == semver_latest(versions) == "1.2.0-rc.1"
        assert len(await registry.list_versions(alice, "alice/notes")) == len(versions)


class TestDeprecation:
    @pytest.mark.asyncio
    async def test_deprecate_and_restore(self, registry, alice):
        await registry.publish_skill(alice, {"name": "notes"})
        skill = await registry.deprecate(
            alice, "alice/notes", {"deprecated": True, "message": "Use notes-v2"}
        )
        assert skill.deprecated is True
        assert skill.deprecation_message == "Use notes-v2"

        skill = await registry.deprecate(alice, "alice/notes", {"deprecated": False, "message": "ignored"})
        assert skill.deprecated is False
        assert skill.deprecation_message is None

    @pytest.mark.asyncio
    async def test_org_member_cannot_deprecate(self, registry, bob, carol, acme):
        await registry.publish_skill(carol, {"name": "runbook", "org": acme})
        with pytest.raises(PermissionDeniedError) as exc_info:
            await registry.deprecate(carol, "acme/runbook", {"deprecated": True})
        assert exc_info.value.required_role == "admin"
        skill = await registry.deprecate(bob, "acme/runbook", {"deprecated": True})
        assert skill.deprecated

    @pytest.mark.asyncio
    async def test_delete_skill(self, registry, alice, bob):
        await registry.publish_skill(alice, {"name": "notes"})
        await _publish(registry, alice, "alice/notes", "1.0.0")
        with pytest.raises(PermissionDeniedError):
            await registry.delete_skill(bob, "alice/notes")
        await registry.delete_skill(alice, "alice/notes")
        with pytest.raises(NotFoundError):
            await registry.get_skill(alice, "alice/notes")


class TestSearch:
    @pytest.fixture
    async def catalog(self, registry, alice, bob, carol, acme):
        await registry.create_team(alice, acme, {"slug": "platform", "name": "Platform"})
        await registry.add_team_member(alice, acme, "platform", "bob")
        await registry.publish_skill(alice, {"name": "code-review", "description": "Review pull requests",
                                             "tags": ["review"], "tools": ["claude"]})
        await registry.publish_skill(alice, {"name": "diary", "visibility": "private"})
        await registry.publish_skill(carol, {"name": "release-notes", "org": acme, "tags": ["docs"]})
        await registry.publish_skill(bob, {"name": "deploy-runbook", "org": acme, "team": "platform",
                                           "tools": ["cursor"]})

    async def _names(self, registry, principal, **params):
        return sorted(s.name for s in await registry.search(principal, params))

    @pytest.mark.asyncio
    async def test_anonymous_sees_public_only(self, registry, anonymous, catalog):
        assert await self._names(registry, anonymous) == ["code-review"]

    @pytest.mark.asyncio
    async def test_owner_sees_private(self, registry, alice, catalog):
        assert await self._names(registry, alice) == ["code-review", "diary", "release-notes"]

    @pytest.mark.asyncio
    async def test_team_member_sees_team_skill(self, registry, bob, carol, catalog):
        assert "deploy-runbook" in await self._names(registry, bob)
        assert "deploy-runbook" not in await self._names(registry, carol)

    @pytest.mark.asyncio
    async def test_outsider(self, registry, dave, catalog):
        assert await self._names(registry, dave) == ["code-review"]

    @pytest.mark.asyncio
    async def test_query_matches_description_case_insensitive(self, registry, dave, catalog):
        assert await self._names(registry, dave, query="PULL") == ["code-review"]
        assert await self._names(registry, dave, query="nothing-like-this") == []

    @pytest.mark.asyncio
    async def test_query_wildcards_are_stripped(self, registry, alice, catalog):
        assert await self._names(registry, alice, query="%") == ["code-review", "diary", "release-notes"]
        assert await self._names(registry, alice, query="code_review") == []

    @pytest.mark.asyncio
    async def test_tag_and_tool_filters(self, registry, bob, catalog):
        assert await self._names(registry, bob, tags=["docs"]) == ["release-notes"]
        assert await self._names(registry, bob, tools=["cursor", "claude"]) == ["code-review", "deploy-runbook"]

    @pytest.mark.asyncio
    async def test_ordering_and_paging(self, registry, alice, bob, catalog):
        await registry.record_download(bob, "acme/release-notes")
        results = await registry.search(alice, {"limit": 2})
        assert [s.name for s in results] == ["release-notes", "code-review"]
        results = await registry.search(alice, {"limit": 2, "offset": 2})
        assert [s.name for s in results] == ["diary"]

    @pytest.mark.asyncio
    async def test_limit_bounds(self, registry, alice):
        with pytest.raises(ValidationError):
            await registry.search(alice, {"limit": 500})


class TestDownloads:
    @pytest.mark.asyncio
    async def test_counts_authenticated_viewers(self, registry, alice, bob):
        await registry.publish_skill(alice, {"name": "notes"})
        assert await registry.record_download(bob, "alice/notes") is True
        assert await registry.record_download(bob, "alice/notes") is True
        assert (await registry.get_skill(alice, "alice/notes")).downloads == 2

    @pytest.mark.asyncio
    async def test_anonymous_is_noop(self, registry, alice, anonymous):
        await registry.publish_skill(alice, {"name": "notes"})
        assert await registry.record_download(anonymous, "alice/notes") is False
        assert (await registry.get_skill(alice, "alice/notes")).downloads == 0

    @pytest.mark.asyncio
    async def test_hidden_skill_is_noop(self, registry, alice, bob):
        await registry.publish_skill(alice, {"name": "notes", "visibility": "private"})
        assert await registry.record_download(bob, "alice/notes") is False
        assert (await registry.get_skill(alice, "alice/notes")).downloads == 0


class TestAuthRequired:
    @pytest.mark.asyncio
    async def test_anonymous_cannot_create_org(self, registry, anonymous):
        with pytest.raises(AuthError):
            await registry.create_organization(anonymous, {"slug": "acme", "name": "Acme"})

    @pytest.mark.asyncio
    async def test_bad_skill_ref(self, registry, alice):
        with pytest.raises(ValidationError) as exc_info:
            await registry.get_skill(alice, "not-a-ref")
        assert exc_info.value.field == "skill"
