"""
Registry service: the single entry point for every registry operation.

Each call runs in one transaction on the injected ``Database``:

1. publish-class and search calls pass the rate limiter first (its counter
   commits on its own, before the guarded work);
2. the caller's memberships are re-read so role changes apply immediately;
3. the policy engine decides, then the store services write.

Uniqueness violations raised by the store surface as ``ConflictError``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional, TypeVar, Union

import pydantic
import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tskills_registry.core import auth, policy
from tskills_registry.core.auth import Principal
from tskills_registry.core.config import Settings, get_settings
from tskills_registry.core.database import Database
from tskills_registry.core.errors import (
    AuthError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from tskills_registry.core.policy import ManageAction
from tskills_registry.models.org_member import OrgMember
from tskills_registry.models.organization import Organization
from tskills_registry.models.skill import Skill
from tskills_registry.models.skill_version import SkillVersion
from tskills_registry.models.team import Team
from tskills_registry.models.team_member import TeamMember
from tskills_registry.models.user import User
from tskills_registry.services import organizations as org_service
from tskills_registry.services import skills as skill_service
from tskills_registry.services import teams as team_service
from tskills_registry.services import users as user_service
from tskills_registry.services import versions as version_service
from tskills_registry.services.rate_limit import RateLimiter
from tskills_shared.schemas.common import OrgRole, RateLimitAction, SkillRef, Visibility, parse_skill_ref
from tskills_shared.schemas.organizations import MemberAddRequest, OrgCreateRequest
from tskills_shared.schemas.rate_limits import RateLimitResult
from tskills_shared.schemas.skills import (
    DeprecateRequest,
    SearchParams,
    SkillPublishRequest,
    VersionPublishRequest,
)
from tskills_shared.schemas.teams import TeamCreateRequest
from tskills_shared.schemas.users import IdentitySync

log = structlog.get_logger()

M = TypeVar("M", bound=pydantic.BaseModel)


def _parse(model: type[M], data: Union[M, dict[str, Any]]) -> M:
    """Accept a request model or a plain dict; pydantic errors become ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc


def _ref(ref: Union[str, SkillRef]) -> SkillRef:
    if isinstance(ref, SkillRef):
        return ref
    try:
        return parse_skill_ref(ref)
    except ValueError as exc:
        raise ValidationError(str(exc), field="skill") from exc


def _role(role: Union[str, OrgRole]) -> OrgRole:
    try:
        return OrgRole(role)
    except ValueError as exc:
        raise ValidationError(f"Unknown role: {role}", field="role") from exc


@dataclass
class OrgContext:
    org: Organization
    role: OrgRole


class RegistryService:
    """Orchestrates identity, authorization, versioning and rate limiting."""

    def __init__(
        self,
        db: Database,
        limiter: Optional[RateLimiter] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.limiter = limiter or RateLimiter(
            db, cleanup_probability=self.settings.rate_limit_cleanup_probability
        )

    # -----------------------------------------------------------------------
    # Plumbing
    # -----------------------------------------------------------------------

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.db.transaction() as session:
                yield session
        except IntegrityError as exc:
            log.warning("registry.integrity_conflict", error=str(exc.orig))
            raise ConflictError("The change conflicts with an existing record") from exc

    async def _refresh(self, principal: Principal, session: AsyncSession) -> Principal:
        if not principal.is_authenticated:
            return principal
        user = await session.get(User, principal.user_id)
        if user is None:
            raise AuthError("User not found")
        return await auth.load_principal(user, session, anonymous_id=principal.anonymous_id)

    @staticmethod
    def _require_user(principal: Principal) -> None:
        if not principal.is_authenticated:
            raise AuthError("Authentication required")

    async def _enforce(self, principal: Principal, action: RateLimitAction) -> RateLimitResult:
        return await self.limiter.enforce(
            principal.rate_limit_identifier, action.value, principal.is_authenticated
        )

    async def _org_context(
        self, principal: Principal, slug: str, session: AsyncSession
    ) -> OrgContext:
        """Resolve an org the caller belongs to. Non-members get NotFound."""
        org = await org_service.get_org_by_slug(slug, session)
        role = principal.role_in(org.id)
        if role is None:
            raise NotFoundError(f"Organization not found: {slug}", resource="organization")
        return OrgContext(org=org, role=role)

    async def _managed_org(
        self, principal: Principal, slug: str, session: AsyncSession
    ) -> OrgContext:
        ctx = await self._org_context(principal, slug, session)
        if not policy.can_manage_org(ctx.role):
            raise PermissionDeniedError(
                f"Managing {slug} requires the owner or admin role",
                required_role=OrgRole.ADMIN.value,
            )
        return ctx

    async def _viewable_skill(
        self, principal: Principal, ref: SkillRef, session: AsyncSession
    ) -> Skill:
        skill = await skill_service.find_skill(ref.owner, ref.name, session)
        if skill is None or not policy.can_view(principal, skill):
            raise NotFoundError(f"Skill not found: {ref.owner}/{ref.name}", resource="skill")
        return skill

    async def _managed_skill(
        self,
        principal: Principal,
        ref: SkillRef,
        action: ManageAction,
        session: AsyncSession,
    ) -> Skill:
        skill = await skill_service.find_skill(ref.owner, ref.name, session)
        visible = skill is not None and (
            policy.can_view(principal, skill)
            or policy.can_manage(principal, skill, ManageAction.CONTENT)
        )
        if not visible:
            raise NotFoundError(f"Skill not found: {ref.owner}/{ref.name}", resource="skill")
        if not policy.can_manage(principal, skill, action):
            if skill.owner_org_id is None:
                raise PermissionDeniedError(
                    f"Only the owner can modify {ref.owner}/{ref.name}",
                    required_role="skill_owner",
                )
            if action == ManageAction.CONTENT:
                raise PermissionDeniedError(
                    f"Modifying {ref.owner}/{ref.name} requires membership in {ref.owner}",
                    required_role=OrgRole.MEMBER.value,
                )
            raise PermissionDeniedError(
                f"Deprecating or deleting {ref.owner}/{ref.name} requires the owner or admin role",
                required_role=OrgRole.ADMIN.value,
            )
        return skill

    # -----------------------------------------------------------------------
    # Identity
    # -----------------------------------------------------------------------

    async def authenticate(
        self, token: Optional[str], anonymous_id: Optional[str] = None
    ) -> Principal:
        async with self._transaction() as session:
            return await auth.authenticate(
                token, session, anonymous_id=anonymous_id, settings=self.settings
            )

    async def sync_identity(self, identity: Union[IdentitySync, dict[str, Any]]) -> User:
        """Trusted path for the login flow; not exposed over HTTP."""
        identity = _parse(IdentitySync, identity)
        async with self._transaction() as session:
            return await user_service.sync_identity(identity, session)

    async def get_user(self, principal: Principal) -> Optional[User]:
        if not principal.is_authenticated:
            return None
        async with self._transaction() as session:
            return await user_service.get_user(principal.user_id, session)

    # -----------------------------------------------------------------------
    # Organizations & memberships
    # -----------------------------------------------------------------------

    async def list_organizations(self, principal: Principal) -> list[dict]:
        self._require_user(principal)
        async with self._transaction() as session:
            return await org_service.list_user_orgs(principal.user_id, session)

    async def get_organization(self, principal: Principal, slug: str) -> Organization:
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            return (await self._org_context(principal, slug, session)).org

    async def create_organization(
        self, principal: Principal, req: Union[OrgCreateRequest, dict[str, Any]]
    ) -> Organization:
        req = _parse(OrgCreateRequest, req)
        self._require_user(principal)
        async with self._transaction() as session:
            await self._refresh(principal, session)
            return await org_service.create_org(req, principal.user_id, session)

    async def delete_organization(self, principal: Principal, slug: str) -> None:
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            ctx = await self._org_context(principal, slug, session)
            if not policy.can_delete_org(ctx.role):
                raise PermissionDeniedError(
                    f"Deleting {slug} requires the owner role",
                    required_role=OrgRole.OWNER.value,
                )
            await org_service.delete_org(ctx.org, session)

    async def list_members(self, principal: Principal, slug: str) -> list[dict]:
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            ctx = await self._org_context(principal, slug, session)
            return await org_service.list_members(ctx.org.id, session)

    async def add_member(
        self, principal: Principal, slug: str, req: Union[MemberAddRequest, dict[str, Any]]
    ) -> OrgMember:
        req = _parse(MemberAddRequest, req)
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            ctx = await self._org_context(principal, slug, session)
            user = await user_service.get_user_by_username(req.username, session)
            return await org_service.add_member(ctx.org, ctx.role, user, req.role, session)

    async def set_member_role(
        self,
        principal: Principal,
        slug: str,
        username: str,
        role: Union[OrgRole, str],
    ) -> OrgMember:
        new_role = _role(role)
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            ctx = await self._org_context(principal, slug, session)
            target = await user_service.get_user_by_username(username, session)
            return await org_service.set_member_role(ctx.org, ctx.role, target.id, new_role, session)

    async def remove_member(self, principal: Principal, slug: str, username: str) -> None:
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            ctx = await self._org_context(principal, slug, session)
            target = await user_service.get_user_by_username(username, session)
            await org_service.remove_member(
                ctx.org, principal.user_id, ctx.role, target.id, session
            )

    # -----------------------------------------------------------------------
    # Teams
    # -----------------------------------------------------------------------

    async def list_teams(self, principal: Principal, slug: str) -> list[Team]:
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            ctx = await self._org_context(principal, slug, session)
            return await team_service.list_teams(ctx.org.id, session)

    async def create_team(
        self, principal: Principal, slug: str, req: Union[TeamCreateRequest, dict[str, Any]]
    ) -> Team:
        req = _parse(TeamCreateRequest, req)
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            ctx = await self._managed_org(principal, slug, session)
            return await team_service.create_team(ctx.org, req, session)

    async def delete_team(self, principal: Principal, slug: str, team_slug: str) -> int:
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            ctx = await self._managed_org(principal, slug, session)
            team = await team_service.get_team(ctx.org.id, team_slug, session)
            return await team_service.delete_team(team, session)

    async def list_team_members(
        self, principal: Principal, slug: str, team_slug: str
    ) -> list[dict]:
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            ctx = await self._org_context(principal, slug, session)
            team = await team_service.get_team(ctx.org.id, team_slug, session)
            return await team_service.list_team_members(team.id, session)

    async def add_team_member(
        self, principal: Principal, slug: str, team_slug: str, username: str
    ) -> TeamMember:
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            ctx = await self._managed_org(principal, slug, session)
            team = await team_service.get_team(ctx.org.id, team_slug, session)
            user = await user_service.get_user_by_username(username, session)
            return await team_service.add_team_member(team, user, session)

    async def remove_team_member(
        self, principal: Principal, slug: str, team_slug: str, username: str
    ) -> None:
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            ctx = await self._managed_org(principal, slug, session)
            team = await team_service.get_team(ctx.org.id, team_slug, session)
            user = await user_service.get_user_by_username(username, session)
            await team_service.remove_team_member(team, user, session)

    # -----------------------------------------------------------------------
    # Skills
    # -----------------------------------------------------------------------

    async def publish_skill(
        self, principal: Principal, req: Union[SkillPublishRequest, dict[str, Any]]
    ) -> Skill:
        """Create a skill or update its metadata.

        The owner is the caller, or the org named by ``req.org``. Visibility
        defaults to ``team`` when a team is named, ``org`` for org skills and
        ``public`` otherwise; an existing skill keeps its visibility unless
        one is given.
        """
        req = _parse(SkillPublishRequest, req)
        await self._enforce(principal, RateLimitAction.PUBLISH)
        self._require_user(principal)

        async with self._transaction() as session:
            principal = await self._refresh(principal, session)

            org: Optional[Organization] = None
            team: Optional[Team] = None
            if req.org:
                org = await org_service.get_org_by_slug(req.org, session)
                if not policy.can_publish_to_org(principal.role_in(org.id)):
                    raise PermissionDeniedError(
                        f"Publishing to {org.slug} requires membership",
                        required_role=OrgRole.MEMBER.value,
                    )
                if req.team:
                    team = await team_service.get_team(org.id, req.team, session)
            elif req.team:
                raise ValidationError("A team can only be used with an organization", field="team")

            owner = org.slug if org else principal.username
            existing = await skill_service.find_skill(owner, req.name, session)

            if existing is None:
                visibility = req.visibility or (
                    Visibility.TEAM if team else Visibility.ORG if org else Visibility.PUBLIC
                )
                team_id = team.id if team else None
            else:
                if not policy.can_manage(principal, existing, ManageAction.CONTENT):
                    raise PermissionDeniedError(
                        f"You do not have permission to update {owner}/{req.name}",
                        required_role=OrgRole.MEMBER.value if org else "skill_owner",
                    )
                visibility = req.visibility or (
                    Visibility.TEAM if team else Visibility(existing.visibility)
                )
                team_id = team.id if team else existing.team_id

            if visibility != Visibility.TEAM:
                if team is not None:
                    raise ValidationError(
                        "A team can only be set with team visibility", field="team"
                    )
                team_id = None
            _check_visibility(visibility, org, team_id)

            if existing is None:
                skill = Skill(
                    owner=owner,
                    owner_id=None if org else principal.user_id,
                    owner_org_id=org.id if org else None,
                    team_id=team_id,
                    name=req.name,
                    description=req.description or "",
                    visibility=visibility.value,
                    tools=req.tools or [],
                    tags=req.tags or [],
                )
                return await skill_service.create_skill(skill, session)

            changes: dict[str, Any] = {"visibility": visibility.value, "team_id": team_id}
            if req.description is not None:
                changes["description"] = req.description
            if req.tools is not None:
                changes["tools"] = req.tools
            if req.tags is not None:
                changes["tags"] = req.tags
            return await skill_service.update_skill(existing, changes, session)

    async def get_skill(self, principal: Principal, ref: Union[str, SkillRef]) -> Skill:
        ref = _ref(ref)
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            return await self._viewable_skill(principal, ref, session)

    async def delete_skill(self, principal: Principal, ref: Union[str, SkillRef]) -> None:
        ref = _ref(ref)
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            skill = await self._managed_skill(principal, ref, ManageAction.DESTRUCTIVE, session)
            await skill_service.delete_skill(skill, session)

    async def deprecate(
        self,
        principal: Principal,
        ref: Union[str, SkillRef],
        req: Union[DeprecateRequest, dict[str, Any]],
    ) -> Skill:
        req = _parse(DeprecateRequest, req)
        ref = _ref(ref)
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            skill = await self._managed_skill(principal, ref, ManageAction.DESTRUCTIVE, session)
            return await skill_service.set_deprecation(skill, req.deprecated, req.message, session)

    async def search(
        self, principal: Principal, params: Union[SearchParams, dict[str, Any], None] = None
    ) -> list[Skill]:
        params = _parse(SearchParams, params or {})
        await self._enforce(principal, RateLimitAction.API)
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            return await skill_service.search_skills(principal, params, session)

    async def record_download(self, principal: Principal, ref: Union[str, SkillRef]) -> bool:
        """Count a download. Anonymous or unauthorized callers are a no-op."""
        ref = _ref(ref)
        if not principal.is_authenticated:
            return False
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            skill = await skill_service.find_skill(ref.owner, ref.name, session)
            if skill is None or not policy.can_view(principal, skill):
                return False
            await skill_service.increment_downloads(skill.id, session)
            return True

    # -----------------------------------------------------------------------
    # Versions
    # -----------------------------------------------------------------------

    async def publish_version(
        self,
        principal: Principal,
        ref: Union[str, SkillRef],
        req: Union[VersionPublishRequest, dict[str, Any]],
    ) -> SkillVersion:
        req = _parse(VersionPublishRequest, req)
        ref = _ref(ref)
        await self._enforce(principal, RateLimitAction.PUBLISH)
        self._require_user(principal)

        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            skill = await self._managed_skill(principal, ref, ManageAction.CONTENT, session)
            return await version_service.publish_version(skill, req, principal.user_id, session)

    async def get_version(
        self,
        principal: Principal,
        ref: Union[str, SkillRef],
        version: Optional[str] = None,
    ) -> SkillVersion:
        """A specific version, or the latest when ``version`` is omitted
        (also taken from an ``owner/name@version`` ref)."""
        ref = _ref(ref)
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            skill = await self._viewable_skill(principal, ref, session)
            return await version_service.get_version(skill, version or ref.version, session)

    async def list_versions(
        self, principal: Principal, ref: Union[str, SkillRef]
    ) -> list[SkillVersion]:
        ref = _ref(ref)
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            skill = await self._viewable_skill(principal, ref, session)
            return await version_service.list_versions(skill.id, session)

    async def delete_version(
        self, principal: Principal, ref: Union[str, SkillRef], version: str
    ) -> Optional[str]:
        ref = _ref(ref)
        async with self._transaction() as session:
            principal = await self._refresh(principal, session)
            skill = await self._managed_skill(principal, ref, ManageAction.DESTRUCTIVE, session)
            return await version_service.delete_version(skill, version, session)

    # -----------------------------------------------------------------------
    # Rate limits
    # -----------------------------------------------------------------------

    async def check_rate_limit(
        self, principal: Principal, action: Union[RateLimitAction, str]
    ) -> RateLimitResult:
        action = action.value if isinstance(action, RateLimitAction) else action
        return await self.limiter.check(
            principal.rate_limit_identifier, action, principal.is_authenticated
        )


def _check_visibility(
    visibility: Visibility, org: Optional[Organization], team_id: Any
) -> None:
    if visibility == Visibility.TEAM and team_id is None:
        raise ValidationError("Team visibility requires a team", field="team")
    if visibility == Visibility.PRIVATE and org is not None:
        raise ValidationError(
            "Private visibility is only available for personal skills", field="visibility"
        )
    if visibility in (Visibility.ORG, Visibility.TEAM) and org is None:
        raise ValidationError(
            f"{visibility.value.capitalize()} visibility requires an organization owner",
            field="visibility",
        )
