"""
Organization and membership API endpoints.

GET    /api/v1/orgs                               — List orgs for authenticated user
POST   /api/v1/orgs                               — Create a new org (creator becomes owner)
GET    /api/v1/orgs/{orgSlug}                     — Get org details (members only)
DELETE /api/v1/orgs/{orgSlug}                     — Delete org (owner only)
GET    /api/v1/orgs/{orgSlug}/members             — List members
POST   /api/v1/orgs/{orgSlug}/members             — Add a member
PATCH  /api/v1/orgs/{orgSlug}/members/{username}  — Change a member's role
DELETE /api/v1/orgs/{orgSlug}/members/{username}  — Remove a member (or leave)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from tskills_registry.api.deps import get_principal, get_registry
from tskills_registry.core.auth import Principal
from tskills_registry.services.registry import RegistryService
from tskills_shared.schemas.organizations import (
    MemberAddRequest,
    MemberListResponse,
    MemberResponse,
    MemberRoleUpdateRequest,
    OrgCreateRequest,
    OrgListResponse,
    OrgResponse,
)

router = APIRouter()


@router.get("", response_model=OrgListResponse)
async def list_orgs(
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    """List orgs the authenticated user belongs to, with their role."""
    items = await registry.list_organizations(principal)
    return OrgListResponse(data=items)


@router.post("", response_model=OrgResponse, status_code=201)
async def create_org(
    body: OrgCreateRequest,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    org = await registry.create_organization(principal, body)
    return OrgResponse.model_validate(org)


@router.get("/{orgSlug}", response_model=OrgResponse)
async def get_org(
    orgSlug: str,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    org = await registry.get_organization(principal, orgSlug)
    return OrgResponse.model_validate(org)


@router.delete("/{orgSlug}", status_code=204)
async def delete_org(
    orgSlug: str,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    """Delete the org with its teams and org-owned skills (owner only)."""
    await registry.delete_organization(principal, orgSlug)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@router.get("/{orgSlug}/members", response_model=MemberListResponse)
async def list_members(
    orgSlug: str,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    members = await registry.list_members(principal, orgSlug)
    return MemberListResponse(data=members)


@router.post("/{orgSlug}/members", response_model=MemberResponse, status_code=201)
async def add_member(
    orgSlug: str,
    body: MemberAddRequest,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    member = await registry.add_member(principal, orgSlug, body)
    return MemberResponse(
        user_id=member.user_id,
        username=body.username,
        role=member.role,
        joined_at=member.joined_at,
    )


@router.patch("/{orgSlug}/members/{username}", response_model=MemberResponse)
async def update_member_role(
    orgSlug: str,
    username: str,
    body: MemberRoleUpdateRequest,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    """Only an owner may grant or revoke the owner role."""
    member = await registry.set_member_role(principal, orgSlug, username, body.role)
    return MemberResponse(
        user_id=member.user_id,
        username=username,
        role=member.role,
        joined_at=member.joined_at,
    )


@router.delete("/{orgSlug}/members/{username}", status_code=204)
async def remove_member(
    orgSlug: str,
    username: str,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    await registry.remove_member(principal, orgSlug, username)
