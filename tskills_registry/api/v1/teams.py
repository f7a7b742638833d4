"""
Team API endpoints (scoped to /api/v1/orgs/{orgSlug}/teams).

GET    /                              — List teams
POST   /                              — Create a team (owner/admin)
DELETE /{teamSlug}                    — Delete a team; its skills fall back to org visibility
GET    /{teamSlug}/members            — List team members
POST   /{teamSlug}/members            — Add an org member to the team
DELETE /{teamSlug}/members/{username} — Remove a team member
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from tskills_registry.api.deps import get_principal, get_registry
from tskills_registry.core.auth import Principal
from tskills_registry.services.registry import RegistryService
from tskills_shared.schemas.teams import (
    TeamCreateRequest,
    TeamListResponse,
    TeamMemberAddRequest,
    TeamMemberListResponse,
    TeamMemberResponse,
    TeamResponse,
)

router = APIRouter()


@router.get("", response_model=TeamListResponse)
async def list_teams(
    orgSlug: str,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    teams = await registry.list_teams(principal, orgSlug)
    return TeamListResponse(data=[TeamResponse.model_validate(t) for t in teams])


@router.post("", response_model=TeamResponse, status_code=201)
async def create_team(
    orgSlug: str,
    body: TeamCreateRequest,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    team = await registry.create_team(principal, orgSlug, body)
    return TeamResponse.model_validate(team)


@router.delete("/{teamSlug}", status_code=204)
async def delete_team(
    orgSlug: str,
    teamSlug: str,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    await registry.delete_team(principal, orgSlug, teamSlug)


@router.get("/{teamSlug}/members", response_model=TeamMemberListResponse)
async def list_team_members(
    orgSlug: str,
    teamSlug: str,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    members = await registry.list_team_members(principal, orgSlug, teamSlug)
    return TeamMemberListResponse(data=members)


@router.post("/{teamSlug}/members", response_model=TeamMemberResponse, status_code=201)
async def add_team_member(
    orgSlug: str,
    teamSlug: str,
    body: TeamMemberAddRequest,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    member = await registry.add_team_member(principal, orgSlug, teamSlug, body.username)
    return TeamMemberResponse(
        user_id=member.user_id,
        username=body.username,
        joined_at=member.joined_at,
    )


@router.delete("/{teamSlug}/members/{username}", status_code=204)
async def remove_team_member(
    orgSlug: str,
    teamSlug: str,
    username: str,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    await registry.remove_team_member(principal, orgSlug, teamSlug, username)
