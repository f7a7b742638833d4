"""
Skill and version API endpoints.

GET    /api/v1/skills                                     — Search visible skills
POST   /api/v1/skills                                     — Create or update a skill
GET    /api/v1/skills/{owner}/{name}                      — Get a skill
DELETE /api/v1/skills/{owner}/{name}                      — Delete a skill
GET    /api/v1/skills/{owner}/{name}/versions             — List versions (newest first)
POST   /api/v1/skills/{owner}/{name}/versions             — Publish a version
GET    /api/v1/skills/{owner}/{name}/versions/latest      — Latest version
GET    /api/v1/skills/{owner}/{name}/versions/{version}   — A specific version
DELETE /api/v1/skills/{owner}/{name}/versions/{version}   — Retract a version
PUT    /api/v1/skills/{owner}/{name}/deprecation          — Deprecate / un-deprecate
POST   /api/v1/skills/{owner}/{name}/downloads            — Record a download
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from tskills_registry.api.deps import get_principal, get_registry
from tskills_registry.core.auth import Principal
from tskills_registry.services.registry import RegistryService
from tskills_shared.schemas.skills import (
    MAX_SEARCH_LIMIT,
    DeprecateRequest,
    DownloadResponse,
    SearchParams,
    SkillListResponse,
    SkillPublishRequest,
    SkillResponse,
    VersionListResponse,
    VersionPublishRequest,
    VersionResponse,
    VersionSummary,
)

router = APIRouter()


@router.get("", response_model=SkillListResponse)
async def search_skills(
    query: Optional[str] = Query(default=None, max_length=200),
    tags: list[str] = Query(default=[]),
    tools: list[str] = Query(default=[]),
    limit: int = Query(default=20, ge=1, le=MAX_SEARCH_LIMIT),
    offset: int = Query(default=0, ge=0),
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    params = SearchParams(query=query, tags=tags, tools=tools, limit=limit, offset=offset)
    skills = await registry.search(principal, params)
    return SkillListResponse(data=[SkillResponse.model_validate(s) for s in skills])


@router.post("", response_model=SkillResponse)
async def publish_skill(
    body: SkillPublishRequest,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    skill = await registry.publish_skill(principal, body)
    return SkillResponse.model_validate(skill)


@router.get("/{owner}/{name}", response_model=SkillResponse)
async def get_skill(
    owner: str,
    name: str,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    skill = await registry.get_skill(principal, f"{owner}/{name}")
    return SkillResponse.model_validate(skill)


@router.delete("/{owner}/{name}", status_code=204)
async def delete_skill(
    owner: str,
    name: str,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    await registry.delete_skill(principal, f"{owner}/{name}")


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------

@router.get("/{owner}/{name}/versions", response_model=VersionListResponse)
async def list_versions(
    owner: str,
    name: str,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    versions = await registry.list_versions(principal, f"{owner}/{name}")
    return VersionListResponse(data=[VersionSummary.model_validate(v) for v in versions])


@router.post("/{owner}/{name}/versions", response_model=VersionResponse, status_code=201)
async def publish_version(
    owner: str,
    name: str,
    body: VersionPublishRequest,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    version = await registry.publish_version(principal, f"{owner}/{name}", body)
    return VersionResponse.model_validate(version)


@router.get("/{owner}/{name}/versions/latest", response_model=VersionResponse)
async def get_latest_version(
    owner: str,
    name: str,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    version = await registry.get_version(principal, f"{owner}/{name}")
    return VersionResponse.model_validate(version)


@router.get("/{owner}/{name}/versions/{version}", response_model=VersionResponse)
async def get_version(
    owner: str,
    name: str,
    version: str,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    row = await registry.get_version(principal, f"{owner}/{name}", version)
    return VersionResponse.model_validate(row)


@router.delete("/{owner}/{name}/versions/{version}", status_code=204)
async def delete_version(
    owner: str,
    name: str,
    version: str,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    await registry.delete_version(principal, f"{owner}/{name}", version)


# ---------------------------------------------------------------------------
# Deprecation & downloads
# ---------------------------------------------------------------------------

@router.put("/{owner}/{name}/deprecation", response_model=SkillResponse)
async def set_deprecation(
    owner: str,
    name: str,
    body: DeprecateRequest,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    skill = await registry.deprecate(principal, f"{owner}/{name}", body)
    return SkillResponse.model_validate(skill)


@router.post("/{owner}/{name}/downloads", response_model=DownloadResponse)
async def record_download(
    owner: str,
    name: str,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    """Count a download. Anonymous calls are accepted but not counted."""
    counted = await registry.record_download(principal, f"{owner}/{name}")
    return DownloadResponse(counted=counted)
