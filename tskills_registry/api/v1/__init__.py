"""
API v1 Router

Org-scoped endpoints are prefixed with /orgs/{orgSlug}; skills are addressed
as /skills/{owner}/{name}.
"""

from fastapi import APIRouter
from . import organizations, rate_limits, skills, teams

router = APIRouter()

router.include_router(organizations.router, prefix="/orgs", tags=["Organizations"])
router.include_router(teams.router, prefix="/orgs/{orgSlug}/teams", tags=["Teams"])
router.include_router(skills.router, prefix="/skills", tags=["Skills"])
router.include_router(rate_limits.router, prefix="/rate-limit", tags=["Rate Limits"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/orgs",
            "/orgs/{orgSlug}/members",
            "/orgs/{orgSlug}/teams",
            "/skills",
            "/skills/{owner}/{name}/versions",
            "/rate-limit/{action}",
        ],
    }
