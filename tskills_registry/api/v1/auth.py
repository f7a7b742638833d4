"""
Auth endpoints.

GET /auth/whoami — Resolve the bearer token (if any) to the calling user.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from tskills_registry.api.deps import get_principal, get_registry
from tskills_registry.core.auth import Principal
from tskills_registry.services.registry import RegistryService
from tskills_shared.schemas.users import UserResponse, WhoAmIResponse

router = APIRouter()


@router.get("/whoami", response_model=WhoAmIResponse)
async def whoami(
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    user = await registry.get_user(principal)
    if user is None:
        return WhoAmIResponse(authenticated=False)
    return WhoAmIResponse(authenticated=True, user=UserResponse.model_validate(user))
