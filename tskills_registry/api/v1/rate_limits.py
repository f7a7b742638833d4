"""
Rate-limit check endpoint.

POST /api/v1/rate-limit/{action} — Count one request against ``action`` and
report the caller's quota. Denials are reported in the body, not as 429.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from tskills_registry.api.deps import get_principal, get_registry
from tskills_registry.core.auth import Principal
from tskills_registry.services.registry import RegistryService
from tskills_shared.schemas.rate_limits import RateLimitResult

router = APIRouter()


def rate_limit_headers(limit, remaining, reset_at, retry_after=None) -> dict[str, str]:
    headers: dict[str, str] = {}
    if limit is not None:
        headers["X-RateLimit-Limit"] = str(limit)
    if remaining is not None:
        headers["X-RateLimit-Remaining"] = str(remaining)
    if reset_at is not None:
        headers["X-RateLimit-Reset"] = str(int(reset_at.timestamp()))
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)
    return headers


@router.post("/{action}", response_model=RateLimitResult)
async def check_rate_limit(
    action: str,
    response: Response,
    principal: Principal = Depends(get_principal),
    registry: RegistryService = Depends(get_registry),
):
    result = await registry.check_rate_limit(principal, action)
    response.headers.update(
        rate_limit_headers(result.limit, result.remaining, result.reset_at, result.retry_after)
    )
    return result
