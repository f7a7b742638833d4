"""
FastAPI dependencies: the registry service and the calling principal.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tskills_registry.core.auth import Principal
from tskills_registry.services.registry import RegistryService

bearer_scheme = HTTPBearer(auto_error=False)

ANONYMOUS_ID_HEADER = "X-Anonymous-Id"


def get_registry(request: Request) -> RegistryService:
    return request.app.state.registry


async def get_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    registry: RegistryService = Depends(get_registry),
) -> Principal:
    """Bearer token -> Principal; no token -> anonymous.

    Anonymous callers are throttled by a client-supplied random id, falling
    back to the client address. This is a soft throttle, not an identity.
    """
    anonymous_id = request.headers.get(ANONYMOUS_ID_HEADER)
    if not anonymous_id and request.client:
        anonymous_id = request.client.host
    token = credentials.credentials if credentials else None
    return await registry.authenticate(token, anonymous_id)
