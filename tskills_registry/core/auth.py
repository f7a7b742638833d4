"""
Authentication for the registry.

- JWT issue/verify (HS256, ``sub`` = user id)
- ``Principal``: who is calling, with their org roles and team memberships
- ``authenticate``: bearer token -> Principal (anonymous when no token)

Interactive login lives outside the registry; it only hands over verified
identity claims via ``RegistryService.sync_identity``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from tskills_registry.core.config import Settings, get_settings
from tskills_registry.core.errors import AuthError
from tskills_registry.models.org_member import OrgMember
from tskills_registry.models.team_member import TeamMember
from tskills_registry.models.user import User
from tskills_shared.schemas.common import OrgRole

log = structlog.get_logger()

ANONYMOUS_PREFIX = "anon:"


# ---------------------------------------------------------------------------
# Principal
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Principal:
    """The caller of a registry operation."""

    user_id: Optional[uuid.UUID] = None
    username: Optional[str] = None
    anonymous_id: Optional[str] = None
    org_roles: dict[uuid.UUID, OrgRole] = field(default_factory=dict)
    team_ids: frozenset[uuid.UUID] = frozenset()

    @classmethod
    def anonymous(cls, anonymous_id: Optional[str] = None) -> "Principal":
        return cls(anonymous_id=anonymous_id)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def rate_limit_identifier(self) -> str:
        if self.user_id is not None:
            return str(self.user_id)
        # Prefixed so a client-chosen id can never equal a user id.
        return f"{ANONYMOUS_PREFIX}{self.anonymous_id or 'anonymous'}"

    def role_in(self, org_id: Optional[uuid.UUID]) -> Optional[OrgRole]:
        if org_id is None:
            return None
        return self.org_roles.get(org_id)


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    *,
    expires_delta: timedelta | None = None,
    settings: Settings | None = None,
) -> str:
    """Create a signed access token for ``user_id``."""
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": exp,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_jwt(token: str, settings: Settings | None = None) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    settings = settings or get_settings()
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


# ---------------------------------------------------------------------------
# Principal resolution
# ---------------------------------------------------------------------------

async def load_principal(
    user: User,
    session: AsyncSession,
    *,
    anonymous_id: Optional[str] = None,
) -> Principal:
    """Build a Principal with the user's current memberships."""
    roles = await session.execute(
        select(OrgMember.org_id, OrgMember.role).where(OrgMember.user_id == user.id)
    )
    teams = await session.execute(
        select(TeamMember.team_id).where(TeamMember.user_id == user.id)
    )
    return Principal(
        user_id=user.id,
        username=user.username,
        anonymous_id=anonymous_id,
        org_roles={org_id: OrgRole(role) for org_id, role in roles.all()},
        team_ids=frozenset(teams.scalars().all()),
    )


async def authenticate(
    token: Optional[str],
    session: AsyncSession,
    *,
    anonymous_id: Optional[str] = None,
    settings: Settings | None = None,
) -> Principal:
    """Resolve a bearer token to a Principal.

    No token yields an anonymous principal; a bad or stale token is an
    ``AuthError`` rather than a silent downgrade to anonymous.
    """
    if not token:
        return Principal.anonymous(anonymous_id)

    try:
        payload = decode_jwt(token, settings)
        user_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError) as exc:
        log.info("auth.token_rejected", reason=type(exc).__name__)
        raise AuthError("Invalid or expired token") from exc

    user = await session.get(User, user_id)
    if user is None:
        raise AuthError("User not found")
    return await load_principal(user, session, anonymous_id=anonymous_id)
