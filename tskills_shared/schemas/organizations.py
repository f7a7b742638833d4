"""
Organization and membership schemas shared between server and clients.

Covers: org create request/response, membership add/update requests,
member listings.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .common import MAX_DESCRIPTION_LENGTH, MAX_SLUG_LENGTH, MIN_SLUG_LENGTH, SLUG_PATTERN, OrgRole


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrgCreateRequest(BaseModel):
    slug: str = Field(
        ...,
        min_length=MIN_SLUG_LENGTH,
        max_length=MAX_SLUG_LENGTH,
        pattern=SLUG_PATTERN,
        description="URL-safe org identifier, also the owner name of org skills",
    )
    name: str = Field(..., min_length=1, max_length=100, description="Organization display name")
    description: str = Field(default="", max_length=MAX_DESCRIPTION_LENGTH)


class MemberAddRequest(BaseModel):
    username: str = Field(..., min_length=1)
    role: OrgRole = OrgRole.MEMBER


class MemberRoleUpdateRequest(BaseModel):
    role: OrgRole


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrgResponse(BaseModel):
    id: uuid.UUID
    slug: str
    name: str
    description: str
    avatar_url: Optional[str] = None
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrgListItem(BaseModel):
    id: uuid.UUID
    slug: str
    name: str
    role: OrgRole  # the requesting user's role in this org


class OrgListResponse(BaseModel):
    data: list[OrgListItem]


class MemberResponse(BaseModel):
    user_id: uuid.UUID
    username: str
    role: OrgRole
    joined_at: datetime


class MemberListResponse(BaseModel):
    data: list[MemberResponse]
