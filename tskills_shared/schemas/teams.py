"""Team schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from .common import MAX_DESCRIPTION_LENGTH, MAX_SLUG_LENGTH, MIN_SLUG_LENGTH, SLUG_PATTERN


class TeamCreateRequest(BaseModel):
    slug: str = Field(
        ...,
        min_length=MIN_SLUG_LENGTH,
        max_length=MAX_SLUG_LENGTH,
        pattern=SLUG_PATTERN,
        description="Team identifier, unique within its organization",
    )
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=MAX_DESCRIPTION_LENGTH)


class TeamMemberAddRequest(BaseModel):
    username: str = Field(..., min_length=1)


class TeamResponse(BaseModel):
    id: uuid.UUID
    org_id: uuid.UUID
    slug: str
    name: str
    description: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TeamListResponse(BaseModel):
    data: list[TeamResponse]


class TeamMemberResponse(BaseModel):
    user_id: uuid.UUID
    username: str
    joined_at: datetime


class TeamMemberListResponse(BaseModel):
    data: list[TeamMemberResponse]
