"""
Skill and skill-version schemas.

Field rules mirror the database check constraints so that bad input is
rejected with a field-scoped message before it reaches the store.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .common import (
    MAX_DESCRIPTION_LENGTH,
    MAX_SLUG_LENGTH,
    MIN_SLUG_LENGTH,
    SLUG_PATTERN,
    Visibility,
    check_skill_name,
    check_version,
)

MAX_SEARCH_LIMIT = 100


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class SkillPublishRequest(BaseModel):
    """Create or update a skill's metadata.

    ``None`` fields keep the stored value when the skill already exists.
    """

    name: str
    description: Optional[str] = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    visibility: Optional[Visibility] = None
    tools: Optional[list[str]] = None
    tags: Optional[list[str]] = None
    org: Optional[str] = Field(
        default=None, min_length=MIN_SLUG_LENGTH, max_length=MAX_SLUG_LENGTH, pattern=SLUG_PATTERN
    )
    team: Optional[str] = Field(
        default=None, min_length=MIN_SLUG_LENGTH, max_length=MAX_SLUG_LENGTH, pattern=SLUG_PATTERN
    )

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return check_skill_name(v)


class VersionPublishRequest(BaseModel):
    version: str
    content: str = Field(..., min_length=1)

    @field_validator("version")
    @classmethod
    def _version(cls, v: str) -> str:
        return check_version(v)


class DeprecateRequest(BaseModel):
    deprecated: bool
    message: Optional[str] = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)


class SearchParams(BaseModel):
    query: Optional[str] = Field(default=None, max_length=200)
    tags: list[str] = Field(default_factory=list)
    tools: list[str] = Field(default_factory=list)
    limit: int = Field(default=20, ge=1, le=MAX_SEARCH_LIMIT)
    offset: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class SkillResponse(BaseModel):
    id: uuid.UUID
    owner: str
    owner_id: Optional[uuid.UUID] = None
    owner_org_id: Optional[uuid.UUID] = None
    team_id: Optional[uuid.UUID] = None
    name: str
    description: str
    visibility: Visibility
    tools: list[str]
    tags: list[str]
    latest_version: Optional[str] = None
    downloads: int
    deprecated: bool
    deprecation_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SkillListResponse(BaseModel):
    data: list[SkillResponse]


class VersionResponse(BaseModel):
    id: uuid.UUID
    skill_id: uuid.UUID
    version: str
    content: str
    published_by: uuid.UUID
    published_at: datetime

    model_config = {"from_attributes": True}


class VersionSummary(BaseModel):
    version: str
    published_by: uuid.UUID
    published_at: datetime

    model_config = {"from_attributes": True}


class VersionListResponse(BaseModel):
    data: list[VersionSummary]


class DownloadResponse(BaseModel):
    counted: bool
