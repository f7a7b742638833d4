"""Skill model.

The check constraints restate the structural invariants so the store rejects
any write path that slips past the service layer.
"""

from typing import List, Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Skill(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "skills"
    __table_args__ = (
        sa.UniqueConstraint("owner", "name", name="skills_owner_name_key"),
        sa.CheckConstraint(
            "visibility IN ('public', 'private', 'org', 'team')",
            name="skills_visibility_check",
        ),
        sa.CheckConstraint(
            "(owner_id IS NOT NULL AND owner_org_id IS NULL) OR "
            "(owner_id IS NULL AND owner_org_id IS NOT NULL)",
            name="skills_owner_xor",
        ),
        sa.CheckConstraint(
            "visibility != 'team' OR team_id IS NOT NULL",
            name="skills_team_visibility",
        ),
        sa.CheckConstraint(
            "visibility != 'private' OR owner_org_id IS NULL",
            name="skills_private_requires_user_owner",
        ),
        sa.CheckConstraint(
            "visibility NOT IN ('org', 'team') OR owner_org_id IS NOT NULL",
            name="skills_org_visibility_requires_org_owner",
        ),
    )

    owner: str = Field(nullable=False, index=True)  # username or org slug, denormalized
    owner_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", index=True)
    owner_org_id: Optional[uuid.UUID] = Field(default=None, foreign_key="organizations.id", index=True)
    team_id: Optional[uuid.UUID] = Field(default=None, foreign_key="teams.id", index=True)
    name: str = Field(nullable=False)
    description: str = Field(default="", nullable=False)
    visibility: str = Field(default="public", nullable=False, index=True)  # public | private | org | team
    tools: List[str] = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
    tags: List[str] = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
    latest_version: Optional[str] = None
    downloads: int = Field(default=0, sa_type=sa.BigInteger, nullable=False)
    deprecated: bool = Field(default=False, nullable=False, index=True)
    deprecation_message: Optional[str] = None
