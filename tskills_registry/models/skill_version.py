"""Skill version model. Content is immutable once published."""

from datetime import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import utcnow


class SkillVersion(SQLModel, table=True):
    __tablename__ = "skill_versions"
    __table_args__ = (sa.UniqueConstraint("skill_id", "version", name="skill_versions_skill_version_key"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    skill_id: uuid.UUID = Field(foreign_key="skills.id", nullable=False, index=True)
    version: str = Field(nullable=False)
    content: str = Field(sa_type=sa.Text, nullable=False)
    published_by: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    published_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
