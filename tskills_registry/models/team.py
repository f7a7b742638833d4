"""Team model (always scoped to one organization)."""

import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Team(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "teams"
    __table_args__ = (sa.UniqueConstraint("org_id", "slug", name="teams_org_slug_key"),)

    org_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    slug: str = Field(nullable=False)
    name: str = Field(nullable=False)
    description: str = Field(default="", nullable=False)
