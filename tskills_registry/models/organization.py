"""Organization model."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Organization(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "organizations"

    slug: str = Field(unique=True, nullable=False, index=True)
    name: str = Field(nullable=False)
    description: str = Field(default="", nullable=False)
    avatar_url: Optional[str] = None
    created_by: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
