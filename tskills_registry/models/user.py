"""User model (synced from the external identity provider)."""

from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    github_id: int = Field(sa_type=sa.BigInteger, unique=True, nullable=False, index=True)
    username: str = Field(unique=True, nullable=False, index=True)
    email: Optional[str] = None
    avatar_url: Optional[str] = None
