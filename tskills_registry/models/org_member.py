"""Organization membership (join table with role)."""

from datetime import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import utcnow


class OrgMember(SQLModel, table=True):
    __tablename__ = "org_members"
    __table_args__ = (
        sa.CheckConstraint("role IN ('owner', 'admin', 'member')", name="org_members_role_check"),
    )

    org_id: uuid.UUID = Field(foreign_key="organizations.id", primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True, index=True)
    role: str = Field(nullable=False, default="member")  # owner | admin | member
    joined_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
