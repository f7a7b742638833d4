"""Rate-limit counters and per-action configuration."""

from datetime import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import utcnow


class RateLimitCounter(SQLModel, table=True):
    __tablename__ = "rate_limits"
    __table_args__ = (
        sa.UniqueConstraint("identifier", "action", "window_start", name="rate_limits_window_key"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    identifier: str = Field(nullable=False)  # user id or anonymous id
    action: str = Field(nullable=False)
    window_start: int = Field(sa_type=sa.BigInteger, nullable=False, index=True)  # epoch seconds
    request_count: int = Field(default=1, nullable=False)
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )


class RateLimitConfig(SQLModel, table=True):
    __tablename__ = "rate_limit_config"

    action: str = Field(primary_key=True)
    window_seconds: int = Field(nullable=False)
    anonymous_limit: int = Field(nullable=False)
    authenticated_limit: int = Field(nullable=False)  # 0 = action requires authentication
