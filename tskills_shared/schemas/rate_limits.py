"""Rate-limit schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class RateLimitRule(BaseModel):
    """Per-action limits. A limit of 0 means the action requires authentication."""

    action: str = Field(..., min_length=1)
    window_seconds: int = Field(..., ge=1)
    anonymous_limit: int = Field(..., ge=0)
    authenticated_limit: int = Field(..., ge=0)


class RateLimitResult(BaseModel):
    allowed: bool
    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset_at: Optional[datetime] = None
    retry_after: Optional[int] = None
    error: Optional[str] = None
