"""User identity schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .common import MAX_USERNAME_LENGTH, USERNAME_PATTERN


class IdentitySync(BaseModel):
    """Claims handed over by the login flow after a successful external sign-in."""

    github_id: int
    username: str = Field(..., min_length=1, max_length=MAX_USERNAME_LENGTH, pattern=USERNAME_PATTERN)
    email: Optional[str] = None
    avatar_url: Optional[str] = None


class UserResponse(BaseModel):
    id: uuid.UUID
    github_id: int
    username: str
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class WhoAmIResponse(BaseModel):
    authenticated: bool
    user: Optional[UserResponse] = None
