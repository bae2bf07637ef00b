"""User-related response schemas."""

from __future__ import annotations

import uuid  # noqa: TC003
from datetime import datetime  # noqa: TC003

from pydantic import BaseModel, ConfigDict


class UserResponse(BaseModel):
    """Public user profile."""

    id: uuid.UUID
    email: str
    name: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
