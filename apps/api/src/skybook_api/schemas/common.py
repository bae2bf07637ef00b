"""Shared response schemas."""

from __future__ import annotations

import math

from pydantic import BaseModel


class PageMeta(BaseModel):
    """Pagination fields shared by list responses."""

    total: int
    page: int
    pages: int

    @staticmethod
    def pages_for(total: int, limit: int) -> int:
        return math.ceil(total / limit) if limit else 0


class ErrorResponse(BaseModel):
    """Standard error payload."""

    detail: str
    code: str | None = None
