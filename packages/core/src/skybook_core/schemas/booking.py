"""Passenger schema."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class Passenger(BaseModel):
    """One traveller on a booking."""

    name: str = Field(min_length=1, max_length=100)
    age: int = Field(ge=0, le=120)
    gender: str = Field(min_length=1, max_length=20)

    @field_validator("name", "gender")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "must not be blank"
            raise ValueError(msg)
        return value
