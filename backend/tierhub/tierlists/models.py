"""Pydantic models for tierlist REST APIs."""

from __future__ import annotations

from pydantic import BaseModel


class CreateTierlistRequest(BaseModel):
    """POST /api/tierlists request body."""

    name: str
    description: str | None = None


class UpdateTierlistRequest(BaseModel):
    """PUT /api/tierlists/{tierlist_id} request body."""

    name: str | None = None
    description: str | None = None


class DuplicateTierlistRequest(BaseModel):
    """POST /api/tierlists/{tierlist_id}/duplicate request body."""

    name: str
