"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Sample(BaseModel):
    """One recorded occupancy reading."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Identifier assigned by the store on insert.")
    timestamp: datetime = Field(..., description="UTC instant the sample was captured.")
    occupancy: int = Field(..., ge=0, description="Number of people reported in the pool.")


class HealthStatus(BaseModel):
    status: str = "ok"
    detail: Optional[str] = None
