"""Schemas for the time oracle endpoint."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ServerTimeOut(BaseModel):
    """Server wall clock in epoch milliseconds."""

    model_config = ConfigDict(populate_by_name=True)

    server_time: int = Field(..., alias="serverTime")
