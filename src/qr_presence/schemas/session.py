"""Schemas for the in-process generator session."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SessionStart(BaseModel):
    """Options for starting a generator session."""

    model_config = ConfigDict(populate_by_name=True)

    target_fps: int | None = Field(default=None, gt=0, alias="targetFps")
    room_code: int | None = Field(default=None, ge=0, le=255, alias="roomCode")


class FpsUpdate(BaseModel):
    """New target token rate."""

    fps: int = Field(..., gt=0)


class SessionStatusOut(BaseModel):
    """Issuance loop state for the generator view."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    running: bool
    target_fps: int = Field(..., alias="targetFps")
    min_token_interval_ms: int = Field(..., alias="minTokenIntervalMs")
    observed_fps: int = Field(..., alias="fps")
    token_length: int = Field(..., alias="tokenLen")
    last_mint_ms: float | None = Field(default=None, alias="renderTime")
    minted_count: int = Field(..., alias="mintedCount")
    issued_count: int = Field(..., alias="issuedCount")
    clock_offset_ms: float = Field(..., alias="clockOffsetMs")
    status: str
    consecutive_errors: int = Field(..., alias="consecutiveErrors")


class EstimateOut(BaseModel):
    """Robust population estimate behind a report."""

    mean: float
    std: float
    included: list[float]
    iterations: int


class ParticipantRow(BaseModel):
    """Per-participant aggregate row."""

    model_config = ConfigDict(populate_by_name=True)

    student_id: str = Field(..., alias="studentId")
    count: int
    avg_delta: int = Field(..., alias="avgDelta")
    min_delta: int = Field(..., alias="minDelta")
    max_delta: int = Field(..., alias="maxDelta")
    suspect_rate: int = Field(..., alias="suspectRate")
    suspicion: int
    tier: str


class ReportOut(BaseModel):
    """Scored attendance report."""

    model_config = ConfigDict(populate_by_name=True)

    policy: str
    generated_at: int = Field(..., alias="generatedAt")
    estimate: EstimateOut
    participants: list[ParticipantRow]
