"""Schemas for the attendance log listing."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AttendLogItem(BaseModel):
    """One retained scan as exposed on the wire."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    log_time: str = Field(..., alias="logTime")
    ip: str | None = None
    student_id: str = Field(..., alias="studentId")
    cipher: str
    server_recv_ts: int = Field(..., alias="serverRecvTs")

    @property
    def participant_id(self) -> str:
        return self.student_id

    @property
    def token(self) -> str:
        return self.cipher

    @property
    def receipt_time(self) -> int:
        return self.server_recv_ts


class AttendLogOut(BaseModel):
    """Retained scans, oldest first."""

    items: list[AttendLogItem]
