"""Schemas for minting and submitting QR tokens."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class QrTokenOut(BaseModel):
    """A token minted with the server-held key."""

    cipher: str


class ScanSubmission(BaseModel):
    """Decoded QR text submitted by a participant."""

    model_config = ConfigDict(
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    cipher: str = Field(..., min_length=1)
    student_id: str = Field(..., min_length=1, alias="studentId")


class ScanAck(BaseModel):
    """Acknowledgement echoed back after a scan is logged."""

    model_config = ConfigDict(populate_by_name=True)

    ok: Literal[True] = True
    student_id: str = Field(..., alias="studentId")
    server_recv_ts: int = Field(..., alias="serverRecvTs")
    cipher: str
