"""Attendance log listing for the generator view."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from qr_presence.schemas.attend_log import AttendLogItem, AttendLogOut
from qr_presence.services.attend_log import IngestionLog, get_ingestion_log

router = APIRouter(tags=["attendance"])

IngestionLogDep = Annotated[IngestionLog, Depends(get_ingestion_log)]


@router.get("/attend-log", response_model=AttendLogOut)
async def get_attend_log(log: IngestionLogDep) -> AttendLogOut:
    """Return every retained scan, oldest first."""
    return AttendLogOut(
        items=[
            AttendLogItem(
                id=event.sequence_id,
                log_time=event.log_time,
                ip=event.source_address,
                student_id=event.participant_id,
                cipher=event.token,
                server_recv_ts=event.receipt_time,
            )
            for event in log.query()
        ]
    )
