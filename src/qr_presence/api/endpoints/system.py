"""Time oracle endpoint consumed by clock synchronization."""

from __future__ import annotations

from fastapi import APIRouter

from qr_presence.core.clock import now_ms
from qr_presence.schemas.system import ServerTimeOut

router = APIRouter(tags=["system"])


@router.get("/server-time", response_model=ServerTimeOut)
async def get_server_time() -> ServerTimeOut:
    """Return the server wall clock in epoch milliseconds."""
    return ServerTimeOut(server_time=now_ms())
