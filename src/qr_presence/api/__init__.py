"""HTTP API for token issuance and scan ingestion."""

from .endpoints import (
    attend_log_router,
    qr_router,
    session_router,
    system_router,
)

__all__ = [
    "attend_log_router",
    "qr_router",
    "session_router",
    "system_router",
]
