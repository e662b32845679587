"""API endpoint modules."""

from .attend_log import router as attend_log_router
from .qr import router as qr_router
from .session import router as session_router
from .system import router as system_router

__all__ = [
    "attend_log_router",
    "qr_router",
    "session_router",
    "system_router",
]
