"""
Pydantic schemas for API request/response models.

Wire names are camelCase for compatibility with existing generator and
attend pages; Python attributes stay snake_case.
"""

from .attend_log import AttendLogItem, AttendLogOut
from .qr import QrTokenOut, ScanAck, ScanSubmission
from .session import FpsUpdate, ReportOut, SessionStart, SessionStatusOut
from .system import ServerTimeOut

__all__ = [
    "AttendLogItem",
    "AttendLogOut",
    "FpsUpdate",
    "QrTokenOut",
    "ReportOut",
    "ScanAck",
    "ScanSubmission",
    "ServerTimeOut",
    "SessionStart",
    "SessionStatusOut",
]
