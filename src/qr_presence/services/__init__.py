# src/qr_presence/services/__init__.py
"""Token issuance, ingestion and scoring services."""

from .attend_log import IngestionLog, ScanEvent
from .cipher import TokenCipher
from .clock_sync import ClockSyncEstimator
from .generator import GeneratorSession
from .issuance import IssuanceLoop
from .monitor import AttendanceMonitor, build_report

__all__ = [
    "AttendanceMonitor",
    "ClockSyncEstimator",
    "GeneratorSession",
    "IngestionLog",
    "IssuanceLoop",
    "ScanEvent",
    "TokenCipher",
    "build_report",
]
