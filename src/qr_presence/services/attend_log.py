"""Bounded in-memory ingestion log of attendance scans."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from itertools import count
from threading import Lock

from qr_presence.core.clock import now_ms, utcnow_iso
from qr_presence.core.errors import InvalidRequest
from qr_presence.core.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanEvent:
    """A single accepted scan, immutable once recorded."""

    sequence_id: int
    receipt_time: int
    source_address: str | None
    participant_id: str
    token: str
    log_time: str


@dataclass(frozen=True)
class ScanReceipt:
    """Acknowledgement returned to the submitting participant."""

    participant_id: str
    receipt_time: int


class IngestionLog:
    """Append-only log that keeps only the newest ``capacity`` scans.

    Append and eviction happen under one lock so concurrent request handlers
    always observe a log within its cap.
    """

    def __init__(
        self,
        capacity: int | None = None,
        clock: Callable[[], int] = now_ms,
        log_clock: Callable[[], str] = utcnow_iso,
    ) -> None:
        self.capacity = capacity if capacity is not None else settings.attend_log_capacity
        if self.capacity <= 0:
            raise ValueError("ingestion log capacity must be positive")
        self._events: deque[ScanEvent] = deque()
        self._sequence = count(1)
        self._clock = clock
        self._log_clock = log_clock
        self._lock = Lock()

    def record(
        self,
        participant_id: str | None,
        token: str | None,
        source_address: str | None = None,
    ) -> ScanReceipt:
        """Append a scan and return its receipt time.

        Raises:
            InvalidRequest: If ``participant_id`` or ``token`` is missing or empty.
        """
        if not token or not participant_id:
            raise InvalidRequest("cipher and studentId are required")

        with self._lock:
            receipt_time = int(self._clock())
            event = ScanEvent(
                sequence_id=next(self._sequence),
                receipt_time=receipt_time,
                source_address=source_address,
                participant_id=participant_id,
                token=token,
                log_time=self._log_clock(),
            )
            self._events.append(event)
            while len(self._events) > self.capacity:
                self._events.popleft()

        logger.info(
            '[QR_AUTH] ts=%s ip=%s studentId=%s cipher="%s"',
            event.log_time,
            source_address,
            participant_id,
            token,
        )
        return ScanReceipt(participant_id=participant_id, receipt_time=receipt_time)

    def query(self) -> list[ScanEvent]:
        """Return every retained scan, oldest first."""
        with self._lock:
            return list(self._events)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


class _IngestionLogSingleton:
    """Singleton wrapper for the process-wide ingestion log."""

    _instance: IngestionLog | None = None

    @classmethod
    def get_instance(cls) -> IngestionLog:
        """Get or create the shared IngestionLog instance."""
        if cls._instance is None:
            cls._instance = IngestionLog()
        return cls._instance


def get_ingestion_log() -> IngestionLog:
    """Return the process-wide ingestion log."""
    return _IngestionLogSingleton.get_instance()
