"""Issuing sessions: key, clock offset and issued-token record.

A session generates its own AES key on construction. The key never leaves
the session object, so scans can only be judged by elapsed time unless the
session itself verifies them.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Callable, Sequence

from qr_presence.core import payload as payload_codec
from qr_presence.core.clock import now_ms
from qr_presence.core.errors import PresenceError
from qr_presence.core.settings import settings
from qr_presence.services.aggregation import ScanLike
from qr_presence.services.cipher import TokenCipher, generate_key
from qr_presence.services.clock_sync import ClockProbe, ClockSyncEstimator
from qr_presence.services.issuance import IssuanceLoop
from qr_presence.services.monitor import AttendanceReport, build_report
from qr_presence.services.scoring import ScoringPolicy

logger = logging.getLogger(__name__)


class SessionAlreadyRunning(PresenceError):
    """Raised when a second generator session is started in one process."""


class GeneratorSession:
    """State owned by one token-issuing session.

    ``issued_tokens`` maps each minted token string to its creation time on
    the synchronized clock. Entries live until the session is discarded.
    """

    def __init__(
        self,
        *,
        key: bytes | None = None,
        clock_offset_ms: float = 0.0,
        version: int | None = None,
        room_code: int | None = None,
        target_fps: int | None = None,
        refresh_hz: float | None = None,
        clock: Callable[[], float] = now_ms,
    ) -> None:
        self.session_id = secrets.token_hex(8)
        self._cipher = TokenCipher(key or generate_key())
        self._clock = clock
        self.clock_offset_ms = clock_offset_ms
        self.clock_probe: ClockProbe | None = None
        self.version = settings.payload_version if version is None else version
        self.room_code = settings.room_code if room_code is None else room_code
        self.issued_tokens: dict[str, int] = {}
        self.loop = IssuanceLoop(self.mint_token, target_fps=target_fps, refresh_hz=refresh_hz)

    def synced_now_ms(self) -> int:
        """Local wall-clock time corrected by the estimated offset."""
        return round(self._clock() + self.clock_offset_ms)

    async def mint_token(self) -> str:
        """Build, seal and record one token."""
        created_at = self.synced_now_ms()
        payload = payload_codec.encode(self.version, created_at, self.room_code)
        token = await asyncio.to_thread(self._cipher.encrypt, payload)
        self.issued_tokens[token] = created_at
        return token

    def verify(self, token: str) -> payload_codec.Payload:
        """Authenticate a token with the session key and decode it."""
        return self._cipher.decrypt_payload(token)

    async def synchronize(self, estimator: ClockSyncEstimator) -> ClockProbe:
        """Estimate the clock offset once for this session."""
        self.clock_probe = await estimator.probe()
        self.clock_offset_ms = self.clock_probe.offset_ms
        return self.clock_probe

    async def start(self, estimator: ClockSyncEstimator | None = None) -> None:
        """Synchronize the clock if an estimator is given, then start issuing."""
        if estimator is not None:
            await self.synchronize(estimator)
        await self.loop.start()
        logger.info(
            "Generator session %s started (offset=%.1f ms, fps=%d)",
            self.session_id,
            self.clock_offset_ms,
            self.loop.target_fps,
        )

    async def stop(self) -> None:
        """Stop issuing. The issued-token record stays readable."""
        await self.loop.stop()
        logger.info(
            "Generator session %s stopped after %d tokens",
            self.session_id,
            len(self.issued_tokens),
        )

    def report(
        self,
        events: Sequence[ScanLike],
        policy: ScoringPolicy | None = None,
    ) -> AttendanceReport:
        """Score scans against the tokens this session issued."""
        return build_report(events, self.issued_tokens, policy)


class GeneratorRegistry:
    """Holds the single in-process generator session."""

    def __init__(self) -> None:
        self.session: GeneratorSession | None = None
        self._lock = asyncio.Lock()

    @property
    def active(self) -> bool:
        return self.session is not None and self.session.loop.running

    async def start(
        self,
        *,
        target_fps: int | None = None,
        room_code: int | None = None,
        estimator: ClockSyncEstimator | None = None,
    ) -> GeneratorSession:
        """Create and start a new session, replacing a stopped one.

        Starts are serialized, so a start waiting on a clock probe still
        blocks a concurrent one.

        Raises:
            SessionAlreadyRunning: If a session is running.
        """
        async with self._lock:
            if self.active:
                raise SessionAlreadyRunning("a generator session is already running")
            session = GeneratorSession(target_fps=target_fps, room_code=room_code)
            await session.start(estimator)
            self.session = session
            return session

    async def stop(self) -> None:
        """Stop the running session, keeping it around for reports."""
        async with self._lock:
            if self.session is not None:
                await self.session.stop()


class _GeneratorRegistrySingleton:
    """Singleton wrapper for GeneratorRegistry."""

    _instance: GeneratorRegistry | None = None

    @classmethod
    def get_instance(cls) -> GeneratorRegistry:
        """Get or create the singleton GeneratorRegistry instance."""
        if cls._instance is None:
            cls._instance = GeneratorRegistry()
        return cls._instance


def get_generator_registry() -> GeneratorRegistry:
    """Return the process-wide generator registry."""
    return _GeneratorRegistrySingleton.get_instance()
