"""Frame-paced token issuance loop.

The loop wakes at the display refresh rate. On every wake it counts a frame
and, once the minimum inter-mint interval has elapsed, schedules a mint
without waiting for it. Slow mints can therefore overlap; each one records
its own token.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from qr_presence.core.clock import monotonic_ms
from qr_presence.core.errors import MintFailure
from qr_presence.core.settings import settings

logger = logging.getLogger(__name__)

FPS_WINDOW_MS = 1000.0
STATUS_IDLE = "Idle"
STATUS_STARTING = "Initializing..."
STATUS_UPDATED = "Token updated"
STATUS_STOPPED = "Stopped"
STATUS_PERSISTENT_FAILURE = "Errors keep repeating. Check the key and network status."

Minter = Callable[[], Awaitable[str]]


@dataclass(frozen=True)
class IssuanceStatus:
    """Snapshot of the loop for display."""

    running: bool
    target_fps: int
    min_token_interval_ms: int
    observed_fps: int
    current_token: str | None
    token_length: int
    last_mint_ms: float | None
    minted_count: int
    message: str
    consecutive_failures: int


class IssuanceLoop:
    """Drive a minting coroutine at a configurable token rate."""

    def __init__(
        self,
        mint: Minter,
        *,
        target_fps: int | None = None,
        refresh_hz: float | None = None,
        failure_threshold: int | None = None,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        self._mint = mint
        self._clock = clock
        self.refresh_hz = refresh_hz or settings.display_refresh_hz
        self.failure_threshold = failure_threshold or settings.mint_failure_threshold
        self._target_fps = settings.target_fps
        self.set_target_fps(target_fps or settings.target_fps, announce=False)

        self.running = False
        self.frame_count = 0
        self.observed_fps = 0
        self.current_token: str | None = None
        self.last_mint_ms: float | None = None
        self.minted_count = 0
        self.message = STATUS_IDLE
        self.consecutive_failures = 0

        self._last_token_update = float("-inf")
        self._last_fps_update = 0.0
        self._inflight: set[asyncio.Task[None]] = set()
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def target_fps(self) -> int:
        return self._target_fps

    @property
    def min_token_interval_ms(self) -> int:
        """Minimum spacing between mints for the current target rate."""
        return round(1000 / self._target_fps)

    def set_target_fps(self, fps: int, *, announce: bool = True) -> None:
        """Change the token rate without restarting the loop.

        Raises:
            ValueError: If ``fps`` is not a positive integer.
        """
        if fps <= 0:
            raise ValueError(f"target fps must be positive, got {fps}")
        self._target_fps = int(fps)
        if announce:
            self.message = f"Target FPS set to {self._target_fps}"
            logger.info("Issuance target FPS set to %d", self._target_fps)

    def tick(self, now: float) -> bool:
        """Advance one frame. Returns True when a mint was scheduled."""
        self.frame_count += 1

        scheduled = False
        if now - self._last_token_update >= self.min_token_interval_ms:
            self._last_token_update = now
            task = asyncio.create_task(self._mint_once())
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            scheduled = True

        if now - self._last_fps_update >= FPS_WINDOW_MS:
            self.observed_fps = self.frame_count
            self.frame_count = 0
            self._last_fps_update = now

        return scheduled

    async def _call_minter(self) -> str:
        """Run the minter once.

        Raises:
            MintFailure: Wrapping whatever the minter raised.
        """
        try:
            return await self._mint()
        except Exception as exc:
            raise MintFailure(str(exc)) from exc

    async def _mint_once(self) -> None:
        started = self._clock()
        try:
            token = await self._call_minter()
        except MintFailure as failure:
            self.consecutive_failures += 1
            logger.warning(
                "Token mint failed (%d consecutive): %s",
                self.consecutive_failures,
                failure,
                exc_info=True,
            )
            self.message = f"Error: {failure}"
            if self.consecutive_failures >= self.failure_threshold:
                self.message = STATUS_PERSISTENT_FAILURE
            return

        self.current_token = token
        self.last_mint_ms = self._clock() - started
        self.minted_count += 1
        self.message = STATUS_UPDATED
        self.consecutive_failures = 0

    async def start(self) -> None:
        """Start the frame loop. Calling it on a running loop does nothing."""
        if self._task is not None and not self._task.done():
            return
        self.running = True
        self.message = STATUS_STARTING
        self.frame_count = 0
        self._last_fps_update = self._clock()
        self._last_token_update = float("-inf")
        self._stopping.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop ticking and wait for in-flight mints to settle."""
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        self.running = False
        self.message = STATUS_STOPPED

    async def _run(self) -> None:
        frame_interval = 1.0 / self.refresh_hz
        while not self._stopping.is_set():
            self.tick(self._clock())
            await asyncio.sleep(frame_interval)

    def status(self) -> IssuanceStatus:
        """Return a snapshot of the loop state."""
        return IssuanceStatus(
            running=self.running,
            target_fps=self.target_fps,
            min_token_interval_ms=self.min_token_interval_ms,
            observed_fps=self.observed_fps,
            current_token=self.current_token,
            token_length=len(self.current_token) if self.current_token else 0,
            last_mint_ms=self.last_mint_ms,
            minted_count=self.minted_count,
            message=self.message,
            consecutive_failures=self.consecutive_failures,
        )
