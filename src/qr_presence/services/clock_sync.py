"""One-shot clock offset estimation against a remote time oracle.

The issuer probes ``GET /api/server-time`` once when a session starts and
applies the estimated offset to every token it stamps. Long sessions are not
re-synchronized, so they accumulate drift.
"""

from __future__ import annotations

import logging
import math
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx

from qr_presence.core.clock import estimate_offset, now_ms
from qr_presence.core.errors import ClockSyncFailed
from qr_presence.core.settings import settings

logger = logging.getLogger(__name__)

RemoteTimeFetcher = Callable[[], Awaitable[float]]


@dataclass(frozen=True)
class ClockProbe:
    """Outcome of a single round-trip probe."""

    t0: float
    remote_time: float | None
    t3: float
    offset_ms: float
    ok: bool

    @property
    def round_trip_ms(self) -> float:
        """Local round-trip duration of the probe."""
        return self.t3 - self.t0


def http_time_fetcher(client: httpx.AsyncClient, url: str) -> RemoteTimeFetcher:
    """Build a fetcher reading ``{"serverTime": <epoch-ms>}`` from ``url``."""

    async def _fetch() -> float:
        try:
            response = await client.get(url)
            response.raise_for_status()
            server_time = float(response.json()["serverTime"])
        except httpx.HTTPError as exc:
            raise ClockSyncFailed(f"time oracle request failed: {exc}") from exc
        except (ValueError, KeyError, TypeError) as exc:
            raise ClockSyncFailed(f"time oracle returned an unreadable body: {exc}") from exc
        if not math.isfinite(server_time):
            raise ClockSyncFailed(f"time oracle returned a non-finite time: {server_time}")
        return server_time

    return _fetch


class ClockSyncEstimator:
    """Estimate ``remoteClock - localClock`` from a single probe."""

    def __init__(
        self,
        fetch_remote_time: RemoteTimeFetcher,
        clock: Callable[[], float] = now_ms,
    ) -> None:
        self._fetch_remote_time = fetch_remote_time
        self._clock = clock

    async def probe(self) -> ClockProbe:
        """Run one probe. Failures yield a zero offset instead of raising."""
        t0 = self._clock()
        try:
            remote_time = await self._fetch_remote_time()
        except ClockSyncFailed as exc:
            t3 = self._clock()
            logger.warning("Clock sync failed, assuming aligned clocks: %s", exc)
            return ClockProbe(t0=t0, remote_time=None, t3=t3, offset_ms=0.0, ok=False)

        t3 = self._clock()
        offset = estimate_offset(t0, remote_time, t3)
        logger.info("Clock offset estimated at %.1f ms (rtt=%.1f ms)", offset, t3 - t0)
        return ClockProbe(t0=t0, remote_time=remote_time, t3=t3, offset_ms=offset, ok=True)

    async def estimate(self) -> float:
        """Return the estimated offset in milliseconds."""
        return (await self.probe()).offset_ms


@asynccontextmanager
async def remote_estimator(
    url: str | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[ClockSyncEstimator | None]:
    """Yield an estimator bound to a short-lived httpx client.

    Yields ``None`` when no time oracle URL is configured; callers then
    assume aligned clocks and make no request.
    """
    target = url or settings.server_time_url
    if not target:
        yield None
        return

    timeout = httpx.Timeout(settings.clock_sync_timeout_seconds)
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        yield ClockSyncEstimator(http_time_fetcher(client, target))
