"""Async HTTP client for a QR presence server.

Used by remote issuers (the generator CLI) to read the server clock and the
attendance log, and by scanners to submit decoded tokens.
"""

from __future__ import annotations

import logging
from types import TracebackType

import httpx
from pydantic import ValidationError

from qr_presence.core.errors import ClockSyncFailed, InvalidRequest, PresenceError
from qr_presence.schemas.attend_log import AttendLogItem, AttendLogOut
from qr_presence.schemas.qr import QrTokenOut, ScanAck
from qr_presence.schemas.system import ServerTimeOut
from qr_presence.services.clock_sync import RemoteTimeFetcher

logger = logging.getLogger(__name__)

HTTP_BAD_REQUEST = 400
DEFAULT_TIMEOUT_SECONDS = 5.0


class PresenceClientError(PresenceError):
    """Raised when the server answers with an unreadable body."""


class PresenceClient:
    """Thin wrapper over ``httpx.AsyncClient`` for the presence API."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    async def __aenter__(self) -> PresenceClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def server_time(self) -> int:
        """Read ``GET /api/server-time``."""
        response = await self._client.get("/api/server-time")
        response.raise_for_status()
        try:
            return ServerTimeOut.model_validate(response.json()).server_time
        except (ValueError, ValidationError) as exc:
            raise PresenceClientError(f"unreadable server-time body: {exc}") from exc

    def time_fetcher(self) -> RemoteTimeFetcher:
        """Adapt :meth:`server_time` for the clock sync estimator."""

        async def _fetch() -> float:
            try:
                return float(await self.server_time())
            except (httpx.HTTPError, PresenceClientError) as exc:
                raise ClockSyncFailed(f"time oracle request failed: {exc}") from exc

        return _fetch

    async def attend_log(self) -> list[AttendLogItem]:
        """Read every retained scan, oldest first."""
        response = await self._client.get("/api/attend-log")
        response.raise_for_status()
        try:
            return AttendLogOut.model_validate(response.json()).items
        except (ValueError, ValidationError) as exc:
            raise PresenceClientError(f"unreadable attend-log body: {exc}") from exc

    async def fetch_server_token(self) -> str:
        """Mint a token with the server-held key via ``GET /api/qr``."""
        response = await self._client.get("/api/qr")
        response.raise_for_status()
        return QrTokenOut.model_validate(response.json()).cipher

    async def submit_scan(self, cipher: str, student_id: str) -> ScanAck:
        """Submit a decoded token.

        Raises:
            InvalidRequest: If the server rejects the submission as incomplete.
        """
        response = await self._client.post(
            "/api/qr",
            json={"cipher": cipher, "studentId": student_id},
        )
        if response.status_code == HTTP_BAD_REQUEST:
            raise InvalidRequest(response.json().get("error", "invalid_request"))
        response.raise_for_status()
        return ScanAck.model_validate(response.json())
