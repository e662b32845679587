# src/qr_presence/scripts/generator.py
"""
Run a token-issuing session against a remote presence server.

The session key stays in this process. The server only relays scans, so
every verdict is computed here:
1. Estimate the clock offset against the server once
2. Mint tokens locally at the requested rate
3. Poll the attendance log every second and print the scored table
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from qr_presence.services.clock_sync import ClockSyncEstimator
from qr_presence.services.generator import GeneratorSession
from qr_presence.services.monitor import AttendanceMonitor, AttendanceReport
from qr_presence.services.render import render_ascii
from qr_presence.services.scoring import get_policy
from qr_presence.utils.presence_client import PresenceClient

logger = logging.getLogger(__name__)

FPS_CHOICES = (15, 30, 60)
TABLE_HEADER = ("studentId", "count", "avg", "min", "max", "suspect%", "score", "tier")


def format_report(report: AttendanceReport) -> str:
    """Render a report as a fixed-width text table."""
    rows = [TABLE_HEADER] + [
        (
            row.participant_id,
            str(row.count),
            str(row.avg_delta),
            str(row.min_delta),
            str(row.max_delta),
            f"{row.suspect_rate}%",
            str(row.suspicion),
            row.tier,
        )
        for row in report.participants
    ]
    widths = [max(len(r[i]) for r in rows) for i in range(len(TABLE_HEADER))]
    lines = ["  ".join(cell.ljust(w) for cell, w in zip(r, widths)) for r in rows]
    lines.append(
        f"policy={report.policy} mean={report.estimate.mean:.1f} "
        f"std={report.estimate.std:.1f} included={len(report.estimate.included)}"
    )
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--server", default="http://127.0.0.1:3000", help="Presence server URL")
    parser.add_argument("--fps", type=int, choices=FPS_CHOICES, default=60, help="Token rate")
    parser.add_argument("--room-code", type=int, default=None, help="Room code (0-255)")
    parser.add_argument(
        "--policy",
        choices=("population", "fixed"),
        default=None,
        help="Scoring policy for the report",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (default: run until interrupted)",
    )
    parser.add_argument("--no-qr", action="store_true", help="Do not print the QR code")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser


async def run_generator(args: argparse.Namespace) -> int:
    """Run one session until the duration elapses or the task is cancelled."""
    async with PresenceClient(args.server) as client:
        session = GeneratorSession(target_fps=args.fps, room_code=args.room_code)
        await session.start(ClockSyncEstimator(client.time_fetcher()))
        monitor = AttendanceMonitor(
            client.attend_log,
            session.issued_tokens,
            policy=get_policy(args.policy),
        )
        await monitor.start()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + args.duration if args.duration else None
        try:
            while deadline is None or loop.time() < deadline:
                await asyncio.sleep(monitor.interval_seconds)
                status = session.loop.status()
                print(
                    f"[{status.message}] fps={status.observed_fps} "
                    f"target={status.target_fps} tokens={len(session.issued_tokens)} "
                    f"offset={session.clock_offset_ms:.1f}ms"
                )
                if status.current_token and not args.no_qr:
                    print(render_ascii(status.current_token))
                if monitor.latest is not None:
                    print(format_report(monitor.latest))
        finally:
            await monitor.stop()
            await session.stop()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(run_generator(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
