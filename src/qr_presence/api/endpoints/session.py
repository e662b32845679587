"""In-process generator session endpoints.

Only one session runs per process. Its key and issued-token record never
leave the server; clients see the current token as a QR image and the
scored report.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status

from qr_presence.core.settings import ScoringPolicyName
from qr_presence.schemas.session import (
    EstimateOut,
    FpsUpdate,
    ParticipantRow,
    ReportOut,
    SessionStart,
    SessionStatusOut,
)
from qr_presence.services.attend_log import IngestionLog, get_ingestion_log
from qr_presence.services.clock_sync import remote_estimator
from qr_presence.services.generator import (
    GeneratorRegistry,
    GeneratorSession,
    SessionAlreadyRunning,
    get_generator_registry,
)
from qr_presence.services.monitor import AttendanceReport
from qr_presence.services.render import render_svg
from qr_presence.services.scoring import get_policy

router = APIRouter(prefix="/session", tags=["session"])

RegistryDep = Annotated[GeneratorRegistry, Depends(get_generator_registry)]
IngestionLogDep = Annotated[IngestionLog, Depends(get_ingestion_log)]


def _require_session(registry: GeneratorRegistry) -> GeneratorSession:
    if registry.session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No generator session",
        )
    return registry.session


def _status_out(session: GeneratorSession) -> SessionStatusOut:
    loop = session.loop.status()
    return SessionStatusOut(
        session_id=session.session_id,
        running=loop.running,
        target_fps=loop.target_fps,
        min_token_interval_ms=loop.min_token_interval_ms,
        observed_fps=loop.observed_fps,
        token_length=loop.token_length,
        last_mint_ms=loop.last_mint_ms,
        minted_count=loop.minted_count,
        issued_count=len(session.issued_tokens),
        clock_offset_ms=session.clock_offset_ms,
        status=loop.message,
        consecutive_errors=loop.consecutive_failures,
    )


def _report_out(report: AttendanceReport) -> ReportOut:
    return ReportOut(
        policy=report.policy,
        generated_at=report.generated_at,
        estimate=EstimateOut(
            mean=report.estimate.mean,
            std=report.estimate.std,
            included=list(report.estimate.included),
            iterations=report.estimate.iterations,
        ),
        participants=[
            ParticipantRow(
                student_id=row.participant_id,
                count=row.count,
                avg_delta=row.avg_delta,
                min_delta=row.min_delta,
                max_delta=row.max_delta,
                suspect_rate=row.suspect_rate,
                suspicion=row.suspicion,
                tier=row.tier,
            )
            for row in report.participants
        ],
    )


async def _start_with_sync(registry: GeneratorRegistry, options: SessionStart) -> GeneratorSession:
    async with remote_estimator() as estimator:
        return await registry.start(
            target_fps=options.target_fps,
            room_code=options.room_code,
            estimator=estimator,
        )


@router.post("", response_model=SessionStatusOut, status_code=status.HTTP_201_CREATED)
async def start_session(
    registry: RegistryDep,
    options: Annotated[SessionStart | None, Body()] = None,
) -> SessionStatusOut:
    """Start issuing tokens with a fresh session key."""
    try:
        session = await _start_with_sync(registry, options or SessionStart())
    except SessionAlreadyRunning as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return _status_out(session)


@router.delete("", response_model=SessionStatusOut)
async def stop_session(registry: RegistryDep) -> SessionStatusOut:
    """Stop issuing tokens. The issued-token record stays available for reports."""
    session = _require_session(registry)
    await registry.stop()
    return _status_out(session)


@router.get("", response_model=SessionStatusOut)
async def get_session(registry: RegistryDep) -> SessionStatusOut:
    """Return the issuance loop status."""
    return _status_out(_require_session(registry))


@router.put("/fps", response_model=SessionStatusOut)
async def set_session_fps(update: FpsUpdate, registry: RegistryDep) -> SessionStatusOut:
    """Change the token rate of the running session."""
    session = _require_session(registry)
    session.loop.set_target_fps(update.fps)
    return _status_out(session)


@router.get("/qr.svg")
async def get_session_qr(registry: RegistryDep) -> Response:
    """Render the most recently minted token as an SVG QR code."""
    session = _require_session(registry)
    token = session.loop.current_token
    if token is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No token minted yet")
    return Response(
        content=render_svg(token),
        media_type="image/svg+xml",
        headers={"Cache-Control": "no-store"},
    )


@router.get("/report", response_model=ReportOut)
async def get_session_report(
    registry: RegistryDep,
    log: IngestionLogDep,
    policy: ScoringPolicyName | None = None,
) -> ReportOut:
    """Score every participant against this session's tokens."""
    session = _require_session(registry)
    return _report_out(session.report(log.query(), get_policy(policy)))
