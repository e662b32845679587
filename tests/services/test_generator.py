"""Tests for issuing sessions and the end-to-end delta path."""

import asyncio

import pytest

from qr_presence.core.errors import AuthenticationFailed
from qr_presence.services.attend_log import IngestionLog
from qr_presence.services.clock_sync import ClockSyncEstimator
from qr_presence.services.generator import (
    GeneratorRegistry,
    GeneratorSession,
    SessionAlreadyRunning,
)
from qr_presence.services.scoring import FixedThresholdPolicy, classify_delta


@pytest.mark.asyncio
async def test_mint_records_synced_creation_time() -> None:
    session = GeneratorSession(clock=lambda: 960, clock_offset_ms=40, room_code=7)
    token = await session.mint_token()

    assert session.issued_tokens == {token: 1000}
    payload = session.verify(token)
    assert payload.timestamp_low32 == 1000
    assert payload.room_code == 7
    assert payload.version == 1


@pytest.mark.asyncio
async def test_end_to_end_delta_is_scored() -> None:
    session = GeneratorSession(clock=lambda: 960, clock_offset_ms=40)
    token = await session.mint_token()

    log = IngestionLog(capacity=500, clock=lambda: 1300)
    log.record("student-1", token, "10.0.0.5")

    report = session.report(log.query(), FixedThresholdPolicy())
    (row,) = report.participants
    assert row.participant_id == "student-1"
    assert row.min_delta == row.max_delta == 300
    assert classify_delta(row.avg_delta).risk == "suspect"
    assert row.suspect_rate == 100


@pytest.mark.asyncio
async def test_tokens_from_another_session_are_ignored() -> None:
    ours = GeneratorSession(clock=lambda: 1000)
    theirs = GeneratorSession(clock=lambda: 1000)
    foreign = await theirs.mint_token()

    log = IngestionLog(capacity=10, clock=lambda: 1100)
    log.record("student-1", foreign)

    assert ours.report(log.query()).participants == ()
    with pytest.raises(AuthenticationFailed):
        ours.verify(foreign)


@pytest.mark.asyncio
async def test_start_synchronizes_once() -> None:
    calls = 0

    async def fetch() -> float:
        nonlocal calls
        calls += 1
        return 1050.0

    ticks = iter([1000, 1020])
    estimator = ClockSyncEstimator(fetch, clock=lambda: next(ticks))
    session = GeneratorSession(target_fps=15)
    await session.start(estimator)
    await session.stop()

    assert calls == 1
    assert session.clock_offset_ms == 40
    assert session.clock_probe is not None and session.clock_probe.ok


@pytest.mark.asyncio
async def test_registry_allows_one_running_session() -> None:
    registry = GeneratorRegistry()
    first = await registry.start(target_fps=15)
    with pytest.raises(SessionAlreadyRunning):
        await registry.start()
    await registry.stop()

    second = await registry.start(target_fps=30)
    assert second is not first
    assert registry.session is second
    await registry.stop()
    assert not registry.active


@pytest.mark.asyncio
async def test_concurrent_starts_yield_one_session() -> None:
    release = asyncio.Event()

    async def slow_fetch() -> float:
        await release.wait()
        return 1000.0

    registry = GeneratorRegistry()
    first = asyncio.create_task(
        registry.start(target_fps=15, estimator=ClockSyncEstimator(slow_fetch))
    )
    second = asyncio.create_task(
        registry.start(target_fps=15, estimator=ClockSyncEstimator(slow_fetch))
    )
    await asyncio.sleep(0)
    release.set()
    results = await asyncio.gather(first, second, return_exceptions=True)

    sessions = [r for r in results if not isinstance(r, BaseException)]
    rejected = [r for r in results if isinstance(r, SessionAlreadyRunning)]
    assert len(sessions) == 1
    assert len(rejected) == 1
    assert registry.session is sessions[0]

    await registry.stop()
    assert not sessions[0].loop.running
