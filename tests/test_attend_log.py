"""Tests for the bounded ingestion log."""

from concurrent.futures import ThreadPoolExecutor
from itertools import count

import pytest

from qr_presence.core.errors import InvalidRequest
from qr_presence.services.attend_log import IngestionLog


def test_record_returns_receipt() -> None:
    log = IngestionLog(
        capacity=10,
        clock=lambda: 1300,
        log_clock=lambda: "2024-01-01T00:00:00.000Z",
    )
    receipt = log.record("s1", "tok", "10.0.0.1")
    assert (receipt.participant_id, receipt.receipt_time) == ("s1", 1300)

    (event,) = log.query()
    assert event.sequence_id == 1
    assert event.source_address == "10.0.0.1"
    assert event.token == "tok"
    assert event.log_time == "2024-01-01T00:00:00.000Z"


@pytest.mark.parametrize(
    ("participant_id", "token"),
    [(None, "tok"), ("", "tok"), ("s1", None), ("s1", ""), (None, None)],
)
def test_missing_fields_are_rejected(participant_id: str | None, token: str | None) -> None:
    log = IngestionLog(capacity=10)
    with pytest.raises(InvalidRequest):
        log.record(participant_id, token)
    assert len(log) == 0


def test_capacity_drops_oldest() -> None:
    ticks = count(1)
    log = IngestionLog(capacity=500, clock=lambda: next(ticks))
    for i in range(501):
        log.record(f"s{i}", f"tok{i}")

    events = log.query()
    assert len(events) == 500
    assert events[0].participant_id == "s1"
    assert events[-1].participant_id == "s500"
    assert [e.sequence_id for e in events] == list(range(2, 502))


def test_query_is_oldest_first_snapshot() -> None:
    log = IngestionLog(capacity=5)
    log.record("a", "t1")
    snapshot = log.query()
    log.record("b", "t2")
    assert [e.participant_id for e in snapshot] == ["a"]
    assert [e.participant_id for e in log.query()] == ["a", "b"]


def test_concurrent_appends_respect_cap() -> None:
    log = IngestionLog(capacity=50)

    def submit(worker: int) -> None:
        for i in range(100):
            log.record(f"w{worker}", f"t{worker}-{i}")

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(submit, range(8)))

    ids = [e.sequence_id for e in log.query()]
    assert len(ids) == 50
    assert ids == sorted(ids)
    assert ids[-1] == 800


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        IngestionLog(capacity=0)
