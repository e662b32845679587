"""Tests for joining scans to issued tokens."""

from dataclasses import dataclass

from qr_presence.services.aggregation import collect_deltas, participant_averages


@dataclass
class Scan:
    participant_id: str
    token: str
    receipt_time: int


def test_deltas_grouped_by_participant_in_order() -> None:
    issued = {"t1": 1000, "t2": 2000, "t3": 3000}
    events = [
        Scan("alice", "t1", 1200),
        Scan("bob", "t2", 2300),
        Scan("alice", "t3", 3100),
    ]
    assert collect_deltas(events, issued) == {"alice": [200, 100], "bob": [300]}


def test_foreign_tokens_are_ignored() -> None:
    events = [Scan("alice", "minted-elsewhere", 5000)]
    assert collect_deltas(events, {"t1": 1000}) == {}


def test_negative_deltas_are_discarded() -> None:
    issued = {"t1": 1000, "t2": 1000}
    events = [Scan("alice", "t1", 999), Scan("alice", "t2", 1000)]
    assert collect_deltas(events, issued) == {"alice": [0]}


def test_same_token_scanned_by_many() -> None:
    issued = {"t1": 1000}
    events = [Scan("alice", "t1", 1100), Scan("bob", "t1", 1700)]
    assert collect_deltas(events, issued) == {"alice": [100], "bob": [700]}


def test_participant_averages() -> None:
    assert participant_averages({"alice": [100, 200], "bob": [50]}) == {
        "alice": 150.0,
        "bob": 50.0,
    }
