from qr_presence.scripts.generator import build_parser, format_report
from qr_presence.services.attend_log import IngestionLog
from qr_presence.services.monitor import build_report
from qr_presence.services.scoring import PopulationPolicy


def test_parser_defaults() -> None:
    args = build_parser().parse_args([])

    assert args.server == "http://127.0.0.1:3000"
    assert args.fps == 60
    assert args.policy is None
    assert args.duration is None
    assert not args.no_qr


def test_parser_overrides() -> None:
    args = build_parser().parse_args(
        ["--fps", "15", "--policy", "fixed", "--duration", "2.5", "--no-qr"]
    )

    assert args.fps == 15
    assert args.policy == "fixed"
    assert args.duration == 2.5
    assert args.no_qr


def test_format_report_table() -> None:
    log = IngestionLog(capacity=10, clock=lambda: 1120)
    log.record("s1", "tok-a")
    log.record("student-two", "tok-b")
    report = build_report(log.query(), {"tok-a": 1000, "tok-b": 1000}, PopulationPolicy())

    lines = format_report(report).splitlines()

    assert lines[0].split() == [
        "studentId", "count", "avg", "min", "max", "suspect%", "score", "tier",
    ]
    assert lines[1].split() == ["s1", "1", "120", "120", "120", "0%", "0", "normal"]
    assert lines[2].startswith("student-two")
    assert lines[-1] == "policy=population mean=120.0 std=0.0 included=2"
