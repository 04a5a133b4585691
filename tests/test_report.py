from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from studtrack.domain.errors import ReportWriteError
from studtrack.domain.models import Batch
from studtrack.export.report import attendance_rate, render_report, write_report
from studtrack.ingest.normalizer import normalize_batch, normalize_meeting

GENERATED = datetime(2024, 3, 5, 8, 30, 0)


def _section(report: str, title: str, next_title: str | None) -> str:
    start = report.index(title)
    end = report.index(next_title) if next_title else len(report)
    return report[start:end]


def test_sections_are_in_fixed_order(batch) -> None:
    report = render_report(batch, GENERATED)
    titles = [
        "EXECUTIVE SUMMARY",
        "ONLINE MEETINGS ANALYSIS",
        "OFFLINE MEETINGS ANALYSIS",
        "PARTICIPANT PERFORMANCE ANALYSIS",
        "RECOMMENDATIONS",
    ]

    positions = [report.index(title) for title in titles]
    assert positions == sorted(positions)
    assert report.startswith("STUDTRACK - COMPREHENSIVE ATTENDANCE REPORT\n")
    assert "Generated on: 2024-03-05 08:30:00" in report


def test_executive_summary(batch) -> None:
    section = _section(render_report(batch), "EXECUTIVE SUMMARY", "ONLINE MEETINGS ANALYSIS")

    assert "Total Meetings: 2" in section
    assert "Online Meetings: 1" in section
    assert "Offline Meetings: 1" in section
    assert section.index("Alice:") < section.index("Bob:")
    assert "2 hours 50 minutes" in section
    assert "2 hours 15 minutes" in section
    assert "Carol" not in section


def test_online_section(batch) -> None:
    section = _section(render_report(batch), "ONLINE MEETINGS ANALYSIS", "OFFLINE MEETINGS ANALYSIS")

    assert "Meeting: Standup (2024-03-01)" in section
    assert "0 hours 50 minutes (2 sessions)" in section
    assert "Session 1: 10:00 - 10:30 (30 minutes)" in section
    assert "Session 2: 10:40 - 11:00 (20 minutes)" in section
    assert "2 messages" in section
    assert section.index("Bob:   2 messages") < section.index("Alice: 1 messages")


def test_offline_section(batch) -> None:
    section = _section(render_report(batch), "OFFLINE MEETINGS ANALYSIS", "PARTICIPANT PERFORMANCE ANALYSIS")

    assert "Meeting: Workshop (2024-03-02) at Room 101" in section
    assert "Attendance Rate: 75.0%" in section
    assert "Present: 2, Late: 1, Absent: 1" in section
    assert "late (90 minutes) - Late by 15 minutes - Left 15 minutes early" in section
    assert "Carol: absent" in section
    assert "question:     2 times" in section
    assert "Alice: 2 activities" in section


def test_participant_analysis(batch) -> None:
    section = _section(render_report(batch), "PARTICIPANT PERFORMANCE ANALYSIS", "RECOMMENDATIONS")

    assert "2 hours 50 minutes (2 meetings, 2 sessions, 1 messages, 2 activities)" in section
    reliability = section[section.index("ATTENDANCE RELIABILITY:"):]
    assert "100.0% (1/1 meetings)" in reliability
    assert "0.0% (0/1 meetings)" in reliability
    names = [line.split(":")[0].strip() for line in reliability.splitlines()[1:] if line.strip()]
    assert names == ["Alice", "Bob", "Dave", "Carol"]


def test_recommendations(batch) -> None:
    section = _section(render_report(batch), "RECOMMENDATIONS", None)

    assert "- Online meetings: 1 (50.0%)" in section
    assert "Keep the current balance" in section
    assert "- Carol: 100.0% absence rate (1 absences in 1 meetings)" in section
    assert "No low-engagement participants found." in section
    assert "4. GENERAL RECOMMENDATIONS:" in section


def test_low_engagement_uses_average_of_defined_totals() -> None:
    meeting = normalize_meeting(
        {
            "meeting_id": "M1",
            "title": "Sync",
            "date": "d",
            "participants": [
                {"name": "Ann", "sessions": [{"join": "2024-01-01 10:00:00", "leave": "2024-01-01 11:00:00"}]},
                {"name": "Ben", "sessions": [{"join": "2024-01-01 10:00:00", "leave": "2024-01-01 10:10:00"}]},
            ],
        }
    )
    report = render_report(Batch.from_meetings([meeting]))

    assert "- Ben: Low engagement (0 hours 10 minutes total)" in report
    assert "Ann: Low engagement" not in report
    assert "Consider increasing offline meetings" in report


def test_zero_participant_offline_meeting_does_not_divide() -> None:
    meeting = normalize_meeting({"meeting_id": "E", "title": "Empty", "date": "d", "type": "offline"})

    assert attendance_rate(meeting) is None
    report = render_report(Batch.from_meetings([meeting]))
    assert "Attendance Rate: N/A (no participants)" in report
    assert "No activities found." in report


def test_attendance_rate_counts_participants_without_record() -> None:
    meeting = normalize_meeting(
        {
            "meeting_id": "L",
            "title": "Lab",
            "date": "d",
            "type": "offline",
            "participants": [{"name": "Ann", "attendance": {"status": "present"}}, {"name": "Ben"}],
        }
    )

    assert attendance_rate(meeting) == pytest.approx(50.0)
    assert "Ben: no attendance record" in render_report(Batch.from_meetings([meeting]))


def test_empty_batch_renders_none_found_lines() -> None:
    report = render_report(normalize_batch({"meetings": []}))

    assert "Total Meetings: 0" in report
    assert "No participant time found." in report
    assert "No online meetings found." in report
    assert "No offline meetings found." in report
    assert "No participants found." in report
    assert "No meetings found." in report
    assert "No absences found." in report


def test_online_meeting_without_chats() -> None:
    meeting = normalize_meeting({"meeting_id": "Q", "title": "Quiet", "date": "d"})

    assert "No chat messages found." in render_report(Batch.from_meetings([meeting]))


def test_render_is_idempotent(batch) -> None:
    assert render_report(batch, GENERATED) == render_report(batch, GENERATED)
    assert "Generated on" not in render_report(batch)


def test_write_report_matches_render(batch, tmp_path: Path) -> None:
    path = write_report(batch, tmp_path / "out" / "report.txt", GENERATED)

    assert path.read_text(encoding="utf-8") == render_report(batch, GENERATED)


def test_write_failure_is_report_write_error(batch, tmp_path: Path) -> None:
    target = tmp_path / "taken"
    target.mkdir()

    with pytest.raises(ReportWriteError, match="Cannot write report"):
        write_report(batch, target, GENERATED)
