from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterator

from studtrack.analytics.aggregation import (
    activity_counts_by_participant,
    activity_label_counts,
    attendance_status_counts,
    meeting_chat_counts,
    overall_total_time,
)
from studtrack.analytics.participants import collect_participant_stats, rank, rank_by
from studtrack.domain.errors import ReportWriteError
from studtrack.domain.models import (
    AttendanceStatus,
    Batch,
    Meeting,
    OfflineParticipant,
    OnlineParticipant,
)
from studtrack.export.formatting import (
    banner,
    format_clock,
    format_hours_minutes,
    format_percent,
    label,
    name_width,
)

logger = logging.getLogger(__name__)

REPORT_TITLE = "STUDTRACK - COMPREHENSIVE ATTENDANCE REPORT"
TOP_PARTICIPANTS = 5
TOP_ACTIVE = 3
TOP_ABSENTEES = 3
LOW_ENGAGEMENT_RATIO = 0.7

GENERAL_RECOMMENDATIONS = (
    "Regular attendance tracking and reporting",
    "Mix of online and offline meetings for optimal engagement",
    "Activity-based learning for offline sessions",
    "Follow-up with participants showing declining engagement",
    "Regular feedback collection to improve meeting effectiveness",
)


def attendance_rate(meeting: Meeting) -> float | None:
    """(present + late) / all participants * 100, or None for an empty meeting."""

    if not meeting.participants:
        return None
    counts = attendance_status_counts(meeting)
    attended = sum(counts.get(status, 0) for status in AttendanceStatus.ATTENDED)
    return attended / len(meeting.participants) * 100.0


def executive_summary(batch: Batch) -> list[str]:
    lines = banner("EXECUTIVE SUMMARY")
    lines.append(f"Total Meetings: {len(batch)}")
    lines.append(f"Online Meetings: {len(batch.online_meetings())}")
    lines.append(f"Offline Meetings: {len(batch.offline_meetings())}")
    lines.append("")

    lines.append("TOP PARTICIPANTS BY TOTAL TIME:")
    top = rank(overall_total_time(batch), TOP_PARTICIPANTS)
    if not top:
        lines.append("  No participant time found.")
    width = name_width([name for name, _ in top])
    for name, seconds in top:
        lines.append(f"  {label(name, width)} {format_hours_minutes(seconds)}")
    lines.append("")
    return lines


def _online_meeting_lines(meeting: Meeting) -> list[str]:
    lines = ["", f"Meeting: {meeting.title} ({meeting.date})", "-" * 50]
    participants = [p for p in meeting.participants if isinstance(p, OnlineParticipant)]
    if not participants:
        lines.append("  No participants found.")
    width = name_width([p.name for p in participants])
    for participant in participants:
        seconds = sum(session.duration_seconds for session in participant.sessions)
        lines.append(
            f"  {label(participant.name, width)} {format_hours_minutes(seconds)} "
            f"({len(participant.sessions)} sessions)"
        )
        for index, session in enumerate(participant.sessions, start=1):
            lines.append(
                f"    Session {index}: {format_clock(session.join)} - {format_clock(session.leave)} "
                f"({max(session.duration_seconds, 0) // 60} minutes)"
            )

    lines.append("")
    lines.append("  Chat Activity:")
    counts = rank(meeting_chat_counts(meeting) or {})
    if not counts:
        lines.append("    No chat messages found.")
    width = name_width([sender for sender, _ in counts])
    for sender, count in counts:
        lines.append(f"    {label(sender, width)} {count} messages")
    return lines


def online_meetings_report(batch: Batch) -> list[str]:
    lines = banner("ONLINE MEETINGS ANALYSIS")
    meetings = batch.online_meetings()
    if not meetings:
        lines.append("No online meetings found.")
    for meeting in meetings:
        lines.extend(_online_meeting_lines(meeting))
    lines.append("")
    return lines


def _status_line(participant: OfflineParticipant, width: int) -> str:
    attendance = participant.attendance
    prefix = f"  {label(participant.name, width)} "
    if attendance is None:
        return prefix + "no attendance record"

    text = prefix + attendance.status
    if attendance.attended:
        if attendance.duration_seconds is not None:
            text += f" ({max(attendance.duration_seconds, 0) // 60} minutes)"
        if attendance.late_by_minutes > 0:
            text += f" - Late by {attendance.late_by_minutes} minutes"
        if attendance.early_leave_minutes > 0:
            text += f" - Left {attendance.early_leave_minutes} minutes early"
    return text


def _offline_meeting_lines(meeting: Meeting) -> list[str]:
    header = f"Meeting: {meeting.title} ({meeting.date})"
    if meeting.location:
        header += f" at {meeting.location}"
    lines = ["", header, "-" * 60]

    rate = attendance_rate(meeting)
    counts = attendance_status_counts(meeting)
    if rate is None:
        lines.append("Attendance Rate: N/A (no participants)")
    else:
        lines.append(f"Attendance Rate: {format_percent(rate)}")
    lines.append(
        f"Present: {counts.get(AttendanceStatus.PRESENT, 0)}, "
        f"Late: {counts.get(AttendanceStatus.LATE, 0)}, "
        f"Absent: {counts.get(AttendanceStatus.ABSENT, 0)}"
    )
    lines.append("")

    participants = [p for p in meeting.participants if isinstance(p, OfflineParticipant)]
    if not participants:
        lines.append("  No participants found.")
    width = name_width([p.name for p in participants])
    lines.extend(_status_line(participant, width) for participant in participants)

    lines.append("")
    lines.append("  Activity Summary:")
    labels = rank(activity_label_counts(meeting))
    if not labels:
        lines.append("    No activities found.")
        return lines
    width = name_width([name for name, _ in labels])
    for name, count in labels:
        lines.append(f"    {label(name, width)} {count} times")

    lines.append("")
    lines.append("  Most Active Participants:")
    active = rank(activity_counts_by_participant(meeting), TOP_ACTIVE)
    width = name_width([name for name, _ in active])
    for name, count in active:
        lines.append(f"    {label(name, width)} {count} activities")
    return lines


def offline_meetings_report(batch: Batch) -> list[str]:
    lines = banner("OFFLINE MEETINGS ANALYSIS")
    meetings = batch.offline_meetings()
    if not meetings:
        lines.append("No offline meetings found.")
    for meeting in meetings:
        lines.extend(_offline_meeting_lines(meeting))
    lines.append("")
    return lines


def participant_analysis(batch: Batch) -> list[str]:
    lines = banner("PARTICIPANT PERFORMANCE ANALYSIS")
    stats = list(collect_participant_stats(batch).values())

    lines.append("")
    lines.append("TOP PARTICIPANTS BY ENGAGEMENT:")
    top = rank_by(stats, key=lambda s: s.total_time, name=lambda s: s.name, limit=TOP_PARTICIPANTS)
    if not top:
        lines.append("  No participants found.")
    width = name_width([s.name for s in top])
    for item in top:
        lines.append(
            f"  {label(item.name, width)} {format_hours_minutes(item.total_time)} "
            f"({item.total_meetings} meetings, {item.sessions} sessions, "
            f"{item.chat_messages} messages, {item.activities} activities)"
        )

    lines.append("")
    lines.append("ATTENDANCE RELIABILITY:")
    offline = [s for s in stats if s.reliability is not None]
    reliable = rank_by(offline, key=lambda s: s.reliability or 0.0, name=lambda s: s.name, limit=TOP_PARTICIPANTS)
    if not reliable:
        lines.append("  No offline attendance found.")
    width = name_width([s.name for s in reliable])
    for item in reliable:
        lines.append(
            f"  {label(item.name, width)} {format_percent((item.reliability or 0.0) * 100)} "
            f"({item.attended}/{item.offline_meetings} meetings)"
        )
    lines.append("")
    return lines


def _distribution_lines(batch: Batch) -> list[str]:
    total = len(batch)
    online = len(batch.online_meetings())
    offline = len(batch.offline_meetings())
    lines = ["1. MEETING DISTRIBUTION:"]
    if total == 0:
        lines.append("   No meetings found.")
        return lines

    lines.append(f"   - Online meetings: {online} ({format_percent(online / total * 100)})")
    lines.append(f"   - Offline meetings: {offline} ({format_percent(offline / total * 100)})")
    if online > offline:
        lines.append("   Recommendation: Consider increasing offline meetings for better engagement")
    elif offline > online:
        lines.append("   Recommendation: Consider online meetings for flexibility and accessibility")
    else:
        lines.append("   Recommendation: Keep the current balance of online and offline meetings")
    return lines


def _absence_lines(batch: Batch) -> list[str]:
    lines = ["2. ATTENDANCE ISSUES:"]
    stats = [s for s in collect_participant_stats(batch).values() if s.absent > 0]
    worst = rank_by(stats, key=lambda s: s.absent, name=lambda s: s.name, limit=TOP_ABSENTEES)
    if not worst:
        lines.append("   No absences found.")
        return lines
    for item in worst:
        lines.append(
            f"   - {item.name}: {format_percent(item.absence_rate * 100)} absence rate "
            f"({item.absent} absences in {item.total_meetings} meetings)"
        )
    lines.append("   Recommendation: Implement attendance tracking and follow-up for frequent absentees")
    return lines


def _engagement_lines(batch: Batch) -> list[str]:
    lines = ["3. ENGAGEMENT OPPORTUNITIES:"]
    totals = overall_total_time(batch)
    if not totals:
        lines.append("   No participant time found.")
        return lines

    average = sum(totals.values()) / len(totals)
    cutoff = average * LOW_ENGAGEMENT_RATIO
    low = [(name, seconds) for name, seconds in totals.items() if seconds < cutoff]
    if not low:
        lines.append("   No low-engagement participants found.")
        return lines
    for name, seconds in low:
        lines.append(f"   - {name}: Low engagement ({format_hours_minutes(seconds)} total)")
    lines.append("   Recommendation: Implement engagement strategies for low-participation members")
    return lines


def recommendations(batch: Batch) -> list[str]:
    lines = banner("RECOMMENDATIONS")
    lines.extend(_distribution_lines(batch))
    lines.append("")
    lines.extend(_absence_lines(batch))
    lines.append("")
    lines.extend(_engagement_lines(batch))
    lines.append("")
    lines.append("4. GENERAL RECOMMENDATIONS:")
    lines.extend(f"   - {item}" for item in GENERAL_RECOMMENDATIONS)
    return lines


SECTIONS = (
    executive_summary,
    online_meetings_report,
    offline_meetings_report,
    participant_analysis,
    recommendations,
)


def iter_report_lines(batch: Batch, generated_at: datetime | None = None) -> Iterator[str]:
    yield from banner(REPORT_TITLE)
    if generated_at is not None:
        yield f"Generated on: {generated_at.strftime('%Y-%m-%d %H:%M:%S')}"
    yield ""
    for section in SECTIONS:
        yield from section(batch)


def render_report(batch: Batch, generated_at: datetime | None = None) -> str:
    return "\n".join(iter_report_lines(batch, generated_at)) + "\n"


def write_report(batch: Batch, path: Path, generated_at: datetime | None = None) -> Path:
    """Stream the report into `path`; the file is closed on every exit path."""

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            for line in iter_report_lines(batch, generated_at):
                handle.write(line)
                handle.write("\n")
    except OSError as exc:
        raise ReportWriteError(f"Cannot write report to {path}: {exc}") from exc
    logger.info("Report written to %s", path)
    return path
