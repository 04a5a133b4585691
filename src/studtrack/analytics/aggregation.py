from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, TypeVar

from studtrack.domain.models import (
    OVERALL_SCOPE,
    Batch,
    Chat,
    Meeting,
    OfflineParticipant,
    OnlineParticipant,
    Session,
)

T = TypeVar("T")


def merge_counts(maps: Iterable[Mapping[str, int]]) -> dict[str, int]:
    """Sum per-name values; names missing from a map contribute nothing."""

    merged: dict[str, int] = {}
    for item in maps:
        for name, value in item.items():
            merged[name] = merged.get(name, 0) + value
    return merged


def merge_lists(maps: Iterable[Mapping[str, list[T]]]) -> dict[str, list[T]]:
    merged: dict[str, list[T]] = {}
    for item in maps:
        for name, values in item.items():
            merged.setdefault(name, []).extend(values)
    return merged


def participant_total_time(participant: OnlineParticipant | OfflineParticipant) -> int | None:
    if isinstance(participant, OnlineParticipant):
        return sum(session.duration_seconds for session in participant.sessions)
    if participant.attendance is None:
        return None
    return participant.attendance.duration_seconds


def participant_sessions(participant: OnlineParticipant | OfflineParticipant) -> list[Session] | None:
    if isinstance(participant, OnlineParticipant):
        return list(participant.sessions)
    attendance = participant.attendance
    if attendance is None or attendance.check_in is None or attendance.check_out is None:
        return None
    return [Session.between(attendance.check_in, attendance.check_out)]


def meeting_total_time(meeting: Meeting) -> dict[str, int]:
    """Seconds engaged per participant.

    Offline participants without both check-in and check-out are left out of
    the mapping rather than reported as zero.
    """

    result: dict[str, int] = {}
    for participant in meeting.participants:
        seconds = participant_total_time(participant)
        if seconds is not None:
            result[participant.name] = result.get(participant.name, 0) + seconds
    return result


def meeting_sessions(meeting: Meeting) -> dict[str, list[Session]]:
    result: dict[str, list[Session]] = {}
    for participant in meeting.participants:
        sessions = participant_sessions(participant)
        if sessions is not None:
            result.setdefault(participant.name, []).extend(sessions)
    return result


def meeting_chats_by_sender(meeting: Meeting) -> dict[str, list[Chat]] | None:
    if not meeting.is_online:
        return None
    grouped: dict[str, list[Chat]] = {}
    for chat in meeting.chats:
        grouped.setdefault(chat.sender, []).append(chat)
    return grouped


def meeting_chat_counts(meeting: Meeting) -> dict[str, int] | None:
    grouped = meeting_chats_by_sender(meeting)
    if grouped is None:
        return None
    return {sender: len(chats) for sender, chats in grouped.items()}


def attendance_status_counts(meeting: Meeting) -> dict[str, int]:
    counts: dict[str, int] = {}
    for participant in meeting.participants:
        if isinstance(participant, OfflineParticipant) and participant.attendance is not None:
            status = participant.attendance.status
            counts[status] = counts.get(status, 0) + 1
    return counts


def activity_label_counts(meeting: Meeting) -> dict[str, int]:
    counts: dict[str, int] = {}
    for activity in meeting.activities:
        counts[activity.activity] = counts.get(activity.activity, 0) + 1
    return counts


def activity_counts_by_participant(meeting: Meeting) -> dict[str, int]:
    counts: dict[str, int] = {}
    for activity in meeting.activities:
        counts[activity.participant] = counts.get(activity.participant, 0) + 1
    return counts


def overall_total_time(batch: Batch) -> dict[str, int]:
    return merge_counts(meeting_total_time(meeting) for meeting in batch.meetings)


def overall_sessions(batch: Batch) -> dict[str, list[Session]]:
    return merge_lists(meeting_sessions(meeting) for meeting in batch.meetings)


def overall_chat_counts(batch: Batch) -> dict[str, int]:
    return merge_counts(
        counts for counts in (meeting_chat_counts(m) for m in batch.meetings) if counts is not None
    )


def overall_chats_by_sender(batch: Batch) -> dict[str, list[Chat]]:
    return merge_lists(
        grouped for grouped in (meeting_chats_by_sender(m) for m in batch.meetings) if grouped is not None
    )


def session_hour_histogram(sessions: Mapping[str, list[Session]]) -> dict[str, dict[str, int]]:
    """Sessions per participant bucketed by join hour (`"HH:00"`), for heatmaps."""

    histogram: dict[str, dict[str, int]] = {}
    for name, items in sessions.items():
        buckets = histogram.setdefault(name, {})
        for session in items:
            slot = f"{session.join.hour:02d}:00"
            buckets[slot] = buckets.get(slot, 0) + 1
    return histogram


def timeline_rows(sessions: Mapping[str, list[Session]]) -> list[tuple[int, str, Session]]:
    """Flatten sessions to `(row, name, session)` with one row index per participant."""

    rows: list[tuple[int, str, Session]] = []
    for row, (name, items) in enumerate(sessions.items(), start=1):
        for session in items:
            rows.append((row, name, session))
    return rows


@dataclass(frozen=True, slots=True)
class ScopeView:
    """Read views for one meeting or the whole batch, recomputed on every request."""

    label: str
    meeting: Meeting | None
    total_time: dict[str, int]
    sessions: dict[str, list[Session]]
    chat_counts: dict[str, int] | None
    chats: dict[str, list[Chat]] | None
    attendance_status_counts: dict[str, int] | None = None
    activity_label_counts: dict[str, int] | None = None

    @property
    def is_overall(self) -> bool:
        return self.meeting is None


def build_scope_view(batch: Batch, scope: str | None = None) -> ScopeView:
    meeting = batch.resolve_scope(scope)
    if meeting is None:
        return ScopeView(
            label=OVERALL_SCOPE,
            meeting=None,
            total_time=overall_total_time(batch),
            sessions=overall_sessions(batch),
            chat_counts=overall_chat_counts(batch),
            chats=overall_chats_by_sender(batch),
        )

    offline = meeting.is_offline
    return ScopeView(
        label=meeting.scope_label,
        meeting=meeting,
        total_time=meeting_total_time(meeting),
        sessions=meeting_sessions(meeting),
        chat_counts=meeting_chat_counts(meeting),
        chats=meeting_chats_by_sender(meeting),
        attendance_status_counts=attendance_status_counts(meeting) if offline else None,
        activity_label_counts=activity_label_counts(meeting) if offline else None,
    )
