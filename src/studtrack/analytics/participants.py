from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, TypeVar

from studtrack.analytics.aggregation import activity_counts_by_participant, meeting_chat_counts
from studtrack.domain.models import AttendanceStatus, Batch, OnlineParticipant

V = TypeVar("V", int, float)
S = TypeVar("S")


@dataclass(slots=True)
class ParticipantStats:
    name: str
    total_meetings: int = 0
    online_meetings: int = 0
    offline_meetings: int = 0
    online_seconds: int = 0
    offline_seconds: int = 0
    sessions: int = 0
    chat_messages: int = 0
    present: int = 0
    late: int = 0
    absent: int = 0
    activities: int = 0

    @property
    def total_time(self) -> int:
        return self.online_seconds + self.offline_seconds

    @property
    def attended(self) -> int:
        return self.present + self.late

    @property
    def reliability(self) -> float | None:
        if self.offline_meetings == 0:
            return None
        return self.attended / self.offline_meetings

    @property
    def absence_rate(self) -> float:
        if self.total_meetings == 0:
            return 0.0
        return self.absent / self.total_meetings


def collect_participant_stats(batch: Batch) -> dict[str, ParticipantStats]:
    """Merge every meeting a name appears in into one ParticipantStats per name."""

    stats: dict[str, ParticipantStats] = {}
    for meeting in batch.meetings:
        chat_counts = meeting_chat_counts(meeting) or {}
        activity_counts = activity_counts_by_participant(meeting)
        for participant in meeting.participants:
            item = stats.setdefault(participant.name, ParticipantStats(name=participant.name))
            item.total_meetings += 1

            if isinstance(participant, OnlineParticipant):
                item.online_meetings += 1
                item.online_seconds += sum(s.duration_seconds for s in participant.sessions)
                item.sessions += len(participant.sessions)
                item.chat_messages += chat_counts.get(participant.name, 0)
                continue

            item.offline_meetings += 1
            item.activities += activity_counts.get(participant.name, 0)
            attendance = participant.attendance
            if attendance is None:
                continue
            if attendance.status == AttendanceStatus.PRESENT:
                item.present += 1
            elif attendance.status == AttendanceStatus.LATE:
                item.late += 1
            elif attendance.status == AttendanceStatus.ABSENT:
                item.absent += 1
            if attendance.duration_seconds is not None:
                item.offline_seconds += attendance.duration_seconds
    return stats


def rank(values: Mapping[str, V], limit: int | None = None) -> list[tuple[str, V]]:
    """Order name/value pairs by value descending, ties by name ascending."""

    ordered = sorted(values.items(), key=lambda item: (-item[1], item[0]))
    return ordered if limit is None else ordered[:limit]


def rank_by(items: Iterable[S], key: Callable[[S], float], name: Callable[[S], str], limit: int | None = None) -> list[S]:
    ordered = sorted(items, key=lambda item: (-key(item), name(item)))
    return ordered if limit is None else ordered[:limit]
