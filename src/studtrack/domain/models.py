from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Union

from studtrack.domain.errors import SchemaError, UnknownScopeError

OVERALL_SCOPE = "All Meetings (Overall)"


class MeetingKind(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class AttendanceStatus:
    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"

    ATTENDED = (PRESENT, LATE)


@dataclass(frozen=True, slots=True)
class Session:
    join: datetime
    leave: datetime
    duration_seconds: int

    @classmethod
    def between(cls, join: datetime, leave: datetime) -> "Session":
        return cls(join=join, leave=leave, duration_seconds=int((leave - join).total_seconds()))


@dataclass(frozen=True, slots=True)
class Attendance:
    status: str
    check_in: datetime | None = None
    check_out: datetime | None = None
    late_by_minutes: int = 0
    early_leave_minutes: int = 0

    @property
    def has_checkpoints(self) -> bool:
        return self.check_in is not None and self.check_out is not None

    @property
    def duration_seconds(self) -> int | None:
        if self.check_in is None or self.check_out is None:
            return None
        return int((self.check_out - self.check_in).total_seconds())

    @property
    def attended(self) -> bool:
        return self.status in AttendanceStatus.ATTENDED


@dataclass(frozen=True, slots=True)
class OnlineParticipant:
    name: str
    sessions: tuple[Session, ...] = ()


@dataclass(frozen=True, slots=True)
class OfflineParticipant:
    name: str
    attendance: Attendance | None = None


Participant = Union[OnlineParticipant, OfflineParticipant]


@dataclass(frozen=True, slots=True)
class Chat:
    timestamp: datetime
    sender: str
    message: str


@dataclass(frozen=True, slots=True)
class Activity:
    timestamp: datetime
    participant: str
    activity: str


@dataclass(frozen=True, slots=True)
class Meeting:
    meeting_id: str
    title: str
    date: str
    kind: MeetingKind
    location: str = ""
    participants: tuple[Participant, ...] = ()
    chats: tuple[Chat, ...] = ()
    activities: tuple[Activity, ...] = ()

    @property
    def is_online(self) -> bool:
        return self.kind is MeetingKind.ONLINE

    @property
    def is_offline(self) -> bool:
        return self.kind is MeetingKind.OFFLINE

    @property
    def scope_label(self) -> str:
        return f"{self.meeting_id} - {self.title} ({self.date}) [{self.kind.value}]"


@dataclass(frozen=True, slots=True)
class Batch:
    """All meetings of one run plus an id index; replaces process-wide registries."""

    meetings: tuple[Meeting, ...] = ()
    index: Mapping[str, Meeting] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_meetings(cls, meetings: Iterable[Meeting]) -> "Batch":
        ordered = tuple(meetings)
        index: dict[str, Meeting] = {}
        for meeting in ordered:
            if meeting.meeting_id in index:
                raise SchemaError(
                    "duplicate meeting identifier",
                    meeting_id=meeting.meeting_id,
                    field="meeting_id",
                )
            index[meeting.meeting_id] = meeting
        return cls(meetings=ordered, index=MappingProxyType(index))

    def __len__(self) -> int:
        return len(self.meetings)

    def get(self, meeting_id: str) -> Meeting | None:
        return self.index.get(meeting_id)

    def online_meetings(self) -> list[Meeting]:
        return [meeting for meeting in self.meetings if meeting.is_online]

    def offline_meetings(self) -> list[Meeting]:
        return [meeting for meeting in self.meetings if meeting.is_offline]

    def participant_names(self) -> list[str]:
        seen: dict[str, None] = {}
        for meeting in self.meetings:
            for participant in meeting.participants:
                seen.setdefault(participant.name, None)
        return list(seen)

    def scope_labels(self) -> list[str]:
        return [OVERALL_SCOPE, *(meeting.scope_label for meeting in self.meetings)]

    def resolve_scope(self, scope: str | None) -> Meeting | None:
        """Return the meeting a scope selector names, or None for the overall scope.

        A selector is a meeting id, a full scope label, or empty/"all"/the
        overall label for the batch-wide aggregate.
        """

        if scope is None:
            return None
        key = scope.strip()
        if not key or key.lower() == "all" or key == OVERALL_SCOPE:
            return None
        meeting = self.index.get(key)
        if meeting is not None:
            return meeting
        for candidate in self.meetings:
            if candidate.scope_label == key:
                return candidate
        raise UnknownScopeError(f"No meeting matches scope '{scope}'")
