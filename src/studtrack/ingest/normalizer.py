from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Literal, Mapping

from studtrack.domain.errors import NormalizationError, ParseError, SchemaError
from studtrack.domain.models import (
    Activity,
    Attendance,
    Batch,
    Chat,
    Meeting,
    MeetingKind,
    OfflineParticipant,
    OnlineParticipant,
    Participant,
    Session,
)

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
_TIMESTAMP_SHAPE = re.compile(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}")

OnError = Literal["abort", "skip"]


def parse_timestamp(value: Any, *, meeting_id: str | None, field: str) -> datetime:
    if not isinstance(value, str):
        raise ParseError(
            f"expected a '{TIMESTAMP_FORMAT}' timestamp, got {type(value).__name__}",
            meeting_id=meeting_id,
            field=field,
        )
    # strptime alone accepts single-digit fields and runs of whitespace
    if not _TIMESTAMP_SHAPE.fullmatch(value):
        raise ParseError(
            f"invalid timestamp '{value}' (expected {TIMESTAMP_FORMAT})",
            meeting_id=meeting_id,
            field=field,
        )
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError as exc:
        raise ParseError(
            f"invalid timestamp '{value}' (expected {TIMESTAMP_FORMAT})",
            meeting_id=meeting_id,
            field=field,
        ) from exc


class _MeetingReader:
    """Reads one raw meeting mapping; every failure names the offending field path."""

    def __init__(self, raw: Mapping[str, Any]) -> None:
        self.raw = raw
        self.meeting_id: str | None = None

    def _required_text(self, node: Mapping[str, Any], key: str, path: str) -> str:
        value = node.get(key)
        if value is None:
            raise SchemaError("missing required field", meeting_id=self.meeting_id, field=path)
        if isinstance(value, (dict, list)):
            raise SchemaError("expected a scalar value", meeting_id=self.meeting_id, field=path)
        return str(value)

    def _timestamp(self, node: Mapping[str, Any], key: str, path: str) -> datetime:
        if node.get(key) is None:
            raise SchemaError("missing required timestamp", meeting_id=self.meeting_id, field=path)
        return parse_timestamp(node[key], meeting_id=self.meeting_id, field=path)

    def _optional_timestamp(self, node: Mapping[str, Any], key: str, path: str) -> datetime | None:
        if node.get(key) is None:
            return None
        return parse_timestamp(node[key], meeting_id=self.meeting_id, field=path)

    def _minutes(self, node: Mapping[str, Any], key: str, path: str) -> int:
        value = node.get(key)
        if value is None:
            return 0
        if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
            raise ParseError("expected whole minutes", meeting_id=self.meeting_id, field=path)
        try:
            minutes = int(value)
        except (TypeError, ValueError) as exc:
            raise ParseError(
                f"expected whole minutes, got '{value}'",
                meeting_id=self.meeting_id,
                field=path,
            ) from exc
        if minutes < 0:
            raise ParseError("minutes cannot be negative", meeting_id=self.meeting_id, field=path)
        return minutes

    def _records(self, node: Mapping[str, Any], key: str, path: str) -> list[Mapping[str, Any]]:
        value = node.get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            raise SchemaError("expected a list", meeting_id=self.meeting_id, field=path)
        for index, item in enumerate(value):
            if not isinstance(item, Mapping):
                raise SchemaError(
                    "expected an object",
                    meeting_id=self.meeting_id,
                    field=f"{path}[{index}]",
                )
        return value

    def read(self) -> Meeting:
        raw = self.raw
        self.meeting_id = self._required_text(raw, "meeting_id", "meeting_id")
        title = self._required_text(raw, "title", "title")
        date = self._required_text(raw, "date", "date")

        kind_value = raw.get("type")
        try:
            kind = MeetingKind(str(kind_value).strip().lower()) if kind_value is not None else MeetingKind.ONLINE
        except ValueError as exc:
            raise SchemaError(
                f"unknown meeting type '{kind_value}' (expected online|offline)",
                meeting_id=self.meeting_id,
                field="type",
            ) from exc

        location = raw.get("location")
        participants = tuple(
            self._participant(node, kind, f"participants[{index}]")
            for index, node in enumerate(self._records(raw, "participants", "participants"))
        )
        chats = tuple(
            self._chat(node, f"chats[{index}]")
            for index, node in enumerate(self._records(raw, "chats", "chats"))
        )
        activities = tuple(
            self._activity(node, f"activities[{index}]")
            for index, node in enumerate(self._records(raw, "activities", "activities"))
        )

        return Meeting(
            meeting_id=self.meeting_id,
            title=title,
            date=date,
            kind=kind,
            location="" if location is None else str(location),
            participants=participants,
            chats=chats,
            activities=activities,
        )

    def _participant(self, node: Mapping[str, Any], kind: MeetingKind, path: str) -> Participant:
        name = self._required_text(node, "name", f"{path}.name")
        if kind is MeetingKind.ONLINE:
            sessions = tuple(
                self._session(item, f"{path}.sessions[{index}]")
                for index, item in enumerate(self._records(node, "sessions", f"{path}.sessions"))
            )
            return OnlineParticipant(name=name, sessions=sessions)

        attendance_node = node.get("attendance")
        if attendance_node is None:
            return OfflineParticipant(name=name, attendance=None)
        if not isinstance(attendance_node, Mapping):
            raise SchemaError("expected an object", meeting_id=self.meeting_id, field=f"{path}.attendance")
        return OfflineParticipant(name=name, attendance=self._attendance(attendance_node, f"{path}.attendance"))

    def _session(self, node: Mapping[str, Any], path: str) -> Session:
        join = self._timestamp(node, "join", f"{path}.join")
        leave = self._timestamp(node, "leave", f"{path}.leave")
        return Session.between(join, leave)

    def _attendance(self, node: Mapping[str, Any], path: str) -> Attendance:
        return Attendance(
            status=self._required_text(node, "status", f"{path}.status"),
            check_in=self._optional_timestamp(node, "check_in", f"{path}.check_in"),
            check_out=self._optional_timestamp(node, "check_out", f"{path}.check_out"),
            late_by_minutes=self._minutes(node, "late_by_minutes", f"{path}.late_by_minutes"),
            early_leave_minutes=self._minutes(node, "early_leave_minutes", f"{path}.early_leave_minutes"),
        )

    def _chat(self, node: Mapping[str, Any], path: str) -> Chat:
        return Chat(
            timestamp=self._timestamp(node, "timestamp", f"{path}.timestamp"),
            sender=self._required_text(node, "sender", f"{path}.sender"),
            message=self._required_text(node, "message", f"{path}.message"),
        )

    def _activity(self, node: Mapping[str, Any], path: str) -> Activity:
        return Activity(
            timestamp=self._timestamp(node, "timestamp", f"{path}.timestamp"),
            participant=self._required_text(node, "participant", f"{path}.participant"),
            activity=self._required_text(node, "activity", f"{path}.activity"),
        )


def normalize_meeting(raw: Mapping[str, Any]) -> Meeting:
    """Build a Meeting from one raw meeting mapping.

    Rules
    -----
    - `type` defaults to online, `location` to an empty string.
    - Missing `participants`, `sessions`, `chats` or `activities` become empty.
    - Offline participants without an `attendance` block keep `attendance=None`.
    - `late_by_minutes` / `early_leave_minutes` default to 0.
    - Timestamps must match `YYYY-MM-DD HH:MM:SS`; the first bad one fails the
      whole meeting with ParseError.
    """
    if not isinstance(raw, Mapping):
        raise SchemaError("meeting record must be an object")
    return _MeetingReader(raw).read()


def normalize_batch(document: Mapping[str, Any], *, on_error: OnError = "abort") -> Batch:
    """Normalize a root document (`{"meetings": [...]}`) into a Batch.

    With `on_error="abort"` the first invalid meeting is re-raised; with
    `on_error="skip"` it is logged and left out of the batch. A repeated
    `meeting_id` counts as invalid; under skip the first occurrence is kept.
    """
    if on_error not in ("abort", "skip"):
        raise ValueError(f"Unsupported on_error policy '{on_error}'. Allowed: abort, skip")
    if not isinstance(document, Mapping):
        raise SchemaError("document root must be an object")
    raw_meetings = document.get("meetings")
    if not isinstance(raw_meetings, list):
        raise SchemaError("document must contain a 'meetings' list", field="meetings")

    meetings: list[Meeting] = []
    seen: set[str] = set()
    for index, raw in enumerate(raw_meetings):
        try:
            meeting = normalize_meeting(raw)
            if meeting.meeting_id in seen:
                raise SchemaError(
                    "duplicate meeting identifier",
                    meeting_id=meeting.meeting_id,
                    field="meeting_id",
                )
            seen.add(meeting.meeting_id)
            meetings.append(meeting)
        except NormalizationError as exc:
            if on_error == "abort":
                logger.error("Aborting ingestion at meetings[%d]: %s", index, exc)
                raise
            logger.warning("Skipping meetings[%d]: %s", index, exc)

    batch = Batch.from_meetings(meetings)
    logger.info(
        "Normalized %d meetings (%d online, %d offline)",
        len(batch),
        len(batch.online_meetings()),
        len(batch.offline_meetings()),
    )
    return batch
