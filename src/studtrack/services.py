from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from studtrack.analytics.aggregation import (
    ScopeView,
    attendance_status_counts,
    build_scope_view,
    meeting_chats_by_sender,
)
from studtrack.analytics.patterns import ChatPattern, analyze_meeting_chats, most_active_sender
from studtrack.analytics.participants import rank
from studtrack.config import Settings, get_settings
from studtrack.domain.errors import UnknownScopeError
from studtrack.domain.models import Batch, Meeting
from studtrack.export import json as json_export
from studtrack.export.report import attendance_rate, write_report
from studtrack.ingest.loader import load_batch

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MeetingChatAnalysis:
    meeting: Meeting
    patterns: list[ChatPattern]
    most_active: str | None
    total_messages: int


@dataclass(slots=True)
class ParticipantActivity:
    name: str
    activity_count: int
    most_common: str


@dataclass(slots=True)
class MeetingActivityAnalysis:
    meeting: Meeting
    participants: list[ParticipantActivity]
    status_counts: dict[str, int]
    attendance_rate: float | None


class StudTrackService:
    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    def load(self, path: Path) -> Batch:
        logger.info("Loading meetings from %s", path)
        return load_batch(path, on_error=self.settings.on_invalid_meeting)

    def generate_report(
        self,
        batch: Batch,
        output: Path | None = None,
        *,
        generated_at: datetime | None = None,
    ) -> Path:
        if output is None:
            self.settings.ensure_dirs()
            output = self.settings.report_path
        return write_report(batch, output, generated_at=generated_at or datetime.now())

    def scope_view(self, batch: Batch, scope: str | None = None) -> ScopeView:
        return build_scope_view(batch, scope)

    def export_scope_view(self, batch: Batch, scope: str | None, output: Path) -> Path:
        payload = json_export.build_scope_payload(self.scope_view(batch, scope))
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json_export.dumps_payload(payload), encoding="utf-8")
        logger.info("Scope view exported to %s", output)
        return output

    def chat_patterns(self, batch: Batch, meeting_id: str | None = None) -> list[MeetingChatAnalysis]:
        if meeting_id is not None:
            meeting = batch.get(meeting_id)
            if meeting is None:
                raise UnknownScopeError(f"Meeting not found: {meeting_id}")
            meetings = [meeting]
        else:
            meetings = batch.online_meetings()

        results: list[MeetingChatAnalysis] = []
        for meeting in meetings:
            if not meeting.is_online or not meeting.chats:
                continue
            patterns = analyze_meeting_chats(
                meeting,
                threshold=self.settings.spam_threshold_messages,
                window_minutes=self.settings.spam_window_minutes,
            )
            results.append(
                MeetingChatAnalysis(
                    meeting=meeting,
                    patterns=patterns,
                    most_active=most_active_sender(patterns),
                    total_messages=len(meeting.chats),
                )
            )
        return results

    def activity_breakdown(self, batch: Batch) -> list[MeetingActivityAnalysis]:
        results: list[MeetingActivityAnalysis] = []
        for meeting in batch.offline_meetings():
            if not meeting.activities:
                continue
            labels_by_participant: dict[str, dict[str, int]] = {}
            for activity in meeting.activities:
                labels = labels_by_participant.setdefault(activity.participant, {})
                labels[activity.activity] = labels.get(activity.activity, 0) + 1
            participants = [
                ParticipantActivity(
                    name=name,
                    activity_count=sum(labels.values()),
                    most_common=rank(labels, 1)[0][0],
                )
                for name, labels in labels_by_participant.items()
            ]
            results.append(
                MeetingActivityAnalysis(
                    meeting=meeting,
                    participants=participants,
                    status_counts=attendance_status_counts(meeting),
                    attendance_rate=attendance_rate(meeting),
                )
            )
        return results

    def chat_count(self, meeting: Meeting) -> int | None:
        grouped = meeting_chats_by_sender(meeting)
        return None if grouped is None else sum(len(items) for items in grouped.values())
