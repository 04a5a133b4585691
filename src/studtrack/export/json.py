from __future__ import annotations

import json
from typing import Any

from studtrack.analytics.aggregation import ScopeView, session_hour_histogram
from studtrack.analytics.patterns import analyze_chats
from studtrack.domain.models import Chat, Session
from studtrack.ingest.normalizer import TIMESTAMP_FORMAT


def _session(item: Session) -> dict[str, Any]:
    return {
        "join": item.join.strftime(TIMESTAMP_FORMAT),
        "leave": item.leave.strftime(TIMESTAMP_FORMAT),
        "duration_seconds": item.duration_seconds,
    }


def _chat(item: Chat) -> dict[str, Any]:
    return {
        "timestamp": item.timestamp.strftime(TIMESTAMP_FORMAT),
        "sender": item.sender,
        "message": item.message,
    }


def build_scope_payload(view: ScopeView) -> dict[str, Any]:
    return {
        "scope": view.label,
        "meeting_id": view.meeting.meeting_id if view.meeting is not None else None,
        "total_time_seconds": dict(view.total_time),
        "sessions": {name: [_session(s) for s in items] for name, items in view.sessions.items()},
        "session_hours": session_hour_histogram(view.sessions),
        "chat_counts": dict(view.chat_counts) if view.chat_counts is not None else None,
        "chats": (
            {name: [_chat(c) for c in items] for name, items in view.chats.items()}
            if view.chats is not None
            else None
        ),
        "chat_metrics": (
            {
                name: {
                    "messages": pattern.message_count,
                    "rate_per_10_minutes": round(pattern.rate_per_10_minutes, 2),
                    "spam_score": round(pattern.score, 2),
                    "is_spam": pattern.is_spam,
                }
                for name, pattern in ((n, analyze_chats(n, c)) for n, c in view.chats.items())
            }
            if view.chats is not None
            else None
        ),
        "attendance_status_counts": view.attendance_status_counts,
        "activity_label_counts": view.activity_label_counts,
    }


def dumps_payload(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2)
