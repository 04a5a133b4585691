from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from studtrack.domain.models import Batch
from studtrack.ingest.normalizer import normalize_batch


def build_document() -> dict[str, Any]:
    return {
        "meetings": [
            {
                "meeting_id": "M1",
                "title": "Standup",
                "date": "2024-03-01",
                "participants": [
                    {
                        "name": "Alice",
                        "sessions": [
                            {"join": "2024-03-01 10:00:00", "leave": "2024-03-01 10:30:00"},
                            {"join": "2024-03-01 10:40:00", "leave": "2024-03-01 11:00:00"},
                        ],
                    },
                    {
                        "name": "Bob",
                        "sessions": [{"join": "2024-03-01 10:05:00", "leave": "2024-03-01 10:50:00"}],
                    },
                ],
                "chats": [
                    {"timestamp": "2024-03-01 10:10:10", "sender": "Bob", "message": "hi"},
                    {"timestamp": "2024-03-01 10:10:00", "sender": "Bob", "message": "hi"},
                    {"timestamp": "2024-03-01 10:20:00", "sender": "Alice", "message": "question"},
                ],
            },
            {
                "meeting_id": "M2",
                "title": "Workshop",
                "date": "2024-03-02",
                "type": "offline",
                "location": "Room 101",
                "participants": [
                    {
                        "name": "Alice",
                        "attendance": {
                            "status": "present",
                            "check_in": "2024-03-02 09:00:00",
                            "check_out": "2024-03-02 11:00:00",
                        },
                    },
                    {
                        "name": "Bob",
                        "attendance": {
                            "status": "late",
                            "check_in": "2024-03-02 09:15:00",
                            "check_out": "2024-03-02 10:45:00",
                            "late_by_minutes": 15,
                            "early_leave_minutes": 15,
                        },
                    },
                    {"name": "Carol", "attendance": {"status": "absent"}},
                    {
                        "name": "Dave",
                        "attendance": {"status": "present", "check_in": "2024-03-02 09:00:00"},
                    },
                ],
                "activities": [
                    {"timestamp": "2024-03-02 09:30:00", "participant": "Alice", "activity": "question"},
                    {"timestamp": "2024-03-02 10:00:00", "participant": "Alice", "activity": "presentation"},
                    {"timestamp": "2024-03-02 10:05:00", "participant": "Bob", "activity": "question"},
                ],
            },
        ]
    }


@pytest.fixture()
def document() -> dict[str, Any]:
    return build_document()


@pytest.fixture()
def batch(document: dict[str, Any]) -> Batch:
    return normalize_batch(document)


@pytest.fixture()
def input_file(tmp_path: Path, document: dict[str, Any]) -> Path:
    path = tmp_path / "meetings.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    return path
