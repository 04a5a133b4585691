from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path

from studtrack.config import Settings
from studtrack.domain.errors import NormalizationError
from studtrack.ingest.loader import load_batch


@dataclass(slots=True)
class DoctorCheck:
    name: str
    status: str
    detail: str


def _check_reports_dir(settings: Settings) -> DoctorCheck:
    try:
        settings.ensure_dirs()
        with tempfile.NamedTemporaryFile(dir=settings.reports_dir, prefix=".write_check_", delete=True):
            pass
        return DoctorCheck("Reports directory", "ok", f"Writable: {settings.reports_dir}")
    except OSError as exc:
        return DoctorCheck("Reports directory", "fail", f"Cannot write to {settings.reports_dir}: {exc}")


def _check_log_level(settings: Settings) -> DoctorCheck:
    level = logging.getLevelName(settings.log_level.upper())
    if isinstance(level, int):
        return DoctorCheck("Log level", "ok", settings.log_level.upper())
    return DoctorCheck(
        "Log level",
        "warn",
        f"Unknown STUDTRACK_LOG_LEVEL '{settings.log_level}'; WARNING will be used.",
    )


def _check_input(settings: Settings, input_path: Path | None) -> DoctorCheck:
    path = input_path or settings.default_input
    if path is None:
        return DoctorCheck(
            "Input data",
            "warn",
            "No input given and STUDTRACK_DEFAULT_INPUT not set; skipped validation.",
        )
    try:
        batch = load_batch(path, on_error="abort")
    except NormalizationError as exc:
        return DoctorCheck("Input data", "fail", f"Invalid meeting data: {exc}")
    except OSError as exc:
        return DoctorCheck("Input data", "fail", f"Cannot read {path}: {exc}")
    return DoctorCheck(
        "Input data",
        "ok",
        f"{len(batch)} meetings ({len(batch.online_meetings())} online, "
        f"{len(batch.offline_meetings())} offline) in {path}",
    )


def run_doctor(settings: Settings, input_path: Path | None = None) -> list[DoctorCheck]:
    return [
        _check_reports_dir(settings),
        _check_log_level(settings),
        _check_input(settings, input_path),
    ]
