from __future__ import annotations

from datetime import datetime
from typing import Iterable


def split_hours_minutes(seconds: int) -> tuple[int, int]:
    total = max(int(seconds), 0)
    return total // 3600, (total % 3600) // 60


def format_hours_minutes(seconds: int) -> str:
    hours, minutes = split_hours_minutes(seconds)
    return f"{hours} hours {minutes} minutes"


def format_clock(moment: datetime) -> str:
    return moment.strftime("%H:%M")


def format_percent(value: float) -> str:
    return f"{value:.1f}%"


def banner(title: str) -> list[str]:
    return [title, "=" * len(title)]


def name_width(names: Iterable[str], minimum: int = 0) -> int:
    return max((len(name) for name in names), default=minimum)


def label(name: str, width: int) -> str:
    """Left-align `name:` so values in a block start in the same column."""

    return f"{name + ':':<{width + 1}}"
