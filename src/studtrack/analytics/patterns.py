from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from studtrack.domain.models import Chat, Meeting

SINGLE_MESSAGE_SCORE = 10.0
MAX_SCORE = 100.0
BURST_GAP_SECONDS = 30
BURST_POINTS = 5.0
DUPLICATE_POINTS = 10.0
DENSITY_WEIGHT = 2.0

SPAM_SCORE = 15.0
BENIGN_SCORE = 7.0


def sort_chats(chats: Iterable[Chat]) -> list[Chat]:
    """Return a new list ordered by timestamp; ties keep their input order."""

    return sorted(chats, key=lambda chat: chat.timestamp)


def _whole_seconds(first: Chat, second: Chat) -> int:
    return int((second.timestamp - first.timestamp).total_seconds())


def _active_minutes(ordered: Sequence[Chat]) -> int:
    return max(1, _whole_seconds(ordered[0], ordered[-1]) // 60)


def spam_score(chats: Iterable[Chat]) -> float:
    """Continuous 0-100 spam heuristic for one sender's messages in one meeting.

    Rules
    -----
    - Fewer than 2 messages score a fixed 10.0.
    - density = messages / max(1, whole minutes between first and last).
    - Each adjacent pair at most 30 seconds apart adds 5 points, plus 10 more
      when both messages carry the same text.
    - score = min(100, pair points + density * 2).
    """
    ordered = sort_chats(chats)
    if len(ordered) < 2:
        return SINGLE_MESSAGE_SCORE

    density = len(ordered) / _active_minutes(ordered)

    points = 0.0
    for current, nxt in zip(ordered, ordered[1:]):
        if _whole_seconds(current, nxt) <= BURST_GAP_SECONDS:
            points += BURST_POINTS
            if current.message == nxt.message:
                points += DUPLICATE_POINTS

    return min(MAX_SCORE, points + density * DENSITY_WEIGHT)


def _has_burst(ordered: Sequence[Chat], threshold: int, window_minutes: int) -> bool:
    if threshold < 1 or len(ordered) < threshold:
        return False
    window_seconds = window_minutes * 60
    for start in range(len(ordered) - threshold + 1):
        if _whole_seconds(ordered[start], ordered[start + threshold - 1]) <= window_seconds:
            return True
    return False


def _has_repeated_text(ordered: Sequence[Chat]) -> bool:
    streak = 0
    for current, nxt in zip(ordered, ordered[1:]):
        if current.message == nxt.message:
            streak += 1
            if streak >= 2:
                return True
        else:
            streak = 0
    return False


def is_spam(chats: Iterable[Chat], threshold: int = 2, window_minutes: int = 1) -> bool:
    """Classify one sender's messages as spam.

    A score of 15 or more is spam, below 7 never is. In between, the sender
    is flagged when any `threshold` consecutive messages fall within
    `window_minutes`, or when three or more consecutive messages share the
    same text.
    """
    ordered = sort_chats(chats)
    if len(ordered) < 2:
        return False

    score = spam_score(ordered)
    if score >= SPAM_SCORE:
        return True
    if score < BENIGN_SCORE:
        return False
    return _has_burst(ordered, threshold, window_minutes) or _has_repeated_text(ordered)


def message_rate_per_10_minutes(chats: Iterable[Chat]) -> float:
    ordered = sort_chats(chats)
    if not ordered:
        return 0.0
    return len(ordered) / _active_minutes(ordered) * 10


@dataclass(frozen=True, slots=True)
class ChatPattern:
    sender: str
    message_count: int
    is_spam: bool
    score: float
    rate_per_10_minutes: float


def analyze_chats(sender: str, chats: Sequence[Chat], threshold: int = 2, window_minutes: int = 1) -> ChatPattern:
    ordered = sort_chats(chats)
    return ChatPattern(
        sender=sender,
        message_count=len(ordered),
        is_spam=is_spam(ordered, threshold=threshold, window_minutes=window_minutes),
        score=spam_score(ordered),
        rate_per_10_minutes=message_rate_per_10_minutes(ordered),
    )


def analyze_meeting_chats(meeting: Meeting, threshold: int = 2, window_minutes: int = 1) -> list[ChatPattern]:
    if not meeting.is_online:
        return []
    grouped: dict[str, list[Chat]] = {}
    for chat in meeting.chats:
        grouped.setdefault(chat.sender, []).append(chat)
    return [
        analyze_chats(sender, chats, threshold=threshold, window_minutes=window_minutes)
        for sender, chats in grouped.items()
    ]


def most_active_sender(patterns: Iterable[ChatPattern]) -> str | None:
    ranked = sorted(patterns, key=lambda item: (-item.message_count, item.sender))
    return ranked[0].sender if ranked else None
