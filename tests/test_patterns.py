from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from studtrack.analytics.patterns import (
    analyze_meeting_chats,
    is_spam,
    message_rate_per_10_minutes,
    most_active_sender,
    sort_chats,
    spam_score,
)
from studtrack.domain.models import Chat

BASE = datetime(2024, 3, 1, 10, 0, 0)


def _chat(offset_s: int, message: str, sender: str = "Eve") -> Chat:
    return Chat(timestamp=BASE + timedelta(seconds=offset_s), sender=sender, message=message)


def test_single_message_scores_ten_and_is_not_spam() -> None:
    chats = [_chat(0, "hello")]

    assert spam_score(chats) == 10.0
    assert is_spam(chats) is False


def test_empty_group() -> None:
    assert spam_score([]) == 10.0
    assert is_spam([]) is False
    assert message_rate_per_10_minutes([]) == 0.0


def test_instant_duplicate_pair_is_spam() -> None:
    chats = [_chat(0, "buy now"), _chat(10, "buy now")]

    # 5 + 10 pair points, density 2 / 1 minute
    assert spam_score(chats) == pytest.approx(19.0)
    assert is_spam(chats) is True


def test_slow_distinct_pair_is_benign() -> None:
    chats = [_chat(0, "first"), _chat(300, "second")]

    assert spam_score(chats) == pytest.approx(0.8)
    assert is_spam(chats) is False


def test_density_floor_of_one_minute() -> None:
    chats = [_chat(i * 2, f"msg {i}") for i in range(5)]

    # four close pairs, density 5 per (floored) minute
    assert spam_score(chats) == pytest.approx(30.0)


def test_score_is_capped_at_100() -> None:
    chats = [_chat(0, "same") for _ in range(20)]

    assert spam_score(chats) == 100.0


def test_middle_band_burst_rule() -> None:
    chats = [_chat(0, "a"), _chat(20, "b")]

    assert spam_score(chats) == pytest.approx(9.0)
    assert is_spam(chats) is True


def test_middle_band_without_burst_or_repeats() -> None:
    chats = [_chat(0, "a"), _chat(20, "b"), _chat(90, "c"), _chat(160, "d")]

    assert spam_score(chats) == pytest.approx(9.0)
    assert is_spam(chats, threshold=3, window_minutes=1) is False


def test_middle_band_repeated_text_rule() -> None:
    repeated = [_chat(0, "ok"), _chat(40, "ok"), _chat(80, "ok"), _chat(100, "hey")]
    varied = [_chat(0, "ok"), _chat(40, "no"), _chat(80, "ok"), _chat(100, "hey")]

    assert spam_score(repeated) == pytest.approx(13.0)
    assert is_spam(repeated, threshold=3, window_minutes=0) is True
    assert is_spam(varied, threshold=3, window_minutes=0) is False


def test_unsorted_input_is_sorted_without_mutation() -> None:
    chats = [_chat(10, "buy now"), _chat(0, "buy now")]
    original = list(chats)

    assert sort_chats(chats) == [original[1], original[0]]
    assert chats == original
    assert spam_score(chats) == spam_score(sort_chats(chats))


def test_sort_is_stable_on_ties() -> None:
    first, second = _chat(0, "one"), _chat(0, "two")

    assert sort_chats([first, second]) == [first, second]
    assert sort_chats([second, first]) == [second, first]


def test_rate_per_ten_minutes() -> None:
    chats = [_chat(0, "a"), _chat(120, "b"), _chat(240, "c"), _chat(300, "d")]

    assert message_rate_per_10_minutes(chats) == pytest.approx(8.0)


def test_analyze_meeting_chats(batch) -> None:
    patterns = analyze_meeting_chats(batch.get("M1"))

    assert [p.sender for p in patterns] == ["Bob", "Alice"]
    bob, alice = patterns
    assert bob.is_spam is True
    assert bob.message_count == 2
    assert alice.score == 10.0 and alice.is_spam is False
    assert most_active_sender(patterns) == "Bob"
    assert analyze_meeting_chats(batch.get("M2")) == []
    assert most_active_sender([]) is None
