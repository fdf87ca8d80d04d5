from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from knowledgeos.core.models import KnowledgeEntry
from knowledgeos.core.similarity import KnowledgeDeduplicator, calculate_similarity


def test_identical_texts_score_one() -> None:
    assert calculate_similarity("Same Text", "same text") == 1.0


def test_empty_text_scores_zero() -> None:
    assert calculate_similarity("", "something") == 0.0
    assert calculate_similarity("   ", "something") == 0.0


def test_overlap_divided_by_longer_token_count() -> None:
    # 3 of "a b c" found in {"a","b","c","d"}; longer side has 4 tokens
    assert calculate_similarity("a b c d", "a b c") == pytest.approx(0.75)
    assert calculate_similarity("a b", "x y") == 0.0


def test_repeated_tokens_counted_on_second_text() -> None:
    assert calculate_similarity("a b", "a a") == 1.0


def test_threshold_is_strict() -> None:
    dedup = KnowledgeDeduplicator(similarity_threshold=0.75)
    a = KnowledgeEntry(topic="a", content="a b c d")
    b = KnowledgeEntry(topic="b", content="a b c")
    assert not dedup.is_duplicate(a, b)


def test_invalid_threshold_rejected() -> None:
    with pytest.raises(ValueError):
        KnowledgeDeduplicator(similarity_threshold=1.5)


def test_loser_precedence() -> None:
    dedup = KnowledgeDeduplicator()
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    high = KnowledgeEntry(topic="z", content="x", confidence=0.9)
    low = KnowledgeEntry(topic="a", content="x", confidence=0.5)
    assert dedup.pick_loser(high, low) is low

    newer = KnowledgeEntry(topic="z", content="x", confidence=0.5, updated_at=now)
    older = KnowledgeEntry(topic="a", content="x", confidence=0.5, updated_at=now - timedelta(days=1))
    assert dedup.pick_loser(older, newer) is older

    undated = KnowledgeEntry(topic="a", content="x", confidence=0.5)
    assert dedup.pick_loser(undated, older) is undated

    first = KnowledgeEntry(topic="a", content="x", confidence=0.5, updated_at=now)
    second = KnowledgeEntry(topic="b", content="x", confidence=0.5, updated_at=now)
    assert dedup.pick_loser(second, first) is second


def test_find_removals_skips_already_removed() -> None:
    dedup = KnowledgeDeduplicator()
    entries = [
        KnowledgeEntry(topic="t/a", content="same words here", confidence=0.9),
        KnowledgeEntry(topic="t/b", content="same words here", confidence=0.5),
        KnowledgeEntry(topic="t/c", content="same words here", confidence=0.7),
        KnowledgeEntry(topic="t/d", content="something else entirely", confidence=0.1),
    ]
    assert dedup.find_removals(entries) == ["t/b", "t/c"]
    assert dedup.find_removals(reversed(entries)) == ["t/b", "t/c"]
