"""Knowledge deduplicator for finding near-identical topic documents."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Set

from knowledgeos.core.models import KnowledgeEntry


# Pairs scoring strictly above this are duplicates
SIMILARITY_THRESHOLD = 0.85

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def calculate_similarity(text1: str, text2: str) -> float:
    """
    Calculate similarity between two texts.

    Bag-of-words overlap: the number of tokens of text2 (repeats counted)
    found in the token set of text1, divided by the longer token count.
    A rough heuristic, not a measure of semantic equivalence; embeddings or
    edit distance would do better.

    Args:
        text1: First text
        text2: Second text

    Returns:
        Similarity score (0.0-1.0)
    """
    text1 = text1.lower()
    text2 = text2.lower()

    if text1 == text2:
        return 1.0

    words1 = text1.split()
    words2 = text2.split()

    if not words1 or not words2:
        return 0.0

    word_set1 = set(words1)
    overlap = sum(1 for w in words2 if w in word_set1)

    return overlap / max(len(words1), len(words2))


class KnowledgeDeduplicator:
    """
    Pairwise deduplicator over knowledge entries.

    Survivor precedence for a duplicate pair:
    1. higher confidence
    2. more recent updated_at
    3. lexically smaller topic
    """

    def __init__(self, similarity_threshold: float = SIMILARITY_THRESHOLD):
        """
        Initialize deduplicator.

        Args:
            similarity_threshold: Score a pair must exceed (0.0-1.0)
        """
        if not 0.0 <= similarity_threshold <= 1.0:
            raise ValueError("similarity_threshold must be between 0.0 and 1.0")

        self.similarity_threshold = similarity_threshold

    def is_duplicate(self, a: KnowledgeEntry, b: KnowledgeEntry) -> bool:
        return calculate_similarity(a.content, b.content) > self.similarity_threshold

    def pick_loser(self, a: KnowledgeEntry, b: KnowledgeEntry) -> KnowledgeEntry:
        """Return the entry of a duplicate pair that should be removed."""
        if a.confidence != b.confidence:
            return b if a.confidence > b.confidence else a

        a_updated = a.updated_at or _EPOCH
        b_updated = b.updated_at or _EPOCH
        if a_updated != b_updated:
            return b if a_updated > b_updated else a

        return b if a.topic < b.topic else a

    def find_removals(self, candidates: Iterable[KnowledgeEntry]) -> List[str]:
        """
        Scan every unordered pair and collect the topics to remove.

        Candidates are ordered by topic first, so the result does not depend
        on the caller's iteration order. An entry already marked for removal
        takes no part in later comparisons.

        Returns:
            Sorted list of topics to remove
        """
        ordered = sorted(candidates, key=lambda e: e.topic)
        to_remove: Set[str] = set()

        for i, first in enumerate(ordered):
            if first.topic in to_remove:
                continue
            for second in ordered[i + 1:]:
                if second.topic in to_remove:
                    continue
                if not self.is_duplicate(first, second):
                    continue
                loser = self.pick_loser(first, second)
                to_remove.add(loser.topic)
                if loser is first:
                    break

        return sorted(to_remove)
