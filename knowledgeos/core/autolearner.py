"""AutoLearner - turns completed research into knowledge entries."""

from __future__ import annotations

import logging
from typing import List, Optional

from knowledgeos.core.errors import AlreadyExistsError, EmptyResultError
from knowledgeos.core.models import SOURCE_AUTO_LEARNED, KnowledgeEntry, ResearchResult
from knowledgeos.core.store import KnowledgeStore


logger = logging.getLogger(__name__)

DEFAULT_AUTO_LEARN_CONFIDENCE = 0.7


class AutoLearner:
    """Extracts and stores knowledge from research results."""

    def __init__(self, store: KnowledgeStore, confidence: float = DEFAULT_AUTO_LEARN_CONFIDENCE):
        if not 0.0 <= confidence <= 1.0:
            raise ValueError("confidence must be between 0.0 and 1.0")
        self.store = store
        self.confidence = confidence

    def analyze_result(self, result: Optional[ResearchResult]) -> List[KnowledgeEntry]:
        """
        Suggest knowledge entries for a research result.

        One entry per result: the query becomes the topic and the research
        output the content.

        Raises:
            EmptyResultError: result is None or has blank content
        """
        if result is None or not result.content or not result.content.strip():
            raise EmptyResultError()

        tags = [SOURCE_AUTO_LEARNED]
        if result.mode:
            tags.append(result.mode)

        return [
            KnowledgeEntry(
                topic=result.query,
                content=result.content,
                source=SOURCE_AUTO_LEARNED,
                confidence=self.confidence,
                tags=tags,
            )
        ]

    def learn(self, result: Optional[ResearchResult]) -> List[KnowledgeEntry]:
        """
        Analyze a result and add the suggested entries to the store.

        Topics that already exist are left untouched.

        Returns:
            The entries actually added
        """
        added = []
        for entry in self.analyze_result(result):
            try:
                added.append(self.store.add(entry))
            except AlreadyExistsError:
                logger.info(f"Auto-learn skipped existing topic: {entry.topic}")
        return added
