"""KnowledgeClient - API boundary for collaborators of the knowledge store."""

from __future__ import annotations
from typing import List, Optional

from knowledgeos.core.autolearner import AutoLearner
from knowledgeos.core.models import KnowledgeEntry, ResearchResult
from knowledgeos.core.rules import RuleEngine
from knowledgeos.core.store import KnowledgeStore


class KnowledgeClient:
    """Client used by the research engine and the CLI.

    Reads that surface knowledge to a caller go through the rule engine.
    """

    def __init__(
        self,
        store: KnowledgeStore,
        rules: RuleEngine,
        learner: Optional[AutoLearner] = None,
    ):
        self.store = store
        self.rules = rules
        self.learner = learner or AutoLearner(store)

    def add(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        """Add knowledge."""
        return self.store.add(entry)

    def get(self, topic: str) -> KnowledgeEntry:
        """Get knowledge by topic."""
        return self.store.get(topic)

    def search(self, query: str) -> List[KnowledgeEntry]:
        """Search knowledge."""
        return self.store.search(query)

    def build_context(self, query: str, max_size: int) -> str:
        """Relevant knowledge for a query, filtered through the user's rules."""
        context = self.store.get_relevant_knowledge(query, max_size)
        if not context:
            return ""
        return self.rules.apply(context)

    def learn(self, result: Optional[ResearchResult]) -> List[KnowledgeEntry]:
        """Store what a finished research run produced."""
        return self.learner.learn(result)
