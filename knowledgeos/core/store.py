"""Abstract KnowledgeStore interface."""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Dict, List

from knowledgeos.core.models import GitCommit, KnowledgeEntry


class KnowledgeStore(ABC):
    """Abstract interface for knowledge storage backends."""

    @abstractmethod
    def add(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        """Create a new topic at version 1."""
        pass

    @abstractmethod
    def update(self, topic: str, entry: KnowledgeEntry) -> KnowledgeEntry:
        """Replace an existing topic, bumping its version."""
        pass

    @abstractmethod
    def get(self, topic: str) -> KnowledgeEntry:
        """Get knowledge by topic."""
        pass

    @abstractmethod
    def delete(self, topic: str) -> None:
        """Delete knowledge by topic."""
        pass

    @abstractmethod
    def list(self) -> List[KnowledgeEntry]:
        """All entries, in no particular order."""
        pass

    @abstractmethod
    def search(self, query: str) -> List[KnowledgeEntry]:
        """Case-insensitive substring search over topic, content and tags."""
        pass

    @abstractmethod
    def deduplicate(self, topic_prefix: str) -> List[str]:
        """Remove near-duplicate entries under a topic prefix."""
        pass

    @abstractmethod
    def consolidate(self) -> Dict[str, List[str]]:
        """Run a consolidation pass over topic groups."""
        pass

    @abstractmethod
    def get_relevant_knowledge(self, query: str, max_size: int) -> str:
        """Matching entries formatted as markdown, within a byte budget."""
        pass

    @abstractmethod
    def history(self, topic: str) -> List[GitCommit]:
        """Version-log history of one topic, newest first."""
        pass

    @abstractmethod
    def diff(self, rev_a: str, rev_b: str) -> str:
        """Version-log diff between two revisions."""
        pass

    @abstractmethod
    def commit(self, message: str) -> str:
        """Commit all pending changes under the store root."""
        pass
