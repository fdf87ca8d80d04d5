"""KnowledgeOS - versioned knowledge store with rule-based content filtering."""

__version__ = "0.1.0"
