"""Knowledge data models.

This module provides:
- KnowledgeEntry: a topic document with content-derived identity
- Rule / RuleType: user preferences applied to surfaced content
- ManifestTopic / ManifestMetadata / Manifest: the denormalized topic index
- GitCommit: read-only view of a version-log commit
- ResearchResult: the record handed over by the research engine
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from knowledgeos.core.time import iso_z, parse_time


SOURCE_MANUAL = "manual"
SOURCE_AUTO_LEARNED = "auto-learned"

MANIFEST_VERSION = "1.0.0"


def content_id(topic: str, content: str) -> str:
    """SHA-256 hex digest of topic followed by content."""
    return hashlib.sha256((topic + content).encode("utf-8")).hexdigest()


@dataclass
class KnowledgeEntry:
    """A piece of learned information, stored as one document per topic.

    `id` is derived from topic + content and is never trusted from storage;
    call generate_id() after changing either field.
    """

    topic: str
    content: str
    source: str = SOURCE_MANUAL
    confidence: float = 0.0
    tags: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0
    id: str = ""

    def __post_init__(self):
        if not self.id:
            self.id = self.generate_id()

    def generate_id(self) -> str:
        """Compute the content-derived identity."""
        return content_id(self.topic, self.content)

    def has_tag(self, needle: str) -> bool:
        """Case-insensitive substring match against any tag (needle lowercased)."""
        return any(needle in tag.lower() for tag in self.tags)


class RuleType(str, Enum):
    """Supported rule types"""

    EXCLUDE = "exclude"
    PREFER = "prefer"
    ALWAYS_MENTION = "always_mention"
    NEVER_MENTION = "never_mention"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


@dataclass
class Rule:
    """A user-defined preference or exclusion."""

    type: str
    pattern: str
    replacement: str = ""
    reason: str = ""
    id: str = ""
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a YAML-friendly dictionary"""
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "pattern": self.pattern,
        }
        if self.replacement:
            data["replacement"] = self.replacement
        data["reason"] = self.reason
        data["created_at"] = iso_z(self.created_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rule":
        """Create from dictionary"""
        rule_type = data.get("type", "")
        if isinstance(rule_type, RuleType):
            rule_type = rule_type.value
        return cls(
            id=str(data.get("id") or ""),
            type=str(rule_type),
            pattern=str(data.get("pattern") or ""),
            replacement=str(data.get("replacement") or ""),
            reason=str(data.get("reason") or ""),
            created_at=parse_time(data.get("created_at")),
        )


@dataclass
class ManifestTopic:
    """Projection of a KnowledgeEntry kept in MANIFEST.yaml."""

    name: str
    file: str
    version: int = 0
    updated_at: Optional[datetime] = None
    confidence: float = 0.0
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_entry(cls, entry: KnowledgeEntry, file: str) -> "ManifestTopic":
        return cls(
            name=entry.topic,
            file=file,
            version=entry.version,
            updated_at=entry.updated_at,
            confidence=entry.confidence,
            tags=list(entry.tags),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "file": self.file,
            "version": self.version,
            "updated_at": iso_z(self.updated_at),
            "confidence": self.confidence,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManifestTopic":
        return cls(
            name=str(data.get("name", "")),
            file=str(data.get("file", "")),
            version=int(data.get("version") or 0),
            updated_at=parse_time(data.get("updated_at")),
            confidence=float(data.get("confidence") or 0.0),
            tags=[str(t) for t in (data.get("tags") or [])],
        )


@dataclass
class ManifestMetadata:
    """Overall knowledge base counters."""

    version: str = MANIFEST_VERSION
    last_sync: Optional[datetime] = None
    total_topics: int = 0
    total_rules: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "last_sync": iso_z(self.last_sync),
            "total_topics": self.total_topics,
            "total_rules": self.total_rules,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManifestMetadata":
        return cls(
            version=str(data.get("version") or MANIFEST_VERSION),
            last_sync=parse_time(data.get("last_sync")),
            total_topics=int(data.get("total_topics") or 0),
            total_rules=int(data.get("total_rules") or 0),
        )


@dataclass
class Manifest:
    """Central registry of knowledge topics.

    Derived data: total_topics and updated are recomputed on every save.
    """

    version: str = MANIFEST_VERSION
    updated: Optional[datetime] = None
    topics: List[ManifestTopic] = field(default_factory=list)
    metadata: ManifestMetadata = field(default_factory=ManifestMetadata)

    def find(self, name: str) -> Optional[ManifestTopic]:
        for topic in self.topics:
            if topic.name == name:
                return topic
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "updated": iso_z(self.updated),
            "topics": [t.to_dict() for t in self.topics],
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Manifest":
        return cls(
            version=str(data.get("version") or MANIFEST_VERSION),
            updated=parse_time(data.get("updated")),
            topics=[ManifestTopic.from_dict(t) for t in (data.get("topics") or [])],
            metadata=ManifestMetadata.from_dict(data.get("metadata") or {}),
        )


@dataclass(frozen=True)
class GitCommit:
    """A version-log commit (read-only)."""

    hash: str
    author: str
    date: datetime
    message: str

    @property
    def short_hash(self) -> str:
        return self.hash[:8]


@dataclass
class ResearchResult:
    """Completed research handed over by the research engine."""

    query: str
    mode: str
    content: str
