"""Core module"""

from knowledgeos.core.errors import (
    KnowledgeError,
    NotFoundError,
    AlreadyExistsError,
    MalformedDocumentError,
    RuleValidationError,
    InvalidRuleTypeError,
    EmptyPatternError,
    InvalidPatternError,
    MissingReplacementError,
    VersionLogFailure,
    EmptyResultError,
)
from knowledgeos.core.models import (
    KnowledgeEntry,
    Rule,
    RuleType,
    Manifest,
    ManifestTopic,
    ManifestMetadata,
    GitCommit,
    ResearchResult,
)
from knowledgeos.core.codec import encode_entry, decode_entry, sanitize_topic
from knowledgeos.core.store import KnowledgeStore
from knowledgeos.core.version_log import VersionLog
from knowledgeos.core.rules import RuleEngine
from knowledgeos.core.autolearner import AutoLearner
from knowledgeos.core.client import KnowledgeClient

__all__ = [
    "KnowledgeError",
    "NotFoundError",
    "AlreadyExistsError",
    "MalformedDocumentError",
    "RuleValidationError",
    "InvalidRuleTypeError",
    "EmptyPatternError",
    "InvalidPatternError",
    "MissingReplacementError",
    "VersionLogFailure",
    "EmptyResultError",
    "KnowledgeEntry",
    "Rule",
    "RuleType",
    "Manifest",
    "ManifestTopic",
    "ManifestMetadata",
    "GitCommit",
    "ResearchResult",
    "encode_entry",
    "decode_entry",
    "sanitize_topic",
    "KnowledgeStore",
    "VersionLog",
    "RuleEngine",
    "AutoLearner",
    "KnowledgeClient",
]
