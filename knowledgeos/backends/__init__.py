"""Storage and version-log backends"""

from knowledgeos.backends.file_store import FileKnowledgeStore
from knowledgeos.backends.git_log import GitVersionLog
from knowledgeos.backends.memory_log import InMemoryVersionLog

__all__ = [
    "FileKnowledgeStore",
    "GitVersionLog",
    "InMemoryVersionLog",
]
