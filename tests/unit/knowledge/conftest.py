from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from knowledgeos.backends.file_store import FileKnowledgeStore
from knowledgeos.backends.memory_log import InMemoryVersionLog
from knowledgeos.core.models import KnowledgeEntry


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")


@pytest.fixture
def version_log(tmp_path: Path) -> InMemoryVersionLog:
    return InMemoryVersionLog(tmp_path / "kb")


@pytest.fixture
def store(tmp_path: Path, version_log: InMemoryVersionLog) -> FileKnowledgeStore:
    return FileKnowledgeStore(tmp_path / "kb", version_log=version_log)


def make_entry(topic: str, content: str = "Some content", **kwargs) -> KnowledgeEntry:
    kwargs.setdefault("confidence", 0.8)
    return KnowledgeEntry(topic=topic, content=content, **kwargs)
