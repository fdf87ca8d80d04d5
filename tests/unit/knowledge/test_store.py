from __future__ import annotations

import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

from conftest import make_entry
from knowledgeos.backends.file_store import CONSOLIDATE_MESSAGE, FileKnowledgeStore
from knowledgeos.backends.memory_log import InMemoryVersionLog
from knowledgeos.core.errors import AlreadyExistsError, NotFoundError, VersionLogFailure
from knowledgeos.core.manifest import load_manifest, manifest_path


def test_add_then_get(store: FileKnowledgeStore) -> None:
    store.add(make_entry("x", "A", confidence=0.8))

    entry = store.get("x")
    assert entry.version == 1
    assert entry.confidence == 0.8
    assert entry.created_at is not None
    assert entry.updated_at is not None


def test_add_writes_document_and_commits(store: FileKnowledgeStore, version_log: InMemoryVersionLog) -> None:
    store.add(make_entry("swift/concurrency", "Use actors for shared state"))

    path = store.file_path("swift/concurrency")
    assert path.name == "swift-concurrency.md"
    assert path.read_text(encoding="utf-8").startswith("---\ntopic: swift/concurrency\n")

    last = version_log.commits[-1]
    assert last.message == "Add: swift/concurrency - Use actors for shared state"
    assert version_log.touched_paths(last.hash) == {"swift-concurrency.md"}


def test_commit_message_preview_is_truncated(store: FileKnowledgeStore, version_log: InMemoryVersionLog) -> None:
    store.add(make_entry("long", "word " * 40))
    message = version_log.commits[-1].message
    assert message.endswith("...")
    assert len(message) == len("Add: long - ") + 50 + 3


def test_add_existing_topic_fails(store: FileKnowledgeStore) -> None:
    store.add(make_entry("x"))
    with pytest.raises(AlreadyExistsError):
        store.add(make_entry("x", "other"))


def test_add_colliding_filename_fails(store: FileKnowledgeStore) -> None:
    store.add(make_entry("a/b"))
    with pytest.raises(AlreadyExistsError) as exc:
        store.add(make_entry("a-b"))
    assert "a-b.md" in str(exc.value)


def test_add_rejects_bad_input(store: FileKnowledgeStore) -> None:
    with pytest.raises(ValueError):
        store.add(make_entry(""))
    with pytest.raises(ValueError):
        store.add(make_entry("x", confidence=1.5))


def test_update_increments_version_and_keeps_created(store: FileKnowledgeStore) -> None:
    first = store.add(make_entry("x", "v1"))

    second = store.update("x", make_entry("x", "v2"))
    third = store.update("x", make_entry("ignored-topic", "v3"))

    assert second.version == 2
    assert third.version == 3
    assert third.topic == "x"
    assert third.created_at == first.created_at
    assert store.get("x").content == "v3"
    assert not store.exists("ignored-topic")


def test_missing_topic_operations_fail(store: FileKnowledgeStore) -> None:
    with pytest.raises(NotFoundError):
        store.get("nope")
    with pytest.raises(NotFoundError):
        store.update("nope", make_entry("nope"))
    with pytest.raises(NotFoundError):
        store.delete("nope")


def test_delete_removes_file_and_commits(store: FileKnowledgeStore, version_log: InMemoryVersionLog) -> None:
    store.add(make_entry("x"))
    path = store.file_path("x")

    store.delete("x")

    assert not path.exists()
    assert not store.exists("x")
    assert version_log.commits[-1].message == "Remove: x"


def test_returned_entries_are_copies(store: FileKnowledgeStore) -> None:
    store.add(make_entry("x", tags=["swift"]))

    entry = store.get("x")
    entry.tags.append("mutated")
    entry.content = "mutated"

    assert store.get("x").tags == ["swift"]
    assert store.get("x").content == "Some content"


def test_search_matches_topic_content_and_tags(store: FileKnowledgeStore) -> None:
    store.add(make_entry("swift/actors", "Isolation"))
    store.add(make_entry("testing", "Prefer Swift Testing"))
    store.add(make_entry("ui", "Layout", tags=["SwiftUI"]))
    store.add(make_entry("python", "Nothing relevant"))

    topics = sorted(e.topic for e in store.search("SWIFT"))
    assert topics == ["swift/actors", "testing", "ui"]
    assert store.search("zzz") == []


def test_deduplicate_keeps_higher_confidence(store: FileKnowledgeStore) -> None:
    store.add(make_entry("dup/a", "identical body text", confidence=0.8))
    store.add(make_entry("dup/b", "identical body text", confidence=0.9))

    removed = store.deduplicate("dup")

    assert removed == ["dup/a"]
    remaining = store.list()
    assert len(remaining) == 1
    assert remaining[0].confidence == 0.9


def test_deduplicate_is_idempotent(store: FileKnowledgeStore, version_log: InMemoryVersionLog) -> None:
    for i, confidence in enumerate((0.5, 0.6, 0.7)):
        store.add(make_entry(f"dup/{i}", "the same words", confidence=confidence))
    store.add(make_entry("dup/other", "completely unrelated content"))

    assert store.deduplicate("dup") == ["dup/0", "dup/1"]
    commits = len(version_log.commits)

    assert store.deduplicate("dup") == []
    assert len(version_log.commits) == commits
    assert version_log.commits[-1].message == "Deduplicate: Removed 2 duplicate entries in dup"


def test_deduplicate_respects_prefix(store: FileKnowledgeStore) -> None:
    store.add(make_entry("a/one", "same text"))
    store.add(make_entry("b/one", "same text"))
    assert store.deduplicate("a") == []
    assert len(store.list()) == 2


def test_consolidate_groups_by_prefix(store: FileKnowledgeStore, version_log: InMemoryVersionLog) -> None:
    store.add(make_entry("swift/a", "one"))
    store.add(make_entry("swift/b", "two"))
    store.add(make_entry("python", "three"))

    groups = store.consolidate()

    assert groups == {"swift": ["swift/a", "swift/b"]}
    assert version_log.commits[-1].message == CONSOLIDATE_MESSAGE


def test_consolidate_without_groups_does_not_commit(store: FileKnowledgeStore, version_log: InMemoryVersionLog) -> None:
    store.add(make_entry("swift/a", "one"))
    commits = len(version_log.commits)

    assert store.consolidate() == {}
    assert len(version_log.commits) == commits


def test_relevant_knowledge_respects_byte_budget(store: FileKnowledgeStore) -> None:
    content = "swift " * 13 + "xx"  # 80 bytes
    assert len(content.encode("utf-8")) == 80
    store.add(make_entry("swift-notes", content))

    assert store.get_relevant_knowledge("swift", 50) == ""
    assert store.get_relevant_knowledge("swift", 5000) == f"## swift-notes\n\n{content.strip()}\n\n"


def test_relevant_knowledge_stops_at_first_overflow(store: FileKnowledgeStore) -> None:
    store.add(make_entry("swift/a", "short"))
    store.add(make_entry("swift/b", "x" * 200))
    store.add(make_entry("swift/c", "tiny"))

    result = store.get_relevant_knowledge("swift", 100)
    assert result == "## swift/a\n\nshort\n\n"


def test_relevant_knowledge_counts_utf8_bytes(store: FileKnowledgeStore) -> None:
    store.add(make_entry("é", "é"))
    block = "## é\n\né\n\n"
    assert store.get_relevant_knowledge("é", len(block)) == ""
    assert store.get_relevant_knowledge("é", len(block.encode("utf-8"))) == block


def test_reopen_loads_documents_and_skips_corrupt_files(tmp_path: Path) -> None:
    root = tmp_path / "kb"
    store = FileKnowledgeStore(root, version_log=InMemoryVersionLog(root))
    store.add(make_entry("kept", "body", tags=["a"]))
    (root / "broken.md").write_text("no front matter here\n", encoding="utf-8")

    reopened = FileKnowledgeStore(root, version_log=InMemoryVersionLog(root))

    assert [e.topic for e in reopened.list()] == ["kept"]
    assert reopened.get("kept").tags == ["a"]


def test_commit_failure_is_reported_without_rollback(store: FileKnowledgeStore, version_log: InMemoryVersionLog) -> None:
    version_log.fail_next_commit("disk full")

    with pytest.raises(VersionLogFailure) as exc:
        store.add(make_entry("x"))

    assert "disk full" in str(exc.value)
    assert store.exists("x")
    assert store.file_path("x").exists()


def test_manifest_tracks_mutations(store: FileKnowledgeStore) -> None:
    store.add(make_entry("a", "one"))
    store.add(make_entry("b", "two"))
    store.update("a", make_entry("a", "one again"))
    store.delete("b")

    manifest = load_manifest(store.root)
    assert [t.name for t in manifest.topics] == ["a"]
    assert manifest.topics[0].version == 2
    assert manifest.topics[0].file == "a.md"


def test_rebuild_manifest_after_corruption(store: FileKnowledgeStore) -> None:
    store.add(make_entry("a", "one"))
    store.add(make_entry("b", "two"))
    manifest_path(store.root).write_text("{not yaml: [", encoding="utf-8")

    manifest = store.rebuild_manifest()

    assert [t.name for t in manifest.topics] == ["a", "b"]
    assert manifest.metadata.last_sync is not None
    assert [t.name for t in load_manifest(store.root).topics] == ["a", "b"]


def test_manifest_sync_can_be_disabled(tmp_path: Path) -> None:
    root = tmp_path / "kb"
    store = FileKnowledgeStore(root, version_log=InMemoryVersionLog(root), sync_manifest=False)
    store.add(make_entry("a"))
    assert not manifest_path(root).exists()


def test_history_and_diff(store: FileKnowledgeStore) -> None:
    store.add(make_entry("x", "first"))
    store.update("x", make_entry("x", "second"))
    store.add(make_entry("y", "unrelated"))

    history = store.history("x")
    assert [c.message for c in history] == ["Update: x - second", "Add: x - first"]

    diff = store.diff(history[1].hash, history[0].hash)
    assert "-first" in diff
    assert "+second" in diff


def test_commit_records_external_changes(store: FileKnowledgeStore, version_log: InMemoryVersionLog) -> None:
    (store.root / "notes.txt").write_text("hand edited", encoding="utf-8")
    sha = store.commit("Manual edit")
    assert version_log.commits[-1].hash == sha
    assert "notes.txt" in version_log.touched_paths(sha)


def test_stats(store: FileKnowledgeStore) -> None:
    store.add(make_entry("a", "one", confidence=0.6, tags=["swift", "ios"]))
    store.add(make_entry("b", "two", confidence=1.0, tags=["swift"]))

    stats = store.stats()
    assert stats["total_topics"] == 2
    assert stats["average_confidence"] == pytest.approx(0.8)
    assert stats["tags"] == {"swift": 2, "ios": 1}


def test_add_preserves_given_created_at(store: FileKnowledgeStore) -> None:
    created = datetime(2025, 6, 1, tzinfo=timezone.utc)
    entry = store.add(make_entry("x", created_at=created))
    assert entry.created_at == created
    assert entry.updated_at > created


def test_concurrent_adds(store: FileKnowledgeStore) -> None:
    errors = []

    def worker(n: int) -> None:
        try:
            store.add(make_entry(f"topic-{n}", f"content number {n}"))
        except Exception as e:  # pragma: no cover
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(store.list()) == 10
    assert len(load_manifest(store.root).topics) == 10


def test_reopen_keeps_entries_with_delimiter_lines_in_metadata(tmp_path: Path) -> None:
    root = tmp_path / "kb"
    store = FileKnowledgeStore(root, version_log=InMemoryVersionLog(root))
    store.add(make_entry("x", "body", tags=["a\n---\nb"]))
    store.add(make_entry("notes\n---\nmore", "learned from a query"))

    reopened = FileKnowledgeStore(root, version_log=InMemoryVersionLog(root))

    assert reopened.exists("x")
    assert reopened.get("x").tags == ["a\n---\nb"]
    assert reopened.get("notes\n---\nmore").content == "learned from a query"
