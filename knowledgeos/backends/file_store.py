"""File-backed implementation of KnowledgeStore.

One markdown document per topic under the store root, an in-memory cache
mirroring those documents, and a version-log commit after every mutation.

Write path (under the exclusive lock):
    encode + write document -> update cache -> commit -> sync manifest

The commit runs inside the critical section so concurrent callers in the
same process never observe cache state that differs from disk and the
version log. A commit failure is reported to the caller but the cache and
file changes already made are not rolled back; a crash between the write
and the commit leaves the log behind the files. Neither case is repaired
here.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from knowledgeos.core.codec import DOCUMENT_EXTENSION, decode_entry, document_filename, encode_entry
from knowledgeos.core.errors import (
    AlreadyExistsError,
    KnowledgeError,
    MalformedDocumentError,
    NotFoundError,
)
from knowledgeos.core.locks import ReadWriteLock
from knowledgeos.core.manifest import load_manifest, remove_topic, save_manifest, upsert_topic
from knowledgeos.core.models import GitCommit, KnowledgeEntry, Manifest, ManifestTopic
from knowledgeos.core.similarity import KnowledgeDeduplicator
from knowledgeos.core.store import KnowledgeStore
from knowledgeos.core.time import ensure_utc, utc_now
from knowledgeos.core.version_log import VersionLog


logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 50
CONSOLIDATE_MESSAGE = "Consolidate: Merged and optimized knowledge entries"


def _preview(content: str, max_len: int = PREVIEW_LENGTH) -> str:
    text = " ".join(content.split())
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."


def _copy(entry: KnowledgeEntry) -> KnowledgeEntry:
    return replace(entry, tags=list(entry.tags))


class FileKnowledgeStore(KnowledgeStore):
    """Markdown-file knowledge store with a version-log commit per mutation."""

    def __init__(
        self,
        root: Union[str, Path],
        version_log: Optional[VersionLog] = None,
        sync_manifest: bool = True,
    ):
        """
        Open (or create) a store.

        Args:
            root: Store root directory
            version_log: Version log to commit into (default: git at root)
            sync_manifest: Keep MANIFEST.yaml in step with every mutation
        """
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

        if version_log is None:
            from knowledgeos.backends.git_log import GitVersionLog
            version_log = GitVersionLog(self.root)
        self.version_log = version_log
        self.sync_manifest = sync_manifest

        self._cache: Dict[str, KnowledgeEntry] = {}
        self._lock = ReadWriteLock()
        self._deduplicator = KnowledgeDeduplicator()

        self.version_log.init()
        self._load_cache()

    def _load_cache(self) -> None:
        """Decode every document under the root; undecodable files are skipped."""
        loaded = 0
        for path in sorted(self.root.rglob(f"*{DOCUMENT_EXTENSION}")):
            rel = path.relative_to(self.root)
            if ".git" in rel.parts or not path.is_file():
                continue
            try:
                entry = decode_entry(path.read_bytes(), path=str(rel))
            except (MalformedDocumentError, OSError) as e:
                logger.warning(f"Skipping unreadable knowledge file {rel}: {e}")
                continue
            self._cache[entry.topic] = entry
            loaded += 1
        logger.debug(f"Loaded {loaded} knowledge entries from {self.root}")

    def file_path(self, topic: str) -> Path:
        """Document path for a topic."""
        return self.root / document_filename(topic)

    # Mutations

    def add(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        """
        Add a new topic.

        Sets version 1, stamps updated_at (and created_at unless given),
        writes the document and commits it.

        Raises:
            AlreadyExistsError: topic (or its file name) already taken
            VersionLogFailure: commit failed (entry stays added)
        """
        self._check_entry(entry)

        with self._lock.write_locked():
            if entry.topic in self._cache:
                raise AlreadyExistsError(entry.topic)

            path = self.file_path(entry.topic)
            holder = self._topic_at(path)
            if holder is not None:
                raise AlreadyExistsError(
                    entry.topic,
                    reason=f"{path.name} already holds topic {holder!r}",
                )

            now = utc_now()
            stored = replace(
                entry,
                tags=list(entry.tags),
                version=1,
                created_at=ensure_utc(entry.created_at) or now,
                updated_at=now,
            )
            stored.id = stored.generate_id()

            self._write(path, stored)
            self._cache[stored.topic] = stored
            self.version_log.commit_paths(
                [path], f"Add: {stored.topic} - {_preview(stored.content)}"
            )
            self._manifest_upsert(stored, path)

        logger.info(f"Added knowledge: {stored.topic}")
        return _copy(stored)

    def update(self, topic: str, entry: KnowledgeEntry) -> KnowledgeEntry:
        """
        Replace an existing topic.

        The stored topic is always the lookup key; created_at is carried
        forward and the version goes up by one.

        Raises:
            NotFoundError: topic is not present
            VersionLogFailure: commit failed (update stays applied)
        """
        self._check_entry(replace(entry, topic=topic))

        with self._lock.write_locked():
            existing = self._cache.get(topic)
            if existing is None:
                raise NotFoundError("knowledge", topic)

            stored = replace(
                entry,
                topic=topic,
                tags=list(entry.tags),
                version=existing.version + 1,
                created_at=existing.created_at,
                updated_at=utc_now(),
            )
            stored.id = stored.generate_id()

            path = self.file_path(topic)
            self._write(path, stored)
            self._cache[topic] = stored
            self.version_log.commit_paths(
                [path], f"Update: {topic} - {_preview(stored.content)}"
            )
            self._manifest_upsert(stored, path)

        logger.info(f"Updated knowledge: {topic} (v{stored.version})")
        return _copy(stored)

    def delete(self, topic: str) -> None:
        """
        Remove a topic and commit the removal.

        Raises:
            NotFoundError: topic is not present
        """
        with self._lock.write_locked():
            if topic not in self._cache:
                raise NotFoundError("knowledge", topic)

            path = self.file_path(topic)
            path.unlink(missing_ok=True)
            del self._cache[topic]
            self.version_log.remove_path(path, f"Remove: {topic}")
            self._manifest_remove(topic)

        logger.info(f"Removed knowledge: {topic}")

    def deduplicate(self, topic_prefix: str) -> List[str]:
        """
        Remove near-duplicate entries among topics starting with topic_prefix.

        Returns:
            Sorted list of removed topics (one commit covers all of them)
        """
        with self._lock.write_locked():
            candidates = [
                e for e in self._cache.values() if e.topic.startswith(topic_prefix)
            ]
            if len(candidates) < 2:
                return []

            removals = self._deduplicator.find_removals(candidates)
            for topic in removals:
                self.file_path(topic).unlink(missing_ok=True)
                del self._cache[topic]

            if removals:
                self.version_log.commit_all(
                    f"Deduplicate: Removed {len(removals)} duplicate entries in {topic_prefix}"
                )
                for topic in removals:
                    self._manifest_remove(topic)

        if removals:
            logger.info(f"Deduplicated {topic_prefix!r}: removed {', '.join(removals)}")
        return removals

    def consolidate(self) -> Dict[str, List[str]]:
        """
        Group topics by the segment before the first '/'.

        Groups with more than one member are consolidatable; if there is at
        least one, a consolidation commit is recorded. Document content is not
        changed.

        Returns:
            Consolidatable groups: prefix -> sorted topics
        """
        with self._lock.write_locked():
            groups: Dict[str, List[str]] = defaultdict(list)
            for entry in self._cache.values():
                groups[entry.topic.split("/", 1)[0]].append(entry.topic)

            consolidatable = {
                prefix: sorted(topics)
                for prefix, topics in sorted(groups.items())
                if len(topics) > 1
            }
            if consolidatable:
                self.version_log.commit_all(CONSOLIDATE_MESSAGE, allow_empty=True)

        if consolidatable:
            logger.info(f"Consolidation pass over {len(consolidatable)} groups")
        return consolidatable

    def commit(self, message: str) -> str:
        """Commit every pending change under the root."""
        with self._lock.write_locked():
            return self.version_log.commit_all(message)

    # Reads

    def get(self, topic: str) -> KnowledgeEntry:
        """
        Raises:
            NotFoundError: topic is not present
        """
        with self._lock.read_locked():
            entry = self._cache.get(topic)
            if entry is None:
                raise NotFoundError("knowledge", topic)
            return _copy(entry)

    def exists(self, topic: str) -> bool:
        with self._lock.read_locked():
            return topic in self._cache

    def list(self) -> List[KnowledgeEntry]:
        with self._lock.read_locked():
            return [_copy(e) for e in self._cache.values()]

    def search(self, query: str) -> List[KnowledgeEntry]:
        with self._lock.read_locked():
            return [_copy(e) for e in self._search(query)]

    def get_relevant_knowledge(self, query: str, max_size: int) -> str:
        """
        Concatenate matching entries as markdown sections.

        Each match becomes "## <topic>\\n\\n<content>\\n\\n"; sections are
        appended in cache order until the next one would take the UTF-8 size
        over max_size.
        """
        with self._lock.read_locked():
            matches = self._search(query)

            blocks = []
            total = 0
            for entry in matches:
                block = f"## {entry.topic}\n\n{entry.content.strip()}\n\n"
                size = len(block.encode("utf-8"))
                if total + size > max_size:
                    break
                blocks.append(block)
                total += size

        return "".join(blocks)

    def stats(self) -> Dict[str, Any]:
        """Topic count, average confidence and tag usage."""
        with self._lock.read_locked():
            entries = list(self._cache.values())

        tags = Counter(tag for e in entries for tag in e.tags)
        average = sum(e.confidence for e in entries) / len(entries) if entries else 0.0
        return {
            "total_topics": len(entries),
            "average_confidence": average,
            "tags": dict(tags.most_common()),
        }

    def history(self, topic: str) -> List[GitCommit]:
        return self.version_log.history(self.file_path(topic))

    def diff(self, rev_a: str, rev_b: str) -> str:
        return self.version_log.diff(rev_a, rev_b)

    # Manifest

    def rebuild_manifest(self) -> Manifest:
        """Regenerate MANIFEST.yaml from the cache."""
        with self._lock.read_locked():
            records = [
                ManifestTopic.from_entry(e, self._relative(self.file_path(e.topic)))
                for e in sorted(self._cache.values(), key=lambda e: e.topic)
            ]

        try:
            manifest = load_manifest(self.root)
        except MalformedDocumentError as e:
            logger.warning(f"Discarding unreadable manifest: {e}")
            manifest = Manifest()

        manifest.topics = records
        manifest.metadata.last_sync = utc_now()
        save_manifest(self.root, manifest)
        return manifest

    # Internals

    def _search(self, query: str) -> List[KnowledgeEntry]:
        needle = query.lower()
        return [
            e for e in self._cache.values()
            if needle in e.topic.lower()
            or needle in e.content.lower()
            or e.has_tag(needle)
        ]

    def _topic_at(self, path: Path) -> Optional[str]:
        for topic in self._cache:
            if self.file_path(topic) == path:
                return topic
        return None

    def _write(self, path: Path, entry: KnowledgeEntry) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(encode_entry(entry))

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def _manifest_upsert(self, entry: KnowledgeEntry, path: Path) -> None:
        if not self.sync_manifest:
            return
        try:
            upsert_topic(self.root, ManifestTopic.from_entry(entry, self._relative(path)))
        except (OSError, KnowledgeError) as e:
            logger.warning(f"Manifest not updated for {entry.topic}: {e}")

    def _manifest_remove(self, topic: str) -> None:
        if not self.sync_manifest:
            return
        try:
            remove_topic(self.root, topic)
        except NotFoundError:
            # stale or missing manifest; nothing to remove
            pass
        except (OSError, KnowledgeError) as e:
            logger.warning(f"Manifest not updated for {topic}: {e}")

    @staticmethod
    def _check_entry(entry: KnowledgeEntry) -> None:
        if not entry.topic or not entry.topic.strip():
            raise ValueError("topic cannot be empty")
        if not 0.0 <= entry.confidence <= 1.0:
            raise ValueError("confidence must be between 0.0 and 1.0")
