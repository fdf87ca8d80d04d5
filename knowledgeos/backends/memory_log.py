"""In-memory VersionLog.

Keeps a snapshot of the committed file contents per commit instead of
shelling out to git. Used by the test suite and by callers that want a
store without a git dependency; history is lost when the process exits.
"""

from __future__ import annotations

import difflib
import hashlib
import logging
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from knowledgeos.core.errors import VersionLogFailure
from knowledgeos.core.models import GitCommit
from knowledgeos.core.time import utc_now
from knowledgeos.core.version_log import PathLike, VersionLog


logger = logging.getLogger(__name__)

IGNORED_NAMES = {".git", "MANIFEST.yaml"}


class InMemoryVersionLog(VersionLog):
    """VersionLog that records commits in process memory."""

    def __init__(self, root: PathLike, author: str = "Knowledge Store"):
        self.root = Path(root)
        self.author = author
        self._commits: List[GitCommit] = []
        self._snapshots: List[Dict[str, str]] = []
        self._touched: List[Set[str]] = []
        self._pending_failure: Optional[str] = None
        self._lock = threading.RLock()

    @property
    def commits(self) -> List[GitCommit]:
        """All commits, oldest first"""
        with self._lock:
            return list(self._commits)

    def touched_paths(self, sha: str) -> Set[str]:
        """Paths changed by one commit"""
        with self._lock:
            return set(self._touched[self._index_of(sha)])

    def fail_next_commit(self, output: str = "simulated failure") -> None:
        """Make the next commit raise VersionLogFailure"""
        self._pending_failure = output

    def init(self) -> None:
        with self._lock:
            if self._commits:
                return
            self._record(self.INITIAL_COMMIT_MESSAGE, self._scan(), allow_empty=True)

    def commit_paths(self, paths: Iterable[PathLike], message: str) -> str:
        with self._lock:
            snapshot = dict(self._head_snapshot())
            for path in paths:
                rel = self._relative(path)
                full = self.root / rel
                if full.is_file():
                    snapshot[rel] = full.read_text(encoding="utf-8")
                else:
                    snapshot.pop(rel, None)
            return self._record(message, snapshot)

    def commit_all(self, message: str, allow_empty: bool = False) -> str:
        with self._lock:
            return self._record(message, self._scan(), allow_empty=allow_empty)

    def remove_path(self, path: PathLike, message: str) -> Optional[str]:
        with self._lock:
            rel = self._relative(path)
            snapshot = dict(self._head_snapshot())
            if rel not in snapshot:
                logger.debug(f"{rel} not tracked, nothing to remove")
                return None
            del snapshot[rel]
            return self._record(message, snapshot)

    def history(self, filename: PathLike) -> List[GitCommit]:
        with self._lock:
            rel = self._relative(filename)
            return [
                commit
                for commit, touched in reversed(list(zip(self._commits, self._touched)))
                if rel in touched
            ]

    def diff(self, rev_a: str, rev_b: str) -> str:
        with self._lock:
            before = self._snapshots[self._resolve(rev_a)]
            after = self._snapshots[self._resolve(rev_b)]

        chunks = []
        for rel in sorted(set(before) | set(after)):
            old = before.get(rel)
            new = after.get(rel)
            if old == new:
                continue
            chunks.extend(difflib.unified_diff(
                (old or "").splitlines(keepends=True),
                (new or "").splitlines(keepends=True),
                fromfile=f"a/{rel}" if old is not None else "/dev/null",
                tofile=f"b/{rel}" if new is not None else "/dev/null",
            ))
        return "".join(chunks)

    # Internals

    def _head_snapshot(self) -> Dict[str, str]:
        return self._snapshots[-1] if self._snapshots else {}

    def _record(self, message: str, snapshot: Dict[str, str], allow_empty: bool = False) -> str:
        if self._pending_failure is not None:
            output, self._pending_failure = self._pending_failure, None
            raise VersionLogFailure(command=f"commit -m {message}", output=output, status=1)

        head = self._head_snapshot()
        touched = {
            rel for rel in set(head) | set(snapshot)
            if head.get(rel) != snapshot.get(rel)
        }
        if not touched and not allow_empty:
            raise VersionLogFailure(
                command=f"commit -m {message}",
                output="nothing to commit, working tree clean",
                status=1,
            )

        sha = hashlib.sha1(
            f"{len(self._commits)}|{message}|{utc_now().isoformat()}".encode("utf-8")
        ).hexdigest()
        self._commits.append(GitCommit(hash=sha, author=self.author, date=utc_now(), message=message))
        self._snapshots.append(snapshot)
        self._touched.append(touched)
        logger.debug(f"Committed {sha[:8]}: {message}")
        return sha

    def _scan(self) -> Dict[str, str]:
        snapshot: Dict[str, str] = {}
        if not self.root.exists():
            return snapshot
        for path in self.root.rglob("*"):
            rel = path.relative_to(self.root)
            if not path.is_file() or rel.parts[0] in IGNORED_NAMES:
                continue
            snapshot[rel.as_posix()] = path.read_text(encoding="utf-8", errors="replace")
        return snapshot

    def _resolve(self, rev: str) -> int:
        if rev == "HEAD" or rev.startswith("HEAD~"):
            back = int(rev[5:] or 0) if rev.startswith("HEAD~") else 0
            index = len(self._commits) - 1 - back
            if index < 0:
                raise VersionLogFailure(command=f"diff {rev}", output=f"unknown revision: {rev}", status=128)
            return index
        return self._index_of(rev)

    def _index_of(self, sha: str) -> int:
        matches = [i for i, c in enumerate(self._commits) if sha and c.hash.startswith(sha)]
        if len(matches) != 1:
            raise VersionLogFailure(command=f"rev-parse {sha}", output=f"unknown revision: {sha}", status=128)
        return matches[0]

    def _relative(self, path: PathLike) -> str:
        p = Path(path)
        if p.is_absolute():
            p = p.relative_to(self.root)
        return p.as_posix()
