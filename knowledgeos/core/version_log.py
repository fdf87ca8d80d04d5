"""Abstract VersionLog interface."""

from __future__ import annotations
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Optional, Union

from knowledgeos.core.models import GitCommit

PathLike = Union[str, Path]


class VersionLog(ABC):
    """Version-control log for the files under one store root.

    Paths passed in may be absolute (inside the root) or relative to it.
    Every commit method returns the new commit hash.
    """

    INITIAL_COMMIT_MESSAGE = "Initial commit: Initialize knowledge base"

    @abstractmethod
    def init(self) -> None:
        """Create the log with a baseline commit; no-op if it already exists."""
        pass

    @abstractmethod
    def commit_paths(self, paths: Iterable[PathLike], message: str) -> str:
        """Stage the given paths and commit."""
        pass

    @abstractmethod
    def commit_all(self, message: str, allow_empty: bool = False) -> str:
        """Stage every change under the root and commit."""
        pass

    @abstractmethod
    def remove_path(self, path: PathLike, message: str) -> Optional[str]:
        """Record removal of a path and commit.

        Returns None without committing when the path is not tracked.
        """
        pass

    @abstractmethod
    def history(self, filename: PathLike) -> List[GitCommit]:
        """Commits touching filename, newest first."""
        pass

    @abstractmethod
    def diff(self, rev_a: str, rev_b: str) -> str:
        """Textual diff between two revisions."""
        pass
