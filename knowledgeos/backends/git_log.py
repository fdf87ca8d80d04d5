"""Git-backed VersionLog.

All git access for the knowledge store goes through this adapter. GitPython
runs the git binary with an argument vector (never a shell string) and the
working directory pinned to the store root.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from git import Repo
from git.exc import GitCommandError

from knowledgeos.core.errors import VersionLogFailure
from knowledgeos.core.models import GitCommit
from knowledgeos.core.time import from_epoch_s
from knowledgeos.core.version_log import PathLike, VersionLog


logger = logging.getLogger(__name__)

DEFAULT_GITIGNORE = """# OS files
.DS_Store
Thumbs.db

# Temp files
*.tmp
*.swp
*~

# IDE
.vscode/
.idea/

# Derived index, regenerated from the documents
MANIFEST.yaml
"""

# ASCII unit separator between fields; names and subjects may contain "|"
FIELD_SEPARATOR = "\x1f"
HISTORY_FORMAT = "--pretty=format:%H%x1f%an%x1f%at%x1f%s"


class GitVersionLog(VersionLog):
    """VersionLog backed by a git repository at the store root."""

    def __init__(
        self,
        root: PathLike,
        user_name: str = "Knowledge Store",
        user_email: str = "knowledge@knowledgeos.local",
    ):
        """
        Args:
            root: Store root (becomes the git working tree)
            user_name: Committer name written into a newly created repo
            user_email: Committer email written into a newly created repo
        """
        self.root = Path(root)
        self.user_name = user_name
        self.user_email = user_email
        self._repo: Optional[Repo] = None

    @property
    def repo(self) -> Repo:
        if self._repo is None:
            self._repo = Repo(str(self.root))
        return self._repo

    def is_initialized(self) -> bool:
        return (self.root / ".git").exists()

    def init(self) -> None:
        """Initialize the git repo with a baseline commit (if it does not exist)"""
        if self.is_initialized():
            return

        self.root.mkdir(parents=True, exist_ok=True)
        try:
            self._repo = Repo.init(str(self.root))
            with self._repo.config_writer() as config:
                config.set_value("user", "name", self.user_name)
                config.set_value("user", "email", self.user_email)
                config.set_value("commit", "gpgsign", "false")
        except GitCommandError as e:
            raise self._failure(e) from e

        gitignore = self.root / ".gitignore"
        if not gitignore.exists():
            gitignore.write_text(DEFAULT_GITIGNORE, encoding="utf-8")

        self.commit_all(self.INITIAL_COMMIT_MESSAGE, allow_empty=True)
        logger.info(f"Initialized knowledge repository at {self.root}")

    def commit_paths(self, paths: Iterable[PathLike], message: str) -> str:
        """
        Stage specific files and commit

        Args:
            paths: Files to stage (absolute inside the root, or relative)
            message: Commit message

        Returns:
            commit hash (full 40 characters)
        """
        rel_paths = [self._relative(p) for p in paths]
        self._git("add", "--", *rel_paths)
        return self._commit(message)

    def commit_all(self, message: str, allow_empty: bool = False) -> str:
        """Stage all changes (git add -A) and commit"""
        self._git("add", "-A")
        return self._commit(message, allow_empty=allow_empty)

    def remove_path(self, path: PathLike, message: str) -> Optional[str]:
        """
        Record a file removal and commit

        A path git does not know about counts as already removed: nothing is
        committed and None is returned.
        """
        rel_path = self._relative(path)
        try:
            self.repo.git.rm("--quiet", "--", rel_path)
        except GitCommandError as e:
            if "did not match any files" in self._output(e):
                logger.debug(f"git rm: {rel_path} not tracked, nothing to remove")
                return None
            raise self._failure(e) from e
        return self._commit(message)

    def history(self, filename: PathLike) -> List[GitCommit]:
        """
        Commit log for one file, newest first

        Lines that cannot be parsed are skipped.
        """
        output = self._git("log", HISTORY_FORMAT, "--", self._relative(filename))

        commits = []
        for line in output.splitlines():
            if not line.strip():
                continue
            commit = self._parse_log_line(line)
            if commit is None:
                logger.warning(f"Skipping unparseable history line: {line!r}")
                continue
            commits.append(commit)
        return commits

    def diff(self, rev_a: str, rev_b: str) -> str:
        """Diff between two revisions"""
        return self._git("diff", rev_a, rev_b)

    def head(self) -> str:
        """Current HEAD commit hash"""
        return self._git("rev_parse", "HEAD")

    # Internals

    def _commit(self, message: str, allow_empty: bool = False) -> str:
        args = ["-m", message]
        if allow_empty:
            args.append("--allow-empty")
        self._git("commit", *args)
        sha = self.head()
        logger.debug(f"Committed {sha[:8]}: {message}")
        return sha

    def _git(self, command: str, *args: str) -> str:
        logger.debug(f"git {command} {' '.join(args)}")
        try:
            return getattr(self.repo.git, command)(*args)
        except GitCommandError as e:
            raise self._failure(e) from e

    def _relative(self, path: PathLike) -> str:
        p = Path(path)
        if p.is_absolute():
            try:
                p = p.relative_to(self.root)
            except ValueError:
                p = p.resolve().relative_to(self.root.resolve())
        return p.as_posix()

    @staticmethod
    def _output(error: GitCommandError) -> str:
        return f"{error.stderr or ''}\n{error.stdout or ''}".strip()

    def _failure(self, error: GitCommandError) -> VersionLogFailure:
        command = error.command
        if isinstance(command, (list, tuple)):
            command = " ".join(str(c) for c in command)
        return VersionLogFailure(
            command=str(command),
            output=self._output(error),
            status=error.status if isinstance(error.status, int) else None,
        )

    @staticmethod
    def _parse_log_line(line: str) -> Optional[GitCommit]:
        parts = line.split(FIELD_SEPARATOR, 3)
        if len(parts) != 4:
            return None
        sha, author, timestamp, message = parts
        try:
            date = from_epoch_s(int(timestamp))
        except (ValueError, OverflowError, OSError):
            return None
        return GitCommit(hash=sha, author=author, date=date, message=message)
