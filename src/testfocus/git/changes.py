"""Git change detection for seeding relevance ranking."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from git import Repo
from git.exc import BadName, BadObject, GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from testfocus.graph.index import normalize_path

logger = logging.getLogger(__name__)


@dataclass
class ChangedFile:
    """Represents a changed file in the working tree or history."""

    path: str
    change_type: str  # 'A' (added), 'M' (modified), 'D' (deleted), 'R' (renamed)

    def to_dict(self) -> dict:
        return {"path": self.path, "change_type": self.change_type}


class GitChangeDetector:
    """Finds changed files and their line-change weights."""

    def __init__(self, repo_path: Path | str):
        """Initialize with repository path."""
        self.repo_path = Path(repo_path)
        self._repo: Optional[Repo] = None

    @property
    def repo(self) -> Repo:
        """Get the git repository, initializing if needed."""
        if self._repo is None:
            try:
                self._repo = Repo(self.repo_path, search_parent_directories=True)
            except (InvalidGitRepositoryError, NoSuchPathError):
                raise ValueError(f"Not a git repository: {self.repo_path}")
        return self._repo

    @property
    def working_dir(self) -> str:
        return normalize_path(self.repo.working_tree_dir or self.repo_path)

    def changes(
        self,
        compare_ref: Optional[str] = None,
        include_uncommitted: bool = True,
    ) -> list[ChangedFile]:
        """List changed files relative to the repository root.

        Args:
            compare_ref: Ref whose diff against HEAD is included (e.g. 'main')
            include_uncommitted: Include staged, unstaged and untracked files

        Returns:
            Changed files, deduplicated by path
        """
        try:
            repo = self.repo
        except ValueError as e:
            logger.debug("%s", e)
            return []

        files: list[ChangedFile] = []
        seen: set[str] = set()

        def add(path: Optional[str], change_type: str) -> None:
            if path and path not in seen:
                seen.add(path)
                files.append(ChangedFile(path=path, change_type=change_type))

        if compare_ref:
            try:
                for d in repo.commit(compare_ref).diff(repo.head.commit):
                    add(d.b_path or d.a_path, d.change_type)
            except (BadName, BadObject, GitCommandError, ValueError) as e:
                logger.debug("Could not diff against %s: %s", compare_ref, e)

        if include_uncommitted:
            try:
                for d in repo.head.commit.diff():
                    add(d.b_path or d.a_path, d.change_type)
            except (GitCommandError, ValueError) as e:
                # No HEAD yet in a fresh repository
                logger.debug("Could not read staged changes: %s", e)

            try:
                for d in repo.index.diff(None):
                    add(d.b_path or d.a_path, d.change_type)
            except GitCommandError as e:
                logger.debug("Could not read unstaged changes: %s", e)

            try:
                for path in repo.untracked_files:
                    add(path, "A")
            except GitCommandError as e:
                logger.debug("Could not list untracked files: %s", e)

        return files

    def changed_files(
        self,
        compare_ref: Optional[str] = None,
        include_uncommitted: bool = True,
        include_deleted: bool = False,
    ) -> list[str]:
        """Absolute paths of changed files, usable as production seeds."""
        changes = self.changes(compare_ref=compare_ref, include_uncommitted=include_uncommitted)
        if not changes:
            return []
        root = Path(self.working_dir)
        return [
            normalize_path(root / change.path)
            for change in changes
            if include_deleted or change.change_type != "D"
        ]

    def change_weights(self, paths: Iterable[str], compare_ref: str = "HEAD") -> dict[str, int]:
        """Added plus deleted line counts per file from `git diff --numstat`.

        Args:
            paths: Absolute paths to weigh
            compare_ref: Ref to diff the working tree against

        Returns:
            Mapping of absolute path to weight; files without stats are absent
        """
        weights: dict[str, int] = {}
        try:
            repo = self.repo
        except ValueError:
            return weights

        root = Path(self.working_dir)
        relative = []
        for path in paths:
            try:
                relative.append(Path(path).resolve().relative_to(root.resolve()).as_posix())
            except ValueError:
                continue
        if not relative:
            return weights

        try:
            output = repo.git.diff("--numstat", compare_ref, "--", *relative)
        except GitCommandError as e:
            logger.debug("numstat failed: %s", e)
            return weights

        for line in output.splitlines():
            parts = line.split(None, 2)
            if len(parts) < 3:
                continue
            added = int(parts[0]) if parts[0].isdigit() else 0
            deleted = int(parts[1]) if parts[1].isdigit() else 0
            absolute = normalize_path(root / parts[2])
            weights[absolute] = max(weights.get(absolute, 0), added + deleted)

        return weights
