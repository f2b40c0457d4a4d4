"""Fast token search for test files that may relate to a set of source files."""

import asyncio
import contextlib
import logging
import os
import re
import shutil
from pathlib import Path
from typing import Iterable, Optional

from testfocus.config import DEFAULT_EXCLUDE_GLOBS, DEFAULT_TEST_GLOBS
from testfocus.graph.index import is_test_like_path, normalize_path

logger = logging.getLogger(__name__)

SOURCE_EXTENSION = re.compile(r"\.(m?[tj]sx?)$", re.IGNORECASE)

TAIL_SEGMENTS = 2


def seed_tokens(root: str | Path, seeds: Iterable[str | Path]) -> list[str]:
    """Derive search tokens for each seed file.

    Each seed contributes its repo-relative path without extension, its
    basename, and its last two path segments.
    """
    root_abs = normalize_path(root)
    tokens: list[str] = []
    for seed in seeds:
        relative = os.path.relpath(normalize_path(seed), root_abs).replace("\\", "/")
        without_ext = SOURCE_EXTENSION.sub("", relative)
        segments = without_ext.split("/")
        for token in (without_ext, segments[-1], "/".join(segments[-TAIL_SEGMENTS:])):
            if token and token not in tokens:
                tokens.append(token)
    return tokens


class CandidateSearch:
    """Coarse, advisory search over test files using an external search tool.

    Results may contain false positives; a timeout, a missing tool or a
    non-zero exit all yield an empty list.
    """

    def __init__(
        self,
        root: str | Path,
        tool: str = "rg",
        timeout_seconds: float = 1.5,
        test_globs: Optional[Iterable[str]] = None,
        exclude_globs: Optional[Iterable[str]] = None,
    ):
        """Initialize the search.

        Args:
            root: Repository root to search
            tool: Search executable (ripgrep-compatible flags)
            timeout_seconds: Hard timeout for one invocation
            test_globs: Globs selecting test files
            exclude_globs: Globs excluded from the search
        """
        self.root = normalize_path(root)
        self.tool = tool
        self.timeout_seconds = timeout_seconds
        self.test_globs = list(test_globs) if test_globs is not None else list(DEFAULT_TEST_GLOBS)
        self.exclude_globs = (
            list(exclude_globs) if exclude_globs is not None else list(DEFAULT_EXCLUDE_GLOBS)
        )

    @classmethod
    def from_config(cls, config, root: str | Path) -> "CandidateSearch":
        """Create a search from a SearchConfig."""
        return cls(
            root=root,
            tool=config.tool,
            timeout_seconds=config.timeout_seconds,
            test_globs=config.test_globs,
            exclude_globs=config.exclude_globs,
        )

    def build_args(self, tokens: list[str]) -> list[str]:
        """Build the search command line for a token set."""
        args = [self.tool, "-l", "-S", "-F", "--no-messages"]
        for glob in self.test_globs:
            args.extend(["-g", glob])
        for glob in self.exclude_globs:
            args.extend(["-g", f"!{glob}"])
        for token in tokens:
            args.extend(["-e", token])
        args.append(self.root)
        return args

    async def find(self, seeds: Iterable[str | Path]) -> list[str]:
        """Find test files mentioning any seed token.

        Args:
            seeds: Production source files

        Returns:
            Sorted absolute paths of existing test-like files
        """
        tokens = seed_tokens(self.root, seeds)
        if not tokens:
            return []

        if shutil.which(self.tool) is None:
            logger.debug("Search tool %s not available", self.tool)
            return []

        raw = await self._run_tool(self.build_args(tokens))

        found: list[str] = []
        for line in raw.splitlines():
            line = line.strip()
            if not line:
                continue
            absolute = normalize_path(os.path.join(self.root, line))
            if absolute in found or not is_test_like_path(absolute, self.root):
                continue
            if os.path.isfile(absolute):
                found.append(absolute)

        found.sort()
        logger.debug("Candidate search: %d tokens -> %d files", len(tokens), len(found))
        return found

    async def _run_tool(self, args: list[str]) -> str:
        """Run the search tool, returning stdout or '' on any failure."""
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
                cwd=self.root,
                env={**os.environ, "CI": "1"},
            )
        except OSError as e:
            logger.debug("Could not start %s: %s", self.tool, e)
            return ""

        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.debug("Search timed out after %.1fs", self.timeout_seconds)
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            with contextlib.suppress(Exception):
                await proc.wait()
            return ""

        # ripgrep exits 1 for "no matches" and 2 for errors
        if proc.returncode != 0:
            return ""
        return stdout.decode("utf-8", errors="replace")
