"""Test file discovery functionality."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from testfocus.graph.index import normalize_path


DEFAULT_PATTERNS = [
    "*.test.ts",
    "*.test.tsx",
    "*.test.js",
    "*.test.jsx",
    "*.spec.ts",
    "*.spec.tsx",
    "*.spec.js",
    "*.spec.jsx",
]

DEFAULT_EXCLUDE_DIRS = {"node_modules", "dist", "build", "coverage", ".git", ".next"}

SOURCE_SUFFIXES = {".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs"}

TEST_DIRS = {"__tests__", "test", "tests"}


@dataclass
class DiscoveryResult:
    """Result of test file discovery."""

    files: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        """Check if discovery was successful."""
        return self.error is None

    @property
    def total_count(self) -> int:
        return len(self.files)


class TestFileDiscovery:
    """Discovers test files in a project by name and directory patterns."""

    __test__ = False

    def __init__(
        self,
        root: Path | str,
        patterns: Optional[Iterable[str]] = None,
        exclude_dirs: Optional[Iterable[str]] = None,
    ):
        """Initialize test discovery."""
        self.root = Path(root)
        self.patterns = list(patterns) if patterns is not None else list(DEFAULT_PATTERNS)
        self.exclude_dirs = set(exclude_dirs) if exclude_dirs is not None else set(DEFAULT_EXCLUDE_DIRS)

    def discover(self) -> DiscoveryResult:
        """Discover all test files below the root."""
        if not self.root.is_dir():
            return DiscoveryResult(error=f"Test root not found: {self.root}")

        found: set[str] = set()

        for pattern in self.patterns:
            for test_file in self.root.rglob(pattern):
                if self._is_candidate(test_file):
                    found.add(normalize_path(test_file))

        # Plain source files living under __tests__/ or tests/ directories
        for suffix in SOURCE_SUFFIXES:
            for source_file in self.root.rglob(f"*{suffix}"):
                if not self._is_candidate(source_file):
                    continue
                parents = source_file.relative_to(self.root).parts[:-1]
                if TEST_DIRS.intersection(parents):
                    found.add(normalize_path(source_file))

        return DiscoveryResult(files=sorted(found))

    def get_test_files(self) -> list[str]:
        """Get a sorted list of all discovered test files."""
        return self.discover().files

    def _is_candidate(self, path: Path) -> bool:
        try:
            relative = path.relative_to(self.root)
        except ValueError:
            return False
        if any(part in self.exclude_dirs for part in relative.parts):
            return False
        return path.is_file()
