"""Import specifier extraction and resolution over source files."""

import asyncio
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from testfocus.config import DEFAULT_EXTENSIONS

# Static import, require call, re-export and dynamic import forms.
SPECIFIER_PATTERNS = [
    re.compile(r"""import\s+[^'"\n]*from\s+['"]([^'"]+)['"]"""),
    re.compile(r"""require\(\s*['"]([^'"]+)['"]\s*\)"""),
    re.compile(r"""export\s+(?:\*|\{[^}]*\})\s*from\s*['"]([^'"]+)['"]"""),
    re.compile(r"""import\(\s*['"]([^'"]+)['"]\s*\)"""),
]

TEST_PATH_PATTERNS = [
    re.compile(r"(^|/)__tests__/"),
    re.compile(r"(^|/)tests?/"),
    re.compile(r"\.(test|spec)\.[cm]?[jt]sx?$"),
]


def normalize_path(path: str | Path) -> str:
    """Return an absolute path with forward-slash separators."""
    return os.path.abspath(str(path)).replace("\\", "/")


def is_local_specifier(specifier: str) -> bool:
    """Relative or rooted specifiers point into the project, bare ones at packages."""
    return specifier.startswith(".") or specifier.startswith("/")


def is_test_like_path(path: str, root: Optional[str | Path] = None) -> bool:
    """Check whether a path looks like a test file.

    With a root, only the part of the path below it is inspected, so a
    repository that itself lives under a tests/ directory is not all tests.
    """
    posix = path.replace("\\", "/")
    if root is not None:
        posix = os.path.relpath(normalize_path(posix), normalize_path(root)).replace("\\", "/")
    return any(pattern.search(posix) for pattern in TEST_PATH_PATTERNS)


def extract_specifiers(text: str) -> list[str]:
    """Extract local import specifiers from source text, in pattern order."""
    found: list[str] = []
    for pattern in SPECIFIER_PATTERNS:
        for match in pattern.finditer(text):
            specifier = match.group(1).strip()
            if specifier and is_local_specifier(specifier) and specifier not in found:
                found.append(specifier)
    return found


def read_text_safe(path: str) -> str:
    """Read a file as UTF-8, returning an empty string when it cannot be read."""
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except (OSError, ValueError):
        return ""


@dataclass
class FileNode:
    """A source file in the import graph.

    Specifiers and resolutions are filled lazily and never change once set.
    """

    path: str
    specifiers: Optional[list[str]] = None
    resolved: dict[str, Optional[str]] = field(default_factory=dict)


class SourceGraphIndex:
    """Per-invocation cache of file bodies, import specifiers and resolutions.

    Construct one at the top of a resolution call and let it go when the
    call returns; instances are never shared between runs.
    """

    def __init__(
        self,
        root: Optional[str | Path] = None,
        extensions: Optional[Iterable[str]] = None,
        index_basename: str = "index",
        external_markers: Iterable[str] = ("/node_modules/",),
    ):
        """Initialize the index.

        Args:
            root: Repository root, used for '/'-rooted specifiers
            extensions: Suffixes tried, in order, after the literal path
            index_basename: Basename tried inside a directory import
            external_markers: Path fragments marking third-party files
        """
        self.root = normalize_path(root) if root is not None else None
        self.extensions = list(extensions) if extensions is not None else list(DEFAULT_EXTENSIONS)
        self.index_basename = index_basename
        self.external_markers = tuple(external_markers)

        self._nodes: dict[str, FileNode] = {}
        self._bodies: dict[str, str] = {}

    @classmethod
    def from_config(cls, config, root: Optional[str | Path] = None) -> "SourceGraphIndex":
        """Create an index from a GraphConfig."""
        return cls(
            root=root,
            extensions=config.extensions,
            index_basename=config.index_basename,
            external_markers=config.external_markers,
        )

    def node(self, path: str | Path) -> FileNode:
        """Get the node for a path, creating it on first use."""
        key = normalize_path(path)
        existing = self._nodes.get(key)
        if existing is None:
            existing = FileNode(path=key)
            self._nodes[key] = existing
        return existing

    def is_external(self, path: str) -> bool:
        """Check whether a path belongs to a third-party dependency."""
        return any(marker in path for marker in self.external_markers)

    def body(self, path: str | Path) -> str:
        """Return the cached text of a file, reading it on first access."""
        key = normalize_path(path)
        cached = self._bodies.get(key)
        if cached is None:
            cached = read_text_safe(key)
            self._bodies[key] = cached
        return cached

    async def load(self, path: str | Path) -> str:
        """Async variant of body() that reads off the event loop."""
        key = normalize_path(path)
        cached = self._bodies.get(key)
        if cached is not None:
            return cached
        text = await asyncio.to_thread(read_text_safe, key)
        # Another worker may have filled the slot while we were suspended.
        return self._bodies.setdefault(key, text)

    def specifiers(self, path: str | Path) -> list[str]:
        """Local import specifiers of a file; empty when it cannot be read."""
        node = self.node(path)
        if node.specifiers is None:
            node.specifiers = extract_specifiers(self.body(node.path))
        return node.specifiers

    def resolve(self, from_path: str | Path, specifier: str) -> Optional[str]:
        """Resolve a specifier relative to the importing file's directory.

        Returns:
            Normalized absolute path of the first filesystem hit, or None
        """
        node = self.node(from_path)
        if specifier in node.resolved:
            return node.resolved[specifier]

        resolved = None
        if is_local_specifier(specifier):
            base = os.path.join(os.path.dirname(node.path), specifier)
            resolved = self._try_resolve(base)
            if resolved is None and specifier.startswith("/") and self.root:
                resolved = self._try_resolve(os.path.join(self.root, specifier.lstrip("/")))

        node.resolved[specifier] = resolved
        return resolved

    def neighbours(self, path: str | Path) -> list[str]:
        """Resolved local imports of a file, in specifier order."""
        out: list[str] = []
        for specifier in self.specifiers(path):
            target = self.resolve(path, specifier)
            if target and target not in out:
                out.append(target)
        return out

    def _try_resolve(self, base: str) -> Optional[str]:
        """Try the literal path, then each suffix, then index files below it."""
        for ext in ["", *self.extensions]:
            candidate = f"{base}{ext}"
            if os.path.isfile(candidate):
                return normalize_path(candidate)

        for ext in self.extensions:
            candidate = os.path.join(base, f"{self.index_basename}{ext}")
            if os.path.isfile(candidate):
                return normalize_path(candidate)

        return None
