"""Related-test resolution: fast token search with transitive verification fallback."""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional

from testfocus.core.discovery import TestFileDiscovery
from testfocus.graph.index import SourceGraphIndex, is_test_like_path, normalize_path
from testfocus.related.search import CandidateSearch, seed_tokens

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 5
DEFAULT_CONCURRENCY = 16


async def run_pool(
    items: list[str],
    worker: Callable[[str], Awaitable[bool]],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> set[str]:
    """Run a predicate over items with a fixed number of cooperative workers.

    Workers pull the next index from one shared counter. The counter is only
    read and advanced between awaits, so no lock is needed.
    """
    kept: set[str] = set()
    next_index = 0

    async def drain() -> None:
        nonlocal next_index
        while next_index < len(items):
            item = items[next_index]
            next_index += 1
            if await worker(item):
                kept.add(item)

    await asyncio.gather(*(drain() for _ in range(max(1, concurrency))))
    return kept


class TransitiveMatcher:
    """Depth-limited search for seed tokens along a file's import chain.

    Results are memoized by (path, depth); the memo holds the running task
    so concurrent workers reaching the same node share one walk.
    """

    def __init__(self, index: SourceGraphIndex, tokens: list[str], max_depth: int = DEFAULT_MAX_DEPTH):
        self.index = index
        self.tokens = tokens
        self.max_depth = max_depth
        self._visited: dict[tuple[str, int], asyncio.Task] = {}

    def mentions_seed(self, text: str) -> bool:
        return any(token in text for token in self.tokens)

    async def matches(self, path: str, depth: int = 0) -> bool:
        if depth > self.max_depth:
            return False
        key = (normalize_path(path), depth)
        task = self._visited.get(key)
        if task is None:
            task = asyncio.ensure_future(self._walk(key[0], depth))
            self._visited[key] = task
        return await task

    async def _walk(self, path: str, depth: int) -> bool:
        if self.mentions_seed(await self.index.load(path)):
            return True
        for specifier in self.index.specifiers(path):
            target = self.index.resolve(path, specifier)
            if target is None or self.index.is_external(target):
                continue
            if await self.matches(target, depth + 1):
                return True
        return False


class RelatedTestsResolver:
    """Resolves the test files related to a set of seed source files."""

    def __init__(
        self,
        root: str | Path,
        search: Optional[CandidateSearch] = None,
        discovery: Optional[TestFileDiscovery] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        concurrency: int = DEFAULT_CONCURRENCY,
        owns: Optional[Callable[[str], bool]] = None,
        graph_config=None,
    ):
        """Initialize the resolver.

        Args:
            root: Repository root
            search: Fast-path candidate search (default: ripgrep over root)
            discovery: Source of the test universe when none is passed in
            max_depth: Depth cap of the transitive verification walk
            concurrency: Number of cooperative verification workers
            owns: Ownership filter applied to candidates (e.g. per project)
            graph_config: Optional GraphConfig for the per-call index
        """
        self.root = normalize_path(root)
        self.search = search if search is not None else CandidateSearch(self.root)
        self.discovery = discovery if discovery is not None else TestFileDiscovery(self.root)
        self.max_depth = max_depth
        self.concurrency = concurrency
        self.owns = owns
        self.graph_config = graph_config

    @classmethod
    def from_config(cls, config, root: str | Path, **kwargs) -> "RelatedTestsResolver":
        """Create a resolver from a TestFocusConfig."""
        return cls(
            root=root,
            search=CandidateSearch.from_config(config.search, root),
            max_depth=config.resolver.max_depth,
            concurrency=config.resolver.concurrency,
            graph_config=config.graph,
            **kwargs,
        )

    async def resolve(
        self,
        seeds: Iterable[str | Path],
        test_files: Iterable[str | Path] = (),
    ) -> list[str]:
        """Resolve the related test files for the seeds.

        Args:
            seeds: Changed or selected production files
            test_files: Universe of test files; discovered when empty

        Returns:
            Sorted related test files; the input unchanged when there are no
            seeds; empty when nothing matched
        """
        seed_list = [normalize_path(seed) for seed in seeds]
        test_list = list(test_files)
        if not seed_list:
            return test_list

        universe = [normalize_path(path) for path in test_list]
        owned = self._ownership_filter(universe)

        candidates = await self.search.find(seed_list)
        fast = [path for path in candidates if owned(path)]
        logger.debug("Fast path: %d candidates, %d owned", len(candidates), len(fast))
        if fast:
            return sorted(fast)

        if not universe:
            universe = self.discovery.get_test_files()

        logger.debug("Transitive verification over %d test files", len(universe))
        return await self._verify(self._new_index(), seed_tokens(self.root, seed_list), universe)

    def resolve_sync(
        self,
        seeds: Iterable[str | Path],
        test_files: Iterable[str | Path] = (),
    ) -> list[str]:
        """Synchronous wrapper around resolve()."""
        return asyncio.run(self.resolve(seeds, test_files))

    async def _verify(self, index: SourceGraphIndex, tokens: list[str], files: list[str]) -> list[str]:
        matcher = TransitiveMatcher(index, tokens, max_depth=self.max_depth)
        unique = list(dict.fromkeys(files))
        kept = await run_pool(unique, matcher.matches, concurrency=self.concurrency)
        return sorted(path for path in unique if path in kept)

    def _ownership_filter(self, universe: list[str]) -> Callable[[str], bool]:
        if self.owns is not None:
            return self.owns
        if universe:
            members = set(universe)
            return members.__contains__
        return lambda path: is_test_like_path(path, self.root)

    def _new_index(self) -> SourceGraphIndex:
        if self.graph_config is not None:
            return SourceGraphIndex.from_config(self.graph_config, root=self.root)
        return SourceGraphIndex(root=self.root)


def select_direct_tests(
    root: str | Path,
    test_files: Iterable[str | Path],
    production_files: Iterable[str | Path],
) -> list[str]:
    """Return the tests that directly import one of the production files."""
    index = SourceGraphIndex(root=root)
    production = {normalize_path(path) for path in production_files}

    direct = []
    for test_file in test_files:
        path = normalize_path(test_file)
        if any(target in production for target in index.neighbours(path)):
            direct.append(path)
    return direct
