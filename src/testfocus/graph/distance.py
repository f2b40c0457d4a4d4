"""Import-graph distance ranking."""

import logging
from collections import deque
from pathlib import Path
from typing import Iterable, Optional

from testfocus.graph.index import SourceGraphIndex, normalize_path

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 6


class DistanceRankBuilder:
    """Builds a path -> import-edge distance map by multi-source BFS."""

    def __init__(
        self,
        index: Optional[SourceGraphIndex] = None,
        root: Optional[str | Path] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        """Initialize the builder.

        Args:
            index: Graph index to traverse; a fresh one is created when omitted
            root: Repository root passed to a freshly created index
            max_depth: Nodes further than this from every seed are left out
        """
        self.index = index if index is not None else SourceGraphIndex(root=root)
        self.max_depth = max_depth

    def build(self, seeds: Iterable[str | Path]) -> dict[str, int]:
        """Compute shortest import distances from the seed set.

        Args:
            seeds: Files at distance 0

        Returns:
            Mapping of normalized absolute path to distance; files that are
            unreachable, external, or beyond max_depth are absent
        """
        distances: dict[str, int] = {}
        frontier: deque[tuple[str, int]] = deque()

        for seed in seeds:
            path = normalize_path(seed)
            if self.index.is_external(path) or path in distances:
                continue
            distances[path] = 0
            frontier.append((path, 0))

        while frontier:
            current, distance = frontier.popleft()
            if distance > distances.get(current, distance):
                continue
            if distance >= self.max_depth:
                continue

            next_distance = distance + 1
            for target in self.index.neighbours(current):
                if self.index.is_external(target):
                    continue
                known = distances.get(target)
                if known is None or next_distance < known:
                    distances[target] = next_distance
                    frontier.append((target, next_distance))

        logger.debug("Distance map: %d files reachable within depth %d", len(distances), self.max_depth)
        return distances


def build_distance_map(
    seeds: Iterable[str | Path],
    root: Optional[str | Path] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> dict[str, int]:
    """Build a distance map with a throwaway index."""
    return DistanceRankBuilder(root=root, max_depth=max_depth).build(seeds)
