"""Composite ordering of test file results by failure, relevance and path."""

import functools
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Sequence, TypeVar

from testfocus.graph.index import normalize_path

T = TypeVar("T")
Comparator = Callable[[T, T], int]


@dataclass
class FileResult:
    """A test file result as seen by the ranking layer."""

    path: str
    status: str = ""
    assertion_statuses: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        """A file failed when it, or any of its assertions, failed."""
        return self.status == "failed" or "failed" in self.assertion_statuses

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "status": self.status,
            "failed": self.failed,
            "assertion_statuses": list(self.assertion_statuses),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FileResult":
        """Create from a reporter-style dict (testFilePath/status/testResults)."""
        path = data.get("testFilePath") or data.get("path") or ""
        assertions = data.get("testResults") or []
        return cls(
            path=str(path),
            status=str(data.get("status") or ""),
            assertion_statuses=[
                str(item.get("status") or "") for item in assertions if isinstance(item, Mapping)
            ],
        )


def compose_comparators(*comparators: Comparator) -> Comparator:
    """Chain comparators; the first non-zero result decides."""

    def compare(left, right) -> int:
        for comparator in comparators:
            result = comparator(left, right)
            if result != 0:
                return result
        return 0

    return compare


def _compare_bool_desc(left: bool, right: bool) -> int:
    if left == right:
        return 0
    return -1 if left else 1


def _compare_asc(left, right) -> int:
    return (left > right) - (left < right)


def normalize_rank(rank: Mapping[str, float]) -> dict[str, float]:
    """Key a rank by normalized path so lookups match however it was built."""
    return {normalize_path(path): value for path, value in rank.items()}


def _rank_or_inf(rank: Mapping[str, float], path: str) -> float:
    return rank.get(normalize_path(path), math.inf)


def comparator_for_rank(rank: Mapping[str, float]) -> Comparator:
    """Failed first, then ascending rank (absent = infinity), then path."""
    rank = normalize_rank(rank)
    return compose_comparators(
        lambda left, right: _compare_bool_desc(left.failed, right.failed),
        lambda left, right: _compare_asc(_rank_or_inf(rank, left.path), _rank_or_inf(rank, right.path)),
        lambda left, right: _compare_asc(normalize_path(left.path), normalize_path(right.path)),
    )


def comparator_for_path_rank(rank: Mapping[str, float]) -> Comparator:
    """Ascending rank (absent = infinity), then path."""
    rank = normalize_rank(rank)
    return compose_comparators(
        lambda left, right: _compare_asc(_rank_or_inf(rank, left), _rank_or_inf(rank, right)),
        lambda left, right: _compare_asc(normalize_path(left), normalize_path(right)),
    )


def sort_results(rank: Mapping[str, float], results: Iterable[T]) -> list[T]:
    """Sort result records, most relevant first."""
    return sorted(results, key=functools.cmp_to_key(comparator_for_rank(rank)))


def sort_paths(rank: Mapping[str, float], paths: Iterable[str]) -> list[str]:
    """Sort plain paths (coverage files and the like), most relevant first."""
    return sorted(paths, key=functools.cmp_to_key(comparator_for_path_rank(rank)))


def with_priority(rank: Mapping[str, float], priority_paths: Sequence[str]) -> dict[str, float]:
    """Merge explicit priority paths into a rank as negative values.

    The earliest path gets the most negative value, so it sorts before every
    other override and before any plain distance.
    """
    merged = normalize_rank(rank)
    ordered = list(dict.fromkeys(normalize_path(path) for path in priority_paths))
    for position, path in enumerate(ordered):
        merged[path] = position - len(ordered)
    return merged


def rank_from_related(related: Iterable[str]) -> dict[str, int]:
    """Rank a RelatedSet by position: earlier entries are more relevant."""
    rank: dict[str, int] = {}
    for path in related:
        rank.setdefault(normalize_path(path), len(rank))
    return rank


def presentation_order(rank: Mapping[str, float], results: Iterable[T]) -> list[T]:
    """Order for printing: the most relevant result comes last.

    Terminal output is read from the bottom, so the sorted order is reversed
    here and consumers print the list as-is.
    """
    return list(reversed(sort_results(rank, results)))


class RankComposer:
    """Orders test results using a distance map plus explicit priorities."""

    def __init__(self, rank: Mapping[str, float], priority_paths: Sequence[str] = ()):
        """Initialize the composer.

        Args:
            rank: Path -> distance (or any ascending relevance value)
            priority_paths: Explicitly selected paths, most important first
        """
        self.rank = with_priority(rank, priority_paths) if priority_paths else normalize_rank(rank)

    def distance(self, path: str) -> float:
        """Effective rank of a path (infinity when unknown)."""
        return _rank_or_inf(self.rank, path)

    def sort(self, results: Iterable[T]) -> list[T]:
        return sort_results(self.rank, results)

    def sort_paths(self, paths: Iterable[str]) -> list[str]:
        return sort_paths(self.rank, paths)

    def presentation_order(self, results: Iterable[T]) -> list[T]:
        return presentation_order(self.rank, results)
