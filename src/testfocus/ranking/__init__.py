"""Relevance ranking of test results."""

from testfocus.ranking.composer import (
    FileResult,
    RankComposer,
    presentation_order,
    rank_from_related,
    sort_paths,
    sort_results,
    with_priority,
)
from testfocus.ranking.ordering import is_config_like, reorder_by_selection_change_and_config

__all__ = [
    "FileResult",
    "RankComposer",
    "presentation_order",
    "rank_from_related",
    "sort_paths",
    "sort_results",
    "with_priority",
    "is_config_like",
    "reorder_by_selection_change_and_config",
]
