"""Import graph indexing and distance ranking."""

from testfocus.graph.index import FileNode, SourceGraphIndex
from testfocus.graph.distance import DistanceRankBuilder, build_distance_map

__all__ = ["FileNode", "SourceGraphIndex", "DistanceRankBuilder", "build_distance_map"]
