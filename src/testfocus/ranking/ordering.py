"""Ordering of coverage files by selection, change weight and config-ness."""

import os
import re
from pathlib import Path
from typing import Iterable, Mapping

CONFIG_SUFFIX = re.compile(r"\.config\.[cm]?[jt]sx?$")
CONFIG_TOOL_NAME = re.compile(r"^(jest|babel|vitest|vite|webpack|rollup|eslintrc|tsconfig|prettier)\b")


def is_config_like(root: str | Path, path: str) -> bool:
    """Check whether a file is build or tool configuration rather than source."""
    relative = os.path.relpath(path, str(root)).replace("\\", "/")
    if relative.startswith("config/"):
        return True
    base = os.path.basename(relative).lower()
    return bool(CONFIG_SUFFIX.search(base) or CONFIG_TOOL_NAME.match(base))


def reorder_by_selection_change_and_config(
    root: str | Path,
    files: Iterable[str],
    selection: Iterable[str],
    changed: Iterable[str],
    weights: Mapping[str, int],
) -> list[str]:
    """Order files for printing, least relevant first.

    Config files lead, then untouched source, then changed files by
    descending change weight, and the explicitly selected source files last.
    """
    files = list(files)
    selection_set = set(selection)
    changed_set = set(changed)

    def by_weight(paths: list[str]) -> list[str]:
        return sorted(paths, key=lambda path: weights.get(path, 0), reverse=True)

    selected = by_weight([path for path in files if path in selection_set])
    selected_source = [path for path in selected if not is_config_like(root, path)]
    selected_config = [path for path in selected if is_config_like(root, path)]

    rest = [path for path in files if path not in selection_set]
    changed_only = by_weight([path for path in rest if path in changed_set])
    unchanged = [path for path in rest if path not in changed_set]
    unchanged_source = [path for path in unchanged if not is_config_like(root, path)]
    unchanged_config = [path for path in unchanged if is_config_like(root, path)]

    return [*unchanged_config, *selected_config, *unchanged_source, *changed_only, *selected_source]
