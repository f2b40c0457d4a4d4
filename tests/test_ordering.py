"""Tests for coverage file ordering."""

import pytest

from testfocus.ranking.ordering import is_config_like, reorder_by_selection_change_and_config

ROOT = "/repo"


@pytest.mark.parametrize(
    "path,expected",
    [
        ("/repo/config/db.ts", True),
        ("/repo/jest.config.js", True),
        ("/repo/src/vite.config.mts", True),
        ("/repo/tsconfig.json", True),
        ("/repo/babel.config.cjs", True),
        ("/repo/src/users.ts", False),
        ("/repo/src/configure.ts", False),
    ],
)
def test_is_config_like(path, expected):
    assert is_config_like(ROOT, path) is expected


class TestReorder:
    """Tests for reorder_by_selection_change_and_config."""

    def test_groups_in_order(self):
        """Test config, untouched source, changed, then selected files."""
        files = [
            "/repo/src/selected.ts",
            "/repo/src/changed_small.ts",
            "/repo/src/plain.ts",
            "/repo/jest.config.js",
            "/repo/src/changed_big.ts",
            "/repo/config/selected.ts",
        ]
        ordered = reorder_by_selection_change_and_config(
            ROOT,
            files,
            selection=["/repo/src/selected.ts", "/repo/config/selected.ts"],
            changed=["/repo/src/changed_small.ts", "/repo/src/changed_big.ts"],
            weights={"/repo/src/changed_small.ts": 2, "/repo/src/changed_big.ts": 40},
        )
        assert ordered == [
            "/repo/jest.config.js",
            "/repo/config/selected.ts",
            "/repo/src/plain.ts",
            "/repo/src/changed_big.ts",
            "/repo/src/changed_small.ts",
            "/repo/src/selected.ts",
        ]

    def test_selected_sorted_by_weight(self):
        files = ["/repo/src/a.ts", "/repo/src/b.ts"]
        ordered = reorder_by_selection_change_and_config(
            ROOT, files, selection=files, changed=[], weights={"/repo/src/b.ts": 9}
        )
        assert ordered == ["/repo/src/b.ts", "/repo/src/a.ts"]

    def test_no_selection_or_changes(self):
        files = ["/repo/src/b.ts", "/repo/src/a.ts"]
        assert reorder_by_selection_change_and_config(ROOT, files, [], [], {}) == files
