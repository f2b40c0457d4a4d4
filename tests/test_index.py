"""Tests for import specifier extraction and resolution."""

import asyncio
from pathlib import Path

import pytest

from testfocus.config import GraphConfig
from testfocus.graph.index import (
    SourceGraphIndex,
    extract_specifiers,
    is_local_specifier,
    is_test_like_path,
    normalize_path,
)


def write(root: Path, relative: str, text: str = "") -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class TestExtractSpecifiers:
    """Tests for extract_specifiers."""

    def test_all_import_forms(self):
        """Test static, require, re-export and dynamic imports."""
        text = "\n".join(
            [
                "import { a } from './a';",
                "const b = require('../b');",
                "export * from './c';",
                "const d = await import('./d');",
            ]
        )
        assert extract_specifiers(text) == ["./a", "../b", "./c", "./d"]

    def test_bare_packages_skipped(self):
        """Test that package imports are not local specifiers."""
        text = "import React from 'react';\nimport x from './x';\nrequire('lodash/fp');"
        assert extract_specifiers(text) == ["./x"]

    def test_duplicates_removed(self):
        text = "import a from './a';\nconst again = require('./a');"
        assert extract_specifiers(text) == ["./a"]

    def test_empty_text(self):
        assert extract_specifiers("") == []


class TestPathHelpers:
    """Tests for the path predicates."""

    def test_is_local_specifier(self):
        assert is_local_specifier("./a")
        assert is_local_specifier("../a")
        assert is_local_specifier("/src/a")
        assert not is_local_specifier("react")

    @pytest.mark.parametrize(
        "path",
        ["/repo/src/__tests__/a.ts", "/repo/tests/a.js", "/repo/src/a.test.tsx", "/repo/src/a.spec.mjs"],
    )
    def test_is_test_like_path(self, path):
        assert is_test_like_path(path)

    def test_source_file_not_test_like(self):
        assert not is_test_like_path("/repo/src/contest.ts")

    def test_test_like_relative_to_root(self):
        """Test that directories above the root do not make a file test-like."""
        assert is_test_like_path("/work/tests/repo/src/a.ts")
        assert not is_test_like_path("/work/tests/repo/src/a.ts", root="/work/tests/repo")
        assert is_test_like_path("/work/tests/repo/src/__tests__/a.ts", root="/work/tests/repo")
        assert is_test_like_path("/work/tests/repo/src/a.test.cjs", root="/work/tests/repo")


class TestSourceGraphIndex:
    """Tests for SourceGraphIndex."""

    def test_resolves_extension(self, tmp_path):
        """Test that suffixes are tried after the literal path."""
        main = write(tmp_path, "src/main.ts", "import { b } from './b';")
        target = write(tmp_path, "src/b.ts")

        index = SourceGraphIndex(root=tmp_path)
        assert index.resolve(main, "./b") == normalize_path(target)

    def test_literal_path_wins(self, tmp_path):
        main = write(tmp_path, "src/main.ts")
        data = write(tmp_path, "src/data.json", "{}")

        index = SourceGraphIndex(root=tmp_path)
        assert index.resolve(main, "./data.json") == normalize_path(data)

    def test_extension_order(self, tmp_path):
        """Test that earlier suffixes take precedence."""
        main = write(tmp_path, "src/main.ts")
        write(tmp_path, "src/util.js")
        ts = write(tmp_path, "src/util.ts")

        index = SourceGraphIndex(root=tmp_path)
        assert index.resolve(main, "./util") == normalize_path(ts)

    def test_directory_index(self, tmp_path):
        """Test that directory imports fall back to an index file."""
        main = write(tmp_path, "src/main.ts")
        target = write(tmp_path, "src/lib/index.tsx")

        index = SourceGraphIndex(root=tmp_path)
        assert index.resolve(main, "./lib") == normalize_path(target)

    def test_root_specifier(self, tmp_path):
        """Test that '/'-rooted specifiers are retried under the root."""
        main = write(tmp_path, "src/deep/main.ts")
        target = write(tmp_path, "src/shared.ts")

        index = SourceGraphIndex(root=tmp_path)
        assert index.resolve(main, "/src/shared") == normalize_path(target)

    def test_unresolvable(self, tmp_path):
        main = write(tmp_path, "src/main.ts")

        index = SourceGraphIndex(root=tmp_path)
        assert index.resolve(main, "./missing") is None
        assert index.resolve(main, "react") is None

    def test_resolution_cached(self, tmp_path):
        """Test that a resolution is not recomputed once stored."""
        main = write(tmp_path, "src/main.ts")
        target = write(tmp_path, "src/b.ts")

        index = SourceGraphIndex(root=tmp_path)
        first = index.resolve(main, "./b")
        target.unlink()
        assert index.resolve(main, "./b") == first

    def test_neighbours(self, tmp_path):
        main = write(
            tmp_path,
            "src/main.ts",
            "import a from './a';\nimport b from './b';\nimport c from './gone';\nimport r from 'react';",
        )
        a = write(tmp_path, "src/a.ts")
        b = write(tmp_path, "src/b.js")

        index = SourceGraphIndex(root=tmp_path)
        assert index.neighbours(main) == [normalize_path(a), normalize_path(b)]

    def test_unreadable_file_has_no_specifiers(self, tmp_path):
        index = SourceGraphIndex(root=tmp_path)
        assert index.specifiers(tmp_path / "missing.ts") == []
        assert index.body(tmp_path / "missing.ts") == ""

    def test_external_paths(self):
        index = SourceGraphIndex()
        assert index.is_external("/repo/node_modules/react/index.js")
        assert not index.is_external("/repo/src/index.js")

    def test_async_load(self, tmp_path):
        """Test that load() reads once and serves from the cache."""
        path = write(tmp_path, "src/a.ts", "export const a = 1;")
        index = SourceGraphIndex(root=tmp_path)

        assert asyncio.run(index.load(path)) == "export const a = 1;"
        path.write_text("changed")
        assert asyncio.run(index.load(path)) == "export const a = 1;"
        assert index.body(path) == "export const a = 1;"

    def test_from_config(self, tmp_path):
        config = GraphConfig(extensions=[".js"], index_basename="main")
        main = write(tmp_path, "src/app.js")
        target = write(tmp_path, "src/pkg/main.js")
        write(tmp_path, "src/pkg/index.js")

        index = SourceGraphIndex.from_config(config, root=tmp_path)
        assert index.resolve(main, "./pkg") == normalize_path(target)
