"""Tests for the command-line interface."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from testfocus.cli import main
from testfocus.config import BRIDGE_MARKER


def write(root: Path, relative: str, text: str = "") -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    """Config that disables the external search tool."""
    return write(
        tmp_path,
        "testfocus.json",
        json.dumps({"search": {"tool": "definitely-not-a-search-tool"}}),
    )


class TestInit:
    """Tests for the init command."""

    def test_creates_config(self, runner, tmp_path):
        output = tmp_path / "testfocus.json"
        result = runner.invoke(main, ["init", "--output", str(output)])

        assert result.exit_code == 0
        assert output.exists()
        assert json.loads(output.read_text())["compare_ref"] == "HEAD"

    def test_refuses_overwrite(self, runner, tmp_path):
        output = write(tmp_path, "testfocus.json", "{}")
        result = runner.invoke(main, ["init", "--output", str(output)])

        assert result.exit_code == 1
        assert "already exists" in result.output
        assert output.read_text() == "{}"

    def test_force_overwrite(self, runner, tmp_path):
        output = write(tmp_path, "testfocus.json", "{}")
        result = runner.invoke(main, ["init", "--output", str(output), "--force"])

        assert result.exit_code == 0
        assert "graph" in json.loads(output.read_text())


class TestRelated:
    """Tests for the related command."""

    def test_lists_related_tests(self, runner, tmp_path, config_file):
        write(tmp_path, "src/users.ts", "export const load = () => 1;")
        write(tmp_path, "src/helpers.ts", "import { load } from './users';")
        write(tmp_path, "tests/profile.test.ts", "import { h } from '../src/helpers';")
        write(tmp_path, "tests/orders.test.ts", "import { o } from '../src/orders';")

        result = runner.invoke(
            main, ["--config", str(config_file), "related", "src/users.ts", "--root", str(tmp_path)]
        )

        assert result.exit_code == 0
        assert "tests/profile.test.ts" in result.output
        assert "orders.test.ts" not in result.output

    def test_no_seeds(self, runner, tmp_path, config_file):
        result = runner.invoke(main, ["--config", str(config_file), "related", "--root", str(tmp_path)])

        assert result.exit_code == 0
        assert "No seed files given" in result.output

    def test_nothing_related(self, runner, tmp_path, config_file):
        write(tmp_path, "src/lonely.ts")
        result = runner.invoke(
            main, ["--config", str(config_file), "related", "src/lonely.ts", "--root", str(tmp_path)]
        )

        assert result.exit_code == 0
        assert "No related test files found" in result.output

    def test_missing_config(self, runner, tmp_path):
        result = runner.invoke(main, ["--config", str(tmp_path / "nope.json"), "related", "a.ts"])

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_invalid_config(self, runner, tmp_path):
        bad = write(tmp_path, "bad.json", json.dumps({"resolver": {"concurrency": 0}}))
        result = runner.invoke(main, ["--config", str(bad), "related", "a.ts"])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output


class TestRank:
    """Tests for the rank command."""

    def test_failed_printed_last(self, runner, tmp_path, config_file):
        results = write(
            tmp_path,
            "results.json",
            json.dumps(
                {
                    "testResults": [
                        {"testFilePath": "tests/broken.test.ts", "status": "failed", "testResults": []},
                        {"testFilePath": "tests/fine.test.ts", "status": "passed", "testResults": []},
                    ]
                }
            ),
        )
        result = runner.invoke(
            main, ["--config", str(config_file), "rank", str(results), "--root", str(tmp_path)]
        )

        assert result.exit_code == 0
        assert result.output.index("fine.test.ts") < result.output.index("broken.test.ts")

    def test_seed_relevance(self, runner, tmp_path, config_file):
        """Test that related tests are printed after unrelated ones."""
        write(tmp_path, "src/users.ts", "export const load = () => 1;")
        write(tmp_path, "tests/a_users.test.ts", "import { load } from '../src/users';")
        write(tmp_path, "tests/z_other.test.ts", "export {};")
        results = write(
            tmp_path,
            "results.json",
            json.dumps(
                [
                    {"testFilePath": "tests/a_users.test.ts", "status": "passed"},
                    {"testFilePath": "tests/z_other.test.ts", "status": "passed"},
                ]
            ),
        )
        result = runner.invoke(
            main,
            [
                "--config",
                str(config_file),
                "rank",
                str(results),
                "--seed",
                "src/users.ts",
                "--root",
                str(tmp_path),
            ],
        )

        assert result.exit_code == 0
        assert result.output.index("z_other.test.ts") < result.output.index("a_users.test.ts")

    def test_priority(self, runner, tmp_path, config_file):
        results = write(
            tmp_path,
            "results.json",
            json.dumps(
                [
                    {"testFilePath": "tests/a.test.ts", "status": "passed"},
                    {"testFilePath": "tests/b.test.ts", "status": "passed"},
                ]
            ),
        )
        result = runner.invoke(
            main,
            [
                "--config",
                str(config_file),
                "rank",
                str(results),
                "--priority",
                "tests/b.test.ts",
                "--root",
                str(tmp_path),
            ],
        )

        assert result.exit_code == 0
        assert result.output.index("a.test.ts") < result.output.index("b.test.ts")

    def test_invalid_results(self, runner, tmp_path, config_file):
        results = write(tmp_path, "results.json", "{not json")
        result = runner.invoke(main, ["--config", str(config_file), "rank", str(results)])

        assert result.exit_code == 1
        assert "Invalid results file" in result.output

    def source_project(self, tmp_path) -> Path:
        write(tmp_path, "tests/users.test.ts", "import { load } from '../src/users';")
        write(tmp_path, "src/users.ts", "import { db } from './db';\nexport const load = db;")
        write(tmp_path, "src/db.ts", "export const db = 1;")
        write(tmp_path, "src/a_lonely.ts", "export const lonely = 1;")
        return write(
            tmp_path,
            "results.json",
            json.dumps([{"testFilePath": "tests/users.test.ts", "status": "passed"}]),
        )

    def rank_files(self, runner, tmp_path, config_path, results) -> str:
        result = runner.invoke(
            main,
            [
                "--config",
                str(config_path),
                "rank",
                str(results),
                "--file",
                "src/a_lonely.ts",
                "--file",
                "src/db.ts",
                "--file",
                "src/users.ts",
                "--root",
                str(tmp_path),
            ],
        )
        assert result.exit_code == 0
        return result.output

    def test_source_files_by_distance(self, runner, tmp_path, config_file):
        """Test that source files are listed by import distance from the executed tests."""
        results = self.source_project(tmp_path)
        output = self.rank_files(runner, tmp_path, config_file, results)

        assert "Source Files" in output
        assert output.index("src/users.ts") < output.index("src/db.ts") < output.index("src/a_lonely.ts")

    def test_source_distance_respects_max_depth(self, runner, tmp_path):
        """Test that files beyond the configured depth fall back to path order."""
        results = self.source_project(tmp_path)
        shallow = write(
            tmp_path,
            "shallow.json",
            json.dumps({"search": {"tool": "definitely-not-a-search-tool"}, "graph": {"max_depth": 1}}),
        )
        output = self.rank_files(runner, tmp_path, shallow, results)

        assert output.index("src/users.ts") < output.index("src/a_lonely.ts") < output.index("src/db.ts")


class TestCorrelate:
    """Tests for the correlate command."""

    def event_line(self, payload: dict) -> str:
        return f"{BRIDGE_MARKER} {json.dumps(payload)}"

    def test_matches_failure(self, runner, tmp_path, config_file):
        events = write(
            tmp_path,
            "stderr.log",
            "\n".join(
                [
                    "some jest noise",
                    self.event_line(
                        {
                            "type": "httpResponse",
                            "timestampMs": 1050,
                            "method": "GET",
                            "route": "/users",
                            "statusCode": 404,
                            "durationMs": 7,
                        }
                    ),
                    self.event_line(
                        {
                            "type": "assertionFailure",
                            "timestampMs": 1000,
                            "expectedNumber": 200,
                            "receivedNumber": 404,
                            "message": "expect(received).toBe(expected)",
                            "currentTestName": "users list",
                        }
                    ),
                ]
            ),
        )
        result = runner.invoke(main, ["--config", str(config_file), "correlate", str(events)])

        assert result.exit_code == 0
        assert "users list" in result.output
        assert "GET /users" in result.output
        assert "1/1" in result.output

    def test_no_failures(self, runner, tmp_path, config_file):
        events = write(tmp_path, "stderr.log", "nothing to see\n")
        result = runner.invoke(main, ["--config", str(config_file), "correlate", str(events)])

        assert result.exit_code == 0
        assert "No assertion failures found" in result.output

    def test_miss_reported_from_env(self, runner, tmp_path, config_file):
        events = write(
            tmp_path,
            "stderr.log",
            self.event_line({"type": "assertionFailure", "timestampMs": 1000, "message": "socket hang up"}),
        )
        result = runner.invoke(
            main,
            ["--config", str(config_file), "correlate", str(events)],
            env={"TESTFOCUS_HTTP_MISS": "1"},
        )

        assert result.exit_code == 0
        assert "Transport error" in result.output
        assert "0/1" in result.output

    def test_unrelated_failure_gets_no_http(self, runner, tmp_path, config_file):
        """Test that a failure with no HTTP signal is printed without an exchange."""
        events = write(
            tmp_path,
            "stderr.log",
            "\n".join(
                [
                    self.event_line(
                        {
                            "type": "httpResponse",
                            "timestampMs": 1000,
                            "method": "GET",
                            "route": "/health",
                            "statusCode": 200,
                            "testPath": "/repo/tests/other.test.ts",
                        }
                    ),
                    self.event_line(
                        {
                            "type": "assertionFailure",
                            "timestampMs": 1000,
                            "message": "expected 3 to equal 4",
                            "testPath": "/repo/src/math.test.ts",
                            "currentTestName": "adds numbers",
                        }
                    ),
                ]
            ),
        )
        result = runner.invoke(main, ["--config", str(config_file), "correlate", str(events)])

        assert result.exit_code == 0
        assert "adds numbers" in result.output
        assert "GET /health" not in result.output
        assert "0/1" in result.output
