"""Configuration management for TestFocus."""

import json
import math
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


DEFAULT_EXTENSIONS = [".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".mts", ".cts", ".json"]

DEFAULT_TEST_GLOBS = [
    "**/*.{test,spec}.{ts,tsx,js,jsx}",
    "tests/**/*.{ts,tsx,js,jsx}",
]

DEFAULT_EXCLUDE_GLOBS = [
    "**/node_modules/**",
    "**/dist/**",
    "**/build/**",
    "**/coverage/**",
    "**/.next/**",
]

BRIDGE_MARKER = "[JEST-BRIDGE-EVENT]"


class GraphConfig(BaseModel):
    """Import graph and distance ranking configuration."""

    extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXTENSIONS),
        description="Suffixes tried, in order, when resolving an import specifier",
    )
    index_basename: str = Field(default="index", description="Basename tried inside a directory import")
    external_markers: list[str] = Field(
        default_factory=lambda: ["/node_modules/"],
        description="Path fragments identifying third-party dependency files",
    )
    max_depth: int = Field(default=6, description="Maximum BFS depth for distance ranking")

    @field_validator("max_depth")
    @classmethod
    def validate_depth(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Depth must be at least 1")
        return v

    @field_validator("extensions")
    @classmethod
    def validate_extensions(cls, v: list[str]) -> list[str]:
        for ext in v:
            if not ext.startswith("."):
                raise ValueError(f"Extension must start with '.': {ext}")
        return v


class SearchConfig(BaseModel):
    """External content search configuration."""

    tool: str = Field(default="rg", description="Full-text search executable")
    timeout_seconds: float = Field(default=1.5, description="Hard timeout for one search")
    test_globs: list[str] = Field(default_factory=lambda: list(DEFAULT_TEST_GLOBS))
    exclude_globs: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_GLOBS))

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v

    @field_validator("tool")
    @classmethod
    def validate_tool(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Search tool cannot be empty")
        return v


class ResolverConfig(BaseModel):
    """Related-tests resolution configuration."""

    max_depth: int = Field(default=5, description="Depth cap for the transitive verification walk")
    concurrency: int = Field(default=16, description="Worker pool size for bulk file scans")

    @field_validator("max_depth", "concurrency")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v


class CorrelationConfig(BaseModel):
    """HTTP exchange correlation configuration."""

    window_ms: int = Field(default=3000, description="Time window for ordinary failures")
    strict_window_ms: int = Field(default=600, description="Time window for transport failures")
    min_score: int = Field(default=1200, description="Minimum score for accepting a match")
    transport_min_score: int = Field(
        default=1400, description="Score floor applied to transport-classified failures"
    )
    show_miss: bool = Field(default=False, description="Report failures with no relevant exchange")
    marker: str = Field(default=BRIDGE_MARKER, description="Line marker of bridge events")

    @field_validator("window_ms", "strict_window_ms", "min_score", "transport_min_score")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @property
    def transport_threshold(self) -> int:
        """Acceptance threshold for transport-classified failures."""
        return max(self.min_score, self.transport_min_score)

    @staticmethod
    def env_overrides(environ: Optional[dict[str, str]] = None) -> dict:
        """Read TESTFOCUS_HTTP_* overrides from the environment.

        Missing, non-numeric or non-positive values are skipped.
        """
        if environ is None:
            environ = dict(os.environ)

        def number(name: str) -> Optional[int]:
            try:
                value = float(environ.get(name, ""))
            except ValueError:
                return None
            if not math.isfinite(value) or value <= 0:
                return None
            return int(value)

        overrides: dict = {}
        for field_name, env_name in (
            ("window_ms", "TESTFOCUS_HTTP_WINDOW_MS"),
            ("strict_window_ms", "TESTFOCUS_HTTP_STRICT_WINDOW_MS"),
            ("min_score", "TESTFOCUS_HTTP_MIN_SCORE"),
        ):
            value = number(env_name)
            if value is not None:
                overrides[field_name] = value

        if environ.get("TESTFOCUS_HTTP_MISS") == "1":
            overrides["show_miss"] = True

        return overrides

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None) -> "CorrelationConfig":
        """Build a config from defaults plus environment overrides."""
        return cls(**cls.env_overrides(environ))

    def with_env(self, environ: Optional[dict[str, str]] = None) -> "CorrelationConfig":
        """Copy of this config with environment overrides applied."""
        return self.model_copy(update=self.env_overrides(environ))


class TestFocusConfig(BaseModel):
    """Main configuration for TestFocus."""

    graph: GraphConfig = Field(default_factory=GraphConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    correlation: CorrelationConfig = Field(default_factory=CorrelationConfig)
    compare_ref: Optional[str] = Field(
        default=None, description="Git ref to compare against for --changed (default: HEAD)"
    )

    @classmethod
    def from_file(cls, path: Path | str) -> "TestFocusConfig":
        """Load configuration from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r") as f:
            data = json.load(f)

        return cls.model_validate(data)

    @classmethod
    def find_and_load(cls, start_dir: Path | str | None = None) -> "TestFocusConfig":
        """Find and load configuration file, searching up the directory tree."""
        if start_dir is None:
            start_dir = Path.cwd()
        else:
            start_dir = Path(start_dir)

        config_names = ["testfocus.json", ".testfocus.json"]

        current = start_dir.resolve()
        while True:
            for name in config_names:
                config_path = current / name
                if config_path.exists():
                    return cls.from_file(config_path)
            if current == current.parent:
                break
            current = current.parent

        raise FileNotFoundError(
            "No configuration file found. Create testfocus.json or run 'testfocus init'"
        )

    def to_file(self, path: Path | str) -> None:
        """Save configuration to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)


def get_default_config() -> TestFocusConfig:
    """Return a default configuration."""
    return TestFocusConfig()


def load_config(config_path: Optional[str] = None) -> TestFocusConfig:
    """Load the explicit config file, the nearest discovered one, or defaults."""
    if config_path:
        return TestFocusConfig.from_file(config_path)
    try:
        return TestFocusConfig.find_and_load()
    except FileNotFoundError:
        return get_default_config()


def create_example_config(output_path: Path | str) -> Path:
    """Create an example configuration file."""
    output_path = Path(output_path)
    config = get_default_config()
    config.compare_ref = "HEAD"
    config.to_file(output_path)
    return output_path
