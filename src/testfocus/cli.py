"""Command-line interface for TestFocus."""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from testfocus import __version__
from testfocus.bridge.correlation import HttpCorrelationEngine, names_match
from testfocus.bridge.events import parse_bridge_text
from testfocus.bridge.hints import events_near, is_http_relevant, is_transport_error, summarize_url
from testfocus.bridge.models import AssertionFailure, BridgeStream, TestIdentity
from testfocus.config import TestFocusConfig, create_example_config, load_config
from testfocus.git.changes import GitChangeDetector
from testfocus.graph.distance import DistanceRankBuilder
from testfocus.graph.index import SourceGraphIndex, normalize_path
from testfocus.ranking.composer import FileResult, RankComposer, rank_from_related
from testfocus.related.resolver import RelatedTestsResolver


console = Console()
logger = logging.getLogger(__name__)


def print_banner() -> None:
    """Print the TestFocus banner."""
    console.print(
        Panel.fit(
            "[bold blue]TestFocus[/bold blue] - related test selection and failure context",
            subtitle=f"v{__version__}",
        )
    )


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_config(ctx: click.Context) -> TestFocusConfig:
    config_path = ctx.obj.get("config_path")
    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        console.print("Run [bold]testfocus init[/bold] to create a configuration file")
        sys.exit(1)
    except (ValidationError, json.JSONDecodeError) as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        sys.exit(1)


def _absolute(root: Path, path: str) -> str:
    return normalize_path(root / path)


def _relative(root: Path, path: str) -> str:
    try:
        return Path(path).relative_to(root).as_posix()
    except ValueError:
        return path


@click.group()
@click.version_option(version=__version__, prog_name="testfocus")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=False),
    help="Path to configuration file (default: testfocus.json)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """TestFocus - find, rank and explain the tests that matter for a change.

    Selects the tests related to changed source files, orders results by
    import distance, and ties failed assertions to the HTTP exchange that
    caused them.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config
    setup_logging(verbose)


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="testfocus.json",
    help="Output path for configuration file",
)
@click.option("--force", "-f", is_flag=True, help="Overwrite existing configuration")
@click.pass_context
def init(ctx: click.Context, output: str, force: bool) -> None:
    """Initialize a new TestFocus configuration file."""
    print_banner()

    output_path = Path(output)
    if output_path.exists() and not force:
        console.print(f"[yellow]Configuration file already exists:[/yellow] {output_path}")
        console.print("Use --force to overwrite")
        sys.exit(1)

    try:
        create_example_config(output_path)
    except OSError as e:
        console.print(f"[red]Error creating configuration:[/red] {e}")
        sys.exit(1)

    console.print(f"[green]Created configuration file:[/green] {output_path}")
    console.print("\nNext steps:")
    console.print("  1. Adjust extensions and test globs for your project")
    console.print("  2. Run [bold]testfocus related --changed[/bold] to list affected tests")


@main.command()
@click.argument("paths", nargs=-1, type=click.Path())
@click.option("--changed", is_flag=True, help="Add files changed in git as seeds")
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Repository root (default: current directory)",
)
@click.pass_context
def related(ctx: click.Context, paths: tuple[str, ...], changed: bool, root: str) -> None:
    """List the test files related to the given source files."""
    config = _load_config(ctx)
    root_path = Path(root).resolve()

    seeds = [_absolute(root_path, path) for path in paths]
    if changed:
        changed_files = GitChangeDetector(root_path).changed_files(compare_ref=config.compare_ref)
        logger.debug("Found %d changed files", len(changed_files))
        seeds.extend(path for path in changed_files if path not in seeds)

    if not seeds:
        console.print("[yellow]No seed files given[/yellow]")
        console.print("Pass source paths or use [bold]--changed[/bold]")
        return

    resolver = RelatedTestsResolver.from_config(config, root_path)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(f"Resolving tests for {len(seeds)} files...", total=None)
        tests = resolver.resolve_sync(seeds)
        progress.update(task, completed=True)

    if not tests:
        console.print("[yellow]No related test files found[/yellow]")
        return

    for path in tests:
        console.print(_relative(root_path, path), highlight=False)


def _read_results(results_json: str) -> list[FileResult]:
    with open(results_json, "r") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("testResults") or []
    if not isinstance(data, list):
        return []
    return [FileResult.from_dict(item) for item in data if isinstance(item, dict)]


@main.command()
@click.argument("results_json", type=click.Path(exists=True, dir_okay=False))
@click.option("--seed", "seeds", multiple=True, type=click.Path(), help="Changed source file")
@click.option("--priority", "priorities", multiple=True, type=click.Path(), help="Test file to pin first")
@click.option(
    "--file",
    "files",
    multiple=True,
    type=click.Path(),
    help="Source file to order by import distance from the executed tests",
)
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Repository root (default: current directory)",
)
@click.pass_context
def rank(
    ctx: click.Context,
    results_json: str,
    seeds: tuple[str, ...],
    priorities: tuple[str, ...],
    files: tuple[str, ...],
    root: str,
) -> None:
    """Order test file results, most relevant last."""
    config = _load_config(ctx)
    root_path = Path(root).resolve()

    try:
        results = _read_results(results_json)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid results file:[/red] {e}")
        sys.exit(1)

    for result in results:
        result.path = _absolute(root_path, result.path)

    distances: dict[str, int] = {}
    if seeds:
        resolver = RelatedTestsResolver.from_config(config, root_path)
        related_tests = resolver.resolve_sync(
            [_absolute(root_path, seed) for seed in seeds],
            test_files=[result.path for result in results],
        )
        distances = rank_from_related(related_tests)

    composer = RankComposer(distances, [_absolute(root_path, path) for path in priorities])

    table = Table(title="Test Files (most relevant last)")
    table.add_column("#", style="dim", justify="right")
    table.add_column("File")
    table.add_column("Status")
    table.add_column("Rank", justify="right", style="cyan")

    for position, result in enumerate(composer.presentation_order(results), start=1):
        distance = composer.distance(result.path)
        status = "[red]failed[/red]" if result.failed else f"[green]{result.status or 'passed'}[/green]"
        table.add_row(
            str(position),
            _relative(root_path, result.path),
            status,
            "-" if distance == float("inf") else str(int(distance)),
        )

    console.print(table)

    if files:
        _print_source_files(config, root_path, results, files)


def _print_source_files(
    config: TestFocusConfig,
    root_path: Path,
    results: list[FileResult],
    files: tuple[str, ...],
) -> None:
    """Print source files ordered by import distance from the executed tests."""
    builder = DistanceRankBuilder(
        SourceGraphIndex.from_config(config.graph, root=root_path),
        max_depth=config.graph.max_depth,
    )
    distances = builder.build(result.path for result in results)
    composer = RankComposer(distances)

    table = Table(title="Source Files (closest to executed tests first)")
    table.add_column("File")
    table.add_column("Distance", justify="right", style="cyan")

    for path in composer.sort_paths(_absolute(root_path, path) for path in files):
        distance = composer.distance(path)
        table.add_row(
            _relative(root_path, path),
            "-" if distance == float("inf") else str(int(distance)),
        )

    console.print(table)


def _wants_http(failure: AssertionFailure, stream: BridgeStream, window_ms: int) -> bool:
    """Whether HTTP context belongs with this failure at all."""
    same_test = [
        event
        for event in stream.http
        if event.test_path == failure.test_path and names_match(event.test_name, failure.test_name)
    ]
    nearby = events_near(stream.http, failure.timestamp_ms, window_ms, failure.test_path)
    return is_http_relevant(
        _relative(Path.cwd(), failure.test_path or ""),
        failure,
        title=failure.test_name,
        http_count_in_same_test=len(same_test) or len(nearby),
        has_transport_signal=is_transport_error(failure.message) or any(event.is_abort for event in same_test),
    )


def _print_failure(failure: AssertionFailure) -> None:
    console.print(f"\n[red]✗[/red] [bold]{failure.test_name or 'Unknown'}[/bold]")
    first_line = failure.message.strip().splitlines()[0] if failure.message.strip() else ""
    if first_line:
        console.print(f"  [dim]{first_line}[/dim]", highlight=False)


@main.command()
@click.argument("events_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def correlate(ctx: click.Context, events_file: str) -> None:
    """Explain assertion failures with the HTTP exchange behind them."""
    config = _load_config(ctx).correlation.with_env()
    verbose = ctx.obj.get("verbose", False)

    text = Path(events_file).read_text(encoding="utf-8", errors="replace")
    stream = parse_bridge_text(text, marker=config.marker)
    if verbose:
        console.print(
            f"[dim]Parsed {len(stream.http)} HTTP events and "
            f"{len(stream.assertions)} assertion failures[/dim]"
        )

    if not stream.assertions:
        console.print("[yellow]No assertion failures found[/yellow]")
        return

    engine = HttpCorrelationEngine(config)
    matched = 0
    for failure in stream.assertions:
        if not _wants_http(failure, stream, config.window_ms):
            _print_failure(failure)
            continue

        hint = TestIdentity(
            test_path=failure.test_path,
            test_name=failure.test_name,
            title=failure.test_name,
        )
        result = engine.explain(failure, stream.http, hint)
        _print_failure(failure)

        event = result.event
        if event is not None:
            matched += 1
            label = summarize_url(event.method, event.url, event.route)
            outcome = (
                "[yellow]connection aborted[/yellow]"
                if event.is_abort
                else f"[bold]{event.status_code if event.status_code is not None else '?'}[/bold]"
            )
            duration = f" [dim]({event.duration_ms:g}ms)[/dim]" if event.duration_ms is not None else ""
            console.print(f"  HTTP: {label} [dim]->[/dim] {outcome}{duration}", highlight=False)
        elif result.message:
            console.print(f"  HTTP: [dim]{result.message}[/dim]")

    console.print(f"\n[bold]{matched}/{len(stream.assertions)}[/bold] failures matched an HTTP exchange")


if __name__ == "__main__":
    main()
