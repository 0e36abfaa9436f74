"""CLI entrypoint for running pickle documents."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from .console_reporter import ConsoleReporter
from .errors import ConfigurationError, RunAborted
from .filters import parse_feature_with_lines, read_rerun_file
from .loader import load_features
from .logging_utils import configure_logging
from .models import OrderStrategy, RuntimeOptions
from .output_config import get_output_format, log_format_for
from .rerun import RerunFormatter
from .runtime import Runtime
from .unused_steps import UnusedStepsReporter

app = typer.Typer(help="Select, order and execute pickle scenarios.")

EXIT_ABORTED = 130


def _expand_locations(entries: list[str]) -> tuple[list[Path], dict[str, frozenset[int]]]:
    locations: list[str] = []
    for entry in entries:
        if entry.startswith("@"):
            locations.extend(read_rerun_file(Path(entry[1:])))
        else:
            locations.append(entry)

    paths: list[Path] = []
    line_filters: dict[str, frozenset[int]] = {}
    for location in locations:
        uri, lines = parse_feature_with_lines(location)
        path = Path(uri)
        if path not in paths:
            paths.append(path)
        if lines:
            key = path.as_posix()
            line_filters[key] = line_filters.get(key, frozenset()) | lines
    return paths, line_filters


@app.command()
def run(
    locations: list[str] = typer.Argument(
        ...,
        help="Feature files or directories, optionally as path:line[:line], or @rerun.txt.",
    ),
    tags: list[str] = typer.Option(
        [],
        "--tags",
        "-t",
        help="Tag expression, e.g. '@smoke and not @slow'. Repeat to AND several.",
    ),
    name: list[str] = typer.Option(
        [],
        "--name",
        "-n",
        help="Regular expression matched against scenario names. Repeat to OR several.",
    ),
    limit: int = typer.Option(0, "--limit", min=0, help="Run at most this many scenarios (0 = all)."),
    threads: int = typer.Option(1, "--threads", min=1, help="Number of worker threads."),
    strict: bool = typer.Option(False, "--strict", help="Fail the run on pending or undefined steps."),
    wip: bool = typer.Option(False, "--wip", help="Fail the run if any scenario passes."),
    order: OrderStrategy = typer.Option(
        OrderStrategy.DECLARATION,
        "--order",
        case_sensitive=False,
        help="Scenario order: declaration, lexical, reverse or random.",
    ),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for --order random."),
    glue: list[str] = typer.Option([], "--glue", "-g", help="Module defining register_steps(registry)."),
    glue_path: list[Path] = typer.Option(
        [],
        "--glue-path",
        help="Directory prepended to sys.path before importing glue modules.",
    ),
    rerun_file: Optional[Path] = typer.Option(
        None,
        help="Write the locations of failed scenarios to this file.",
    ),
    unused_steps: bool = typer.Option(
        False,
        "--unused-steps",
        help="List step definitions that no step matched.",
    ),
    output_format: Optional[str] = typer.Option(
        None,
        "--output-format",
        help="auto (default), rich, plain or json. Falls back to PICKLE_OUTPUT_FORMAT.",
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level for runtime diagnostics."),
) -> None:
    """Run the selected scenarios and exit with the aggregated status."""

    fmt = get_output_format(output_format)
    logger = configure_logging(log_level, log_format_for(fmt))

    try:
        paths, line_filters = _expand_locations(locations)
        options = RuntimeOptions(
            tag_expressions=tags,
            name_patterns=name,
            line_filters=line_filters,
            limit=limit,
            threads=threads,
            strict=strict,
            wip=wip,
            order=order,
            seed=seed,
            glue=glue,
            glue_paths=[str(path) for path in glue_path],
        )
        plugins: list = [ConsoleReporter(fmt, strict=strict, wip=wip)]
        if rerun_file is not None:
            plugins.append(RerunFormatter(rerun_file, strict=strict))
        if unused_steps:
            plugins.append(UnusedStepsReporter(fmt))
        runtime = Runtime(options, plugins=plugins)
        features = load_features(paths)
    except (ConfigurationError, ValidationError) as exc:
        raise typer.BadParameter(str(exc)) from exc
    except (FileNotFoundError, ValueError) as exc:
        raise typer.BadParameter(f"Cannot load features: {exc}") from exc

    try:
        outcome = runtime.run(features)
    except RunAborted:
        raise typer.Exit(code=EXIT_ABORTED)

    if outcome.error is not None:
        logger.error("run_failed_with_errors", errors=len(outcome.errors), error=str(outcome.error))
    raise typer.Exit(code=runtime.exit_status())


def main() -> None:
    """Console_scripts hook."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
