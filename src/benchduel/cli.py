"""Command-line interface for benchduel.

One command, two modes:

- master (default): runs a worker subprocess per system, then prints
  each system's detail tables and the comparison.
- ``--worker``: runs one system's workload in-process and reports steps
  on stdout.  Started by the master; not meant to be typed by hand.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click
import yaml

from benchduel import __version__
from benchduel.logging import setup_logging

EXIT_WORKER_FAILED = 2


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__)
@click.option(
    "--profile",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML run profile.",
)
@click.option("--baseline", default=None, help="Baseline system id [default: sqlite].")
@click.option("--candidate", default=None, help="Candidate system id [default: memory].")
@click.option("--iterations", type=int, default=None, help="Iterations per system [default: 3].")
@click.option(
    "--user-count", type=int, default=None, help="Users generated per iteration [default: 10000]."
)
@click.option("--seed", type=int, default=None, help="Random seed [default: 101].")
@click.option("--timeout", type=float, default=None, help="Per-worker timeout in seconds.")
@click.option(
    "--work-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for workload files (default: a temporary directory).",
)
@click.option("-v", "--verbose", is_flag=True, help="Show detailed output.")
@click.option("-q", "--quiet", is_flag=True, help="Only show errors.")
@click.option("--log-file", type=click.Path(path_type=Path), default=None)
# Worker mode.
@click.option("--worker", is_flag=True, hidden=True)
@click.option("--test-type", default="performance", hidden=True)
@click.option("--system", default=None, hidden=True)
@click.option("--workload", default=None, hidden=True)
def main(
    profile: Path | None,
    baseline: str | None,
    candidate: str | None,
    iterations: int | None,
    user_count: int | None,
    seed: int | None,
    timeout: float | None,
    work_dir: Path | None,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
    worker: bool,
    test_type: str,
    system: str | None,
    workload: str | None,
) -> None:
    """benchduel: compare two systems running the same workload."""
    if worker:
        if not system:
            raise click.UsageError("--worker requires --system")
        # Workers only surface problems; stdout is reserved for protocol lines.
        setup_logging(verbose=verbose, quiet=not verbose, log_file=log_file, worker=system)
        _run_worker_mode(
            system=system,
            test_type=test_type,
            iterations=iterations if iterations is not None else 3,
            seed=seed if seed is not None else 101,
            user_count=user_count if user_count is not None else 10_000,
            workload=workload,
            work_dir=work_dir,
        )
        return

    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)

    from benchduel.bench.config import config_from_profile, load_profile
    from benchduel.bench.runner import BenchRunner, WorkerFailedError

    overrides = {
        "baseline": baseline,
        "candidate": candidate,
        "iterations": iterations,
        "user_count": user_count,
        "seed": seed,
        "timeout": timeout,
        "work_dir": work_dir,
    }

    try:
        profile_data = load_profile(profile) if profile is not None else {}
        config = config_from_profile(profile_data, cli_overrides=overrides)
    except (ValueError, FileNotFoundError) as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    except yaml.YAMLError as exc:
        click.echo(f"Error: could not read profile: {exc}", err=True)
        raise SystemExit(1) from exc

    if len(config.systems) == 2:
        from benchduel.bench.display import format_run_banner

        click.echo(format_run_banner(config))

    runner = BenchRunner(config)
    try:
        results = runner.run()
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    except WorkerFailedError as exc:
        click.echo(f"Error: {exc}", err=True)
        if exc.output:
            click.echo(exc.output, err=True)
        raise SystemExit(EXIT_WORKER_FAILED) from exc
    except KeyboardInterrupt:
        click.echo("\nBenchmark interrupted.", err=True)
        raise SystemExit(130)  # noqa: B904

    _print_results(config.baseline.name, config.candidate.name, results)


def _run_worker_mode(
    *,
    system: str,
    test_type: str,
    iterations: int,
    seed: int,
    user_count: int,
    workload: str | None,
    work_dir: Path | None,
) -> None:
    from benchduel.bench.worker import run_worker

    code = run_worker(
        system,
        iterations,
        test_type=test_type,
        workload_spec=workload,
        seed=seed,
        user_count=user_count,
        work_dir=work_dir,
    )
    sys.exit(code)


def _print_results(baseline: str, candidate: str, results: dict) -> None:
    from benchduel.bench.compare import compare
    from benchduel.bench.display import format_comparison, format_summary, format_system_header
    from benchduel.bench.stats import aggregate

    summaries = {}
    for name in (baseline, candidate):
        result = results[name]
        summaries[name] = aggregate(result.steps, name=name)
        click.echo(format_system_header(name, result))
        click.echo(format_summary(summaries[name]))

    report = compare(summaries[baseline], summaries[candidate])
    click.echo(format_comparison(report))
