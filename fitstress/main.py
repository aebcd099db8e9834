#!/usr/bin/env python3
"""fitstress command line interface"""

import random
import signal
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console

from .application.job_generator import JobGenerator
from .application.orchestrator import WorkOrchestrator
from .application.registry import UserRegistry
from .config import Settings, settings
from .domain.entities import Workout
from .domain.exceptions import ConfigurationError, ConsistencyError, StressTestError
from .infrastructure.api_client import WorkoutApiClient, format_request
from .infrastructure.csv_store import (
    generate_random_users,
    generate_users_from_emails,
    load_emails,
    load_users,
    load_workout_templates,
    write_users,
)
from .logging_config import get_logger, setup_logging
from .presentation.report import render_consistency, render_failure, render_stats

console = Console(force_terminal=True)
logger = get_logger(__name__)

STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)

app = typer.Typer(
    name="fitstress",
    help="""Workout API stress and correctness tester

    Examples:
      fitstress generate-users 1000          - write var/random-users.csv
      fitstress stress-test                  - run until Ctrl-C, then validate
      fitstress stress-test -j 16 --read-only
      fitstress print-example-requests       - show what requests look like
      fitstress load-example-workouts        - insert var/workout.csv rows
    """,
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


def _run_settings(**overrides) -> Settings:
    try:
        return Settings(**{k: v for k, v in overrides.items() if v is not None})
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e


@contextmanager
def _stop_on_signals(orchestrator: WorkOrchestrator) -> Iterator[None]:
    """Turn SIGINT/SIGTERM into a drain; a second signal acts as usual."""
    previous = {}

    def handler(signum, frame):
        orchestrator.stop_on_signal(signum)
        signal.signal(signum, previous[signum])

    for sig in STOP_SIGNALS:
        previous[sig] = signal.signal(sig, handler)
    try:
        yield
    finally:
        for sig, old_handler in previous.items():
            signal.signal(sig, old_handler)


def _fail(error: Exception) -> typer.Exit:
    render_failure(console, error)
    return typer.Exit(code=1)


@app.command("stress-test")
def stress_test(
    read_only: bool = typer.Option(
        settings.read_only, "--read-only", help="Only read, never validate"
    ),
    batch_size: int = typer.Option(
        settings.batch_size, "--batch-size", min=1, help="Users sampled per batch"
    ),
    n_threads: int = typer.Option(
        settings.n_threads, "--n-threads", "-j", min=1, help="Worker threads"
    ),
    connect: str = typer.Option(
        settings.connect, "--connect", "-c", help="host:port of the API"
    ),
    users_csv_path: Path = typer.Option(
        settings.users_csv_path, "--users-csv-path", "-u", help="Users CSV"
    ),
    workouts_csv_path: Path = typer.Option(
        settings.workouts_csv_path, "--workouts-csv-path", "-w", help="Workout CSV"
    ),
    max_batches: int | None = typer.Option(
        settings.max_batches, "--max-batches", min=1, help="Stop after N batches"
    ),
    seed: int | None = typer.Option(settings.seed, "--seed", help="Random seed"),
    log_level: str | None = typer.Option(None, "--log-level", help="Log level"),
) -> None:
    """Drive weighted read/write traffic and validate every read"""
    setup_logging(log_level)
    try:
        run_settings = _run_settings(
            read_only=read_only,
            batch_size=batch_size,
            n_threads=n_threads,
            connect=connect,
            users_csv_path=users_csv_path,
            workouts_csv_path=workouts_csv_path,
            max_batches=max_batches,
            seed=seed,
        )
        rng = random.Random(run_settings.seed)
        registry = UserRegistry(
            load_users(
                run_settings.users_csv_path,
                run_settings.workouts_csv_path,
                rng,
                run_settings.engagement_mean,
                run_settings.engagement_stddev,
                run_settings.min_engagement,
            ),
            rng,
        )
    except ConfigurationError as e:
        raise _fail(e) from e

    generator = JobGenerator(
        registry,
        rng,
        read_only=run_settings.read_only,
        read_fraction=run_settings.read_fraction,
        write_batch_size=run_settings.write_batch_size,
        rewrite_count=run_settings.rewrite_count,
    )

    console.print(
        f"🚀 {len(registry)} users | {run_settings.n_threads} threads | "
        + f"batch {run_settings.batch_size} | {run_settings.base_url}"
        + (" | read-only" if run_settings.read_only else "")
    )

    with WorkoutApiClient(
        run_settings.base_url,
        timeout=run_settings.request_timeout,
        max_connections=run_settings.n_threads,
    ) as client:
        orchestrator = WorkOrchestrator(
            client,
            registry,
            generator,
            n_threads=run_settings.n_threads,
            batch_size=run_settings.batch_size,
            read_only=run_settings.read_only,
            max_batches=run_settings.max_batches,
            progress_interval=run_settings.progress_interval,
        )
        with _stop_on_signals(orchestrator):
            try:
                result = orchestrator.run()
            except ConsistencyError as e:
                render_stats(console, orchestrator.stats.snapshot())
                render_consistency(console, e.report)
                raise _fail(e) from e
            except Exception as e:
                render_stats(console, orchestrator.stats.snapshot())
                raise _fail(e) from e

    render_stats(console, result.stats)
    if result.consistency is not None:
        render_consistency(console, result.consistency)


@app.command("generate-users")
def generate_users(
    count: int | None = typer.Argument(
        None, min=1, help="Number of users, or a cap on --emails-csv"
    ),
    output_path: Path = typer.Option(
        settings.users_csv_path, "--output", "-o", help="Where to write the CSV"
    ),
    workouts_csv_path: Path = typer.Option(
        settings.workouts_csv_path, "--workouts-csv-path", "-w", help="Workout CSV"
    ),
    emails_csv_path: Path | None = typer.Option(
        None, "--emails-csv", "-e", help="CSV with an Email column"
    ),
    seed: int | None = typer.Option(settings.seed, "--seed", help="Random seed"),
) -> None:
    """Generate users with engagement weights, from random or given emails"""
    setup_logging()
    rng = random.Random(seed)
    engagement = (
        settings.engagement_mean,
        settings.engagement_stddev,
        settings.min_engagement,
    )
    try:
        workouts = load_workout_templates(workouts_csv_path)
        if emails_csv_path is not None:
            emails = load_emails(emails_csv_path)[:count]
            users = generate_users_from_emails(emails, workouts, rng, *engagement)
        elif count is not None:
            users = generate_random_users(count, workouts, rng, *engagement)
        else:
            raise ConfigurationError("Give a user COUNT or --emails-csv")
    except ConfigurationError as e:
        raise _fail(e) from e
    write_users(output_path, users)
    console.print(f"✅ Wrote {len(users)} users to {output_path}", style="green")


@app.command("print-example-requests")
def print_example_requests(
    connect: str = typer.Option(
        settings.connect, "--connect", "-c", help="host:port of the API"
    ),
    users_csv_path: Path = typer.Option(
        settings.users_csv_path, "--users-csv-path", "-u", help="Users CSV"
    ),
    workouts_csv_path: Path = typer.Option(
        settings.workouts_csv_path, "--workouts-csv-path", "-w", help="Workout CSV"
    ),
) -> None:
    """Print the requests the stress test sends, for the first user"""
    setup_logging("WARNING")
    try:
        run_settings = _run_settings(connect=connect)
        registry = UserRegistry(load_users(users_csv_path, workouts_csv_path))
    except ConfigurationError as e:
        raise _fail(e) from e

    state = registry.at(0)
    job = JobGenerator(
        registry,
        write_batch_size=run_settings.write_batch_size,
        rewrite_count=run_settings.rewrite_count,
    ).make_write(state.user_id)
    with WorkoutApiClient(run_settings.base_url) as client:
        for title, request in (
            ("List workouts", client.build_list_request(state.user)),
            ("Insert workouts", client.build_insert_request(state.user, job.workouts)),
            ("Truncate workouts", client.build_truncate_request()),
        ):
            console.rule(title)
            console.print(format_request(request), markup=False, highlight=False)


@app.command("load-example-workouts")
def load_example_workouts(
    connect: str = typer.Option(
        settings.connect, "--connect", "-c", help="host:port of the API"
    ),
    users_csv_path: Path = typer.Option(
        settings.users_csv_path, "--users-csv-path", "-u", help="Users CSV"
    ),
    workouts_csv_path: Path = typer.Option(
        settings.workouts_csv_path, "--workouts-csv-path", "-w", help="Workout CSV"
    ),
) -> None:
    """Insert every workout of the workout CSV for the user with that email"""
    setup_logging()
    try:
        run_settings = _run_settings(connect=connect)
        users = {
            user.email.lower(): user
            for user in load_users(users_csv_path, workouts_csv_path)
        }
        rows = load_workout_templates(workouts_csv_path)
    except ConfigurationError as e:
        raise _fail(e) from e

    by_user: dict[str, list[Workout]] = {}
    skipped = 0
    for row in rows:
        user = users.get(row.email.lower())
        if user is None:
            skipped += 1
            continue
        by_user.setdefault(user.email.lower(), []).append(
            row.template().build(user.user_id)
        )

    inserted = 0
    with WorkoutApiClient(run_settings.base_url) as client:
        for email, workouts in by_user.items():
            try:
                client.insert_workouts(users[email], workouts)
            except StressTestError as e:
                raise _fail(e) from e
            inserted += len(workouts)

    logger.info(
        "Example workouts loaded",
        users=len(by_user),
        workouts=inserted,
        skipped_rows=skipped,
    )
    console.print(
        f"✅ Inserted {inserted} workouts for {len(by_user)} users "
        + f"({skipped} rows without a matching user)",
        style="green",
    )


def main():
    """Main entry point for the fitstress CLI."""
    app()


if __name__ == "__main__":
    app()
