"""Console rendering of run results."""

from collections.abc import Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..application.consistency import ConsistencyReport
from ..application.stats import StatsSnapshot
from ..domain.entities import Workout
from ..domain.exceptions import ApiError, ValidationMismatchError

# Cap on workouts listed per category in a diagnostic
MAX_LISTED = 5


def render_stats(console: Console, snapshot: StatsSnapshot) -> None:
    table = Table(title="📊 Stress test results")
    table.add_column("Job")
    table.add_column("Count", justify="right")
    table.add_column("Avg ms", justify="right")
    table.add_column("Min ms", justify="right")
    table.add_column("Max ms", justify="right")

    for kind, stats in sorted(snapshot.jobs.items()):
        table.add_row(
            kind,
            str(stats.count),
            f"{stats.avg_ms:.1f}",
            f"{stats.min_ms or 0.0:.1f}",
            f"{stats.max_ms:.1f}",
        )
    console.print(table)
    console.print(
        f"🏁 {snapshot.batches} batches, {snapshot.total_jobs} jobs in "
        + f"{snapshot.elapsed_s:.1f}s ({snapshot.throughput:.1f} jobs/s), "
        + f"{snapshot.workouts_written} workouts written, "
        + f"{snapshot.reads_validated} reads validated"
    )


def render_consistency(console: Console, report: ConsistencyReport) -> None:
    if report.ok:
        console.print(
            f"✅ Consistency check passed: {report.users_checked} users, "
            + f"{report.workouts_checked} workouts"
        )
        return

    table = Table(title="❌ Consistency discrepancies")
    table.add_column("User")
    table.add_column("Expected", justify="right")
    table.add_column("Actual", justify="right")
    table.add_column("Missing", justify="right")
    table.add_column("Unexpected", justify="right")
    table.add_column("Duplicated", justify="right")
    table.add_column("Mismatched", justify="right")
    for d in report.discrepancies:
        table.add_row(
            str(d.user_id),
            str(d.expected_count),
            str(d.actual_count),
            str(len(d.diff.missing)),
            str(len(d.diff.unexpected)),
            str(len(d.diff.duplicated)),
            str(len(d.diff.mismatched)),
        )
    console.print(table)
    for d in report.discrepancies:
        console.print(f"   user {d.user_id}:", markup=False)
        _render_divergence(
            console,
            missing=sorted(d.diff.missing, key=_by_id),
            unexpected=sorted(d.diff.unexpected, key=_by_id),
            duplicated=sorted(d.diff.duplicated, key=_by_id),
            mismatched=d.diff.mismatched,
        )


def render_failure(console: Console, error: Exception) -> None:
    """Print a diagnostic naming the user, endpoint and divergence."""
    console.print(
        f"[bold red]💥 {type(error).__name__}:[/bold red] {escape(str(error))}"
    )
    if isinstance(error, ApiError):
        if error.status_code is not None:
            console.print(f"   status: {error.status_code}")
        if error.body:
            console.print(f"   body: {error.body}", markup=False)
    elif isinstance(error, ValidationMismatchError):
        _render_divergence(
            console,
            missing=error.missing,
            unexpected=error.unexpected,
            duplicated=error.duplicated,
            mismatched=error.mismatched,
        )


def _by_id(workout: Workout) -> str:
    return str(workout.workout_id)


def _render_divergence(
    console: Console,
    missing: Sequence[object],
    unexpected: Sequence[object],
    duplicated: Sequence[object],
    mismatched: Sequence,
) -> None:
    for label, workouts in (
        ("missing", missing),
        ("unexpected", unexpected),
        ("duplicated", duplicated),
    ):
        for workout in workouts[:MAX_LISTED]:
            console.print(f"   {label}: {workout}", markup=False)
    for expected, actual in mismatched[:MAX_LISTED]:
        console.print(f"   expected: {expected}", markup=False)
        console.print(f"   actual:   {actual}", markup=False)
