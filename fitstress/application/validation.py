"""Comparison of server workout lists against tracked state."""

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID

from ..domain.entities import Workout
from .user_state import ExpectedWorkouts


@dataclass(frozen=True)
class WorkoutDiff:
    """How a server result diverged from expectation.

    ``mismatched`` pairs (expected, actual) sharing a workout id but not
    content; those workouts are not repeated in ``missing``/``unexpected``.
    """

    missing: frozenset[Workout]
    unexpected: frozenset[Workout]
    duplicated: frozenset[Workout]
    mismatched: tuple[tuple[Workout, Workout], ...] = ()

    @property
    def ok(self) -> bool:
        return not (
            self.missing or self.unexpected or self.duplicated or self.mismatched
        )


def compare_workouts(
    expected: ExpectedWorkouts, actual: Sequence[Workout]
) -> WorkoutDiff:
    """Order independent comparison of ``actual`` against ``expected``."""
    counts = Counter(actual)
    duplicated = frozenset(w for w, n in counts.items() if n > 1)
    actual_set = frozenset(counts)

    missing = expected.missing(actual_set)
    unexpected = expected.unexpected(actual_set)

    missing_by_id: dict[UUID, Workout] = {w.workout_id: w for w in missing}
    mismatched = []
    for workout in sorted(unexpected, key=lambda w: str(w.workout_id)):
        original = missing_by_id.pop(workout.workout_id, None)
        if original is not None:
            mismatched.append((original, workout))
    mismatched_actual = {pair[1] for pair in mismatched}

    return WorkoutDiff(
        missing=frozenset(missing_by_id.values()),
        unexpected=unexpected - mismatched_actual,
        duplicated=duplicated,
        mismatched=tuple(mismatched),
    )
