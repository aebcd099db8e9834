"""Tracked ground truth of what the server should hold for one user."""

from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from ..domain.entities import UserRecord, Workout
from .locking import ReadWriteLock


@dataclass(frozen=True)
class ExpectedWorkouts:
    """Bounds a read result must fall within.

    ``required`` were durably written before the read was issued;
    ``allowed`` additionally holds workouts of writes that may have landed
    while the read was in flight.
    """

    required: frozenset[Workout]
    allowed: frozenset[Workout]

    def missing(self, actual: frozenset[Workout]) -> frozenset[Workout]:
        return self.required - actual

    def unexpected(self, actual: frozenset[Workout]) -> frozenset[Workout]:
        return actual - self.allowed

    def matches(self, actual: frozenset[Workout]) -> bool:
        return self.required <= actual <= self.allowed


class UserState:
    """Workouts known to be stored for a user, guarded by a per-user lock.

    The known set only grows. Fresh workouts of a write are registered as
    pending before the insert is sent and become known once it succeeds.
    """

    def __init__(self, index: int, user: UserRecord, workouts: Iterable[Workout] = ()):
        self.index = index
        self.user = user
        self._lock = ReadWriteLock()
        # dicts keep insertion order, which the rewrite policy relies on
        self._known: dict[UUID, Workout] = {w.workout_id: w for w in workouts}
        self._pending: dict[UUID, Workout] = {}
        self._next_sequence = 0

    @property
    def user_id(self) -> UUID:
        return self.user.user_id

    @property
    def engagement_weight(self) -> float:
        return self.user.engagement_weight

    def known_count(self) -> int:
        with self._lock.read_locked():
            return len(self._known)

    def pending_count(self) -> int:
        with self._lock.read_locked():
            return len(self._pending)

    def known(self) -> frozenset[Workout]:
        with self._lock.read_locked():
            return frozenset(self._known.values())

    def most_recent(self, n: int) -> tuple[Workout, ...]:
        """The ``n`` most recently known workouts, oldest first."""
        if n <= 0:
            return ()
        with self._lock.read_locked():
            return tuple(self._known.values())[-n:]

    def allocate_sequence(self, n: int) -> range:
        """Reserve ``n`` sequence numbers for fresh workouts."""
        with self._lock.write_locked():
            start = self._next_sequence
            self._next_sequence += n
        return range(start, start + n)

    def begin_write(self, fresh: Iterable[Workout]) -> None:
        """Register workouts whose insert is about to be sent."""
        with self._lock.write_locked():
            for workout in fresh:
                self._check_owner(workout)
                self._pending[workout.workout_id] = workout

    def commit_write(self, workouts: Iterable[Workout]) -> int:
        """Record a successful insert. Returns the number of new workouts.

        Workouts that are already known are a no-op.
        """
        added = 0
        with self._lock.write_locked():
            for workout in workouts:
                self._check_owner(workout)
                self._pending.pop(workout.workout_id, None)
                if workout.workout_id not in self._known:
                    self._known[workout.workout_id] = workout
                    added += 1
        return added

    def expected_after(self, required: frozenset[Workout]) -> ExpectedWorkouts:
        """Close a read window opened by taking ``known()`` before the request."""
        with self._lock.read_locked():
            allowed = frozenset(self._known.values()) | frozenset(
                self._pending.values()
            )
        return ExpectedWorkouts(required=required, allowed=allowed)

    def _check_owner(self, workout: Workout) -> None:
        if workout.user_id != self.user_id:
            raise ValueError(
                f"Workout {workout.workout_id} belongs to {workout.user_id}, "
                + f"not {self.user_id}"
            )

    def __repr__(self) -> str:
        return f"UserState(index={self.index}, user_id={self.user_id})"
