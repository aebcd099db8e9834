"""Units of work handed from the manager to the worker pool."""

from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID

from .entities import Workout


class JobKind(StrEnum):
    READ = "read"
    WRITE = "write"


@dataclass(frozen=True)
class ReadJob:
    """List a user's workouts and compare them with the tracked state."""

    user_id: UUID

    kind = JobKind.READ


@dataclass(frozen=True)
class WriteJob:
    """Insert workouts for a user.

    ``existing`` are workouts already known to be stored and are re-sent to
    exercise duplicate-tolerant inserts; ``fresh`` are new ones.
    """

    user_id: UUID
    existing: tuple[Workout, ...]
    fresh: tuple[Workout, ...]

    kind = JobKind.WRITE

    @property
    def workouts(self) -> tuple[Workout, ...]:
        """The full request payload."""
        return self.existing + self.fresh


Job = ReadJob | WriteJob
