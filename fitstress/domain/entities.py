"""Pure domain entities without infrastructure dependencies."""

import random
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from uuid import UUID
from zoneinfo import ZoneInfo

from .constants import (
    WORKOUT_START_HOUR,
    WORKOUT_START_MINUTE,
    WORKOUT_TIMEZONE,
)
from .exceptions import ConfigurationError


@dataclass(frozen=True)
class Workout:
    """A single workout as stored by the API.

    Instances are immutable and compare by value, so sets of workouts can be
    compared directly against what the server returns.
    """

    workout_id: UUID
    user_id: UUID
    start_time: datetime
    end_time: datetime

    def __post_init__(self):
        if self.end_time < self.start_time:
            raise ValueError(
                f"Workout {self.workout_id} ends before it starts "
                + f"({self.end_time} < {self.start_time})"
            )


@dataclass(frozen=True)
class WorkoutTemplate:
    """Example workout a user's synthetic writes are derived from."""

    date: date
    duration_minutes: int

    def __post_init__(self):
        if self.duration_minutes < 0:
            raise ValueError("Workout duration cannot be negative")

    def start_time(self, offset_days: int = 0) -> datetime:
        """UTC start of the workout, 06:30 local time ``offset_days`` later."""
        local_start = datetime.combine(
            self.date + timedelta(days=offset_days),
            time(WORKOUT_START_HOUR, WORKOUT_START_MINUTE),
            tzinfo=ZoneInfo(WORKOUT_TIMEZONE),
        )
        return local_start.astimezone(UTC)

    def build(self, user_id: UUID, sequence: int = 0) -> Workout:
        """Create a new workout for ``user_id``.

        ``sequence`` shifts the start date so every generated workout of a
        user is distinct in content, not only in id.
        """
        start = self.start_time(sequence)
        return Workout(
            workout_id=uuid.uuid4(),
            user_id=user_id,
            start_time=start,
            end_time=start + timedelta(minutes=self.duration_minutes),
        )


@dataclass(frozen=True)
class UserRecord:
    """A simulated user and the credentials used to act on its behalf."""

    user_id: UUID
    email: str
    private_key: str
    engagement_weight: float
    workout_template: WorkoutTemplate

    def __post_init__(self):
        if not self.engagement_weight > 0:
            raise ConfigurationError(
                f"User {self.user_id} has non-positive engagement weight "
                + f"{self.engagement_weight}"
            )


def draw_engagement_weight(
    rng: random.Random, mean: float, stddev: float, minimum: float
) -> float:
    """Draw an engagement weight from a normal distribution, clamped positive."""
    return max(rng.gauss(mean, stddev), minimum)
