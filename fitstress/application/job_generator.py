"""Turns sampled users into read or write jobs."""

import random
from uuid import UUID

from ..domain.constants import READ_FRACTION, REWRITE_COUNT, WRITE_BATCH_SIZE
from ..domain.jobs import Job, ReadJob, WriteJob
from .registry import UserRegistry


class JobGenerator:
    """Decides the job for a sampled user and builds its payload.

    A user that has never written gets ``write_batch_size`` fresh workouts.
    Afterwards every write re-sends the ``rewrite_count`` most recently known
    workouts and tops the payload up with fresh ones.
    """

    def __init__(
        self,
        registry: UserRegistry,
        rng: random.Random | None = None,
        read_only: bool = False,
        read_fraction: float = READ_FRACTION,
        write_batch_size: int = WRITE_BATCH_SIZE,
        rewrite_count: int = REWRITE_COUNT,
    ):
        if not 0 <= rewrite_count < write_batch_size:
            raise ValueError("rewrite_count must be in [0, write_batch_size)")
        self.registry = registry
        self.read_only = read_only
        self.read_fraction = read_fraction
        self.write_batch_size = write_batch_size
        self.rewrite_count = rewrite_count
        self._rng = rng or random.Random()

    def make_job(self, user_id: UUID) -> Job:
        # Always consume the draw so seeded runs stay comparable across modes
        draw = self._rng.random()
        if self.read_only or draw < self.read_fraction:
            return ReadJob(user_id)
        return self.make_write(user_id)

    def make_write(self, user_id: UUID) -> WriteJob:
        state = self.registry.get(user_id)
        existing = state.most_recent(self.rewrite_count)
        # Fewer than rewrite_count known workouts still yields a full payload
        n_fresh = self.write_batch_size - len(existing)
        template = state.user.workout_template
        fresh = tuple(
            template.build(user_id, sequence)
            for sequence in state.allocate_sequence(n_fresh)
        )
        return WriteJob(user_id=user_id, existing=existing, fresh=fresh)
