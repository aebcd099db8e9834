"""The simulated user population and weighted sampling over it."""

import bisect
import itertools
import random
from collections.abc import Iterable, Iterator, Sequence
from uuid import UUID

from ..domain.entities import UserRecord
from ..domain.exceptions import ConfigurationError
from ..logging_config import get_logger
from .user_state import UserState

logger = get_logger(__name__)


class UserRegistry:
    """All user states plus a prefix-sum index over engagement weights.

    States live in an arena indexed by a stable integer. Weights are fixed for
    the run, so the cumulative array is built once and sampling reads it
    without locking.
    """

    def __init__(self, users: Iterable[UserRecord], rng: random.Random | None = None):
        self._states: tuple[UserState, ...] = tuple(
            UserState(index, user) for index, user in enumerate(users)
        )
        if not self._states:
            raise ConfigurationError("Cannot run with an empty user population")

        self._by_id: dict[UUID, int] = {}
        for state in self._states:
            if state.user_id in self._by_id:
                raise ConfigurationError(f"Duplicate user id {state.user_id}")
            self._by_id[state.user_id] = state.index

        self._cumulative: tuple[float, ...] = tuple(
            itertools.accumulate(state.engagement_weight for state in self._states)
        )
        self._total_weight = self._cumulative[-1]
        self._rng = rng or random.Random()

        logger.info(
            "User registry built",
            users=len(self._states),
            total_weight=round(self._total_weight, 3),
        )

    @property
    def total_weight(self) -> float:
        return self._total_weight

    def sample_index(self) -> int:
        """Draw one arena index with probability proportional to its weight."""
        point = self._rng.random() * self._total_weight
        index = bisect.bisect_right(self._cumulative, point)
        # guards the float edge case where point rounds up to the total
        return min(index, len(self._cumulative) - 1)

    def sample(self, batch_size: int) -> list[UUID]:
        """Sample ``batch_size`` user ids independently, with replacement."""
        if batch_size < 0:
            raise ValueError("batch_size cannot be negative")
        return [self._states[self.sample_index()].user_id for _ in range(batch_size)]

    def get(self, user_id: UUID) -> UserState:
        try:
            return self._states[self._by_id[user_id]]
        except KeyError:
            raise KeyError(f"Unknown user {user_id}") from None

    def at(self, index: int) -> UserState:
        return self._states[index]

    @property
    def states(self) -> Sequence[UserState]:
        return self._states

    def __iter__(self) -> Iterator[UserState]:
        return iter(self._states)

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._by_id
