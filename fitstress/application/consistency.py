"""Final comparison of every user's server data against tracked state."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from uuid import UUID

from ..infrastructure.api_client import WorkoutApiClient
from ..logging_config import get_logger
from ..logging_utils import log_validation_failure
from .registry import UserRegistry
from .user_state import ExpectedWorkouts, UserState
from .validation import WorkoutDiff, compare_workouts

logger = get_logger(__name__)


@dataclass(frozen=True)
class UserDiscrepancy:
    user_id: UUID
    expected_count: int
    actual_count: int
    diff: WorkoutDiff


@dataclass
class ConsistencyReport:
    users_checked: int = 0
    workouts_checked: int = 0
    discrepancies: list[UserDiscrepancy] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.discrepancies


class ConsistencyChecker:
    """Re-reads every user once and compares with the final known state.

    Runs after the worker pool has drained, so no writes are pending and the
    comparison is exact.
    """

    def __init__(
        self, client: WorkoutApiClient, registry: UserRegistry, n_threads: int = 1
    ):
        self.client = client
        self.registry = registry
        self.n_threads = max(n_threads, 1)

    def check_user(self, state: UserState) -> UserDiscrepancy | None:
        known = state.known()
        actual = self.client.list_workouts(state.user)
        diff = compare_workouts(ExpectedWorkouts(known, known), actual)
        if diff.ok:
            return None
        log_validation_failure(
            state.user_id,
            "consistency",
            missing=len(diff.missing),
            unexpected=len(diff.unexpected),
            duplicated=len(diff.duplicated),
            mismatched=len(diff.mismatched),
        )
        return UserDiscrepancy(state.user_id, len(known), len(actual), diff)

    def run(self) -> ConsistencyReport:
        logger.info(
            "Running final consistency check",
            users=len(self.registry),
            threads=self.n_threads,
        )
        report = ConsistencyReport()
        with ThreadPoolExecutor(
            max_workers=self.n_threads, thread_name_prefix="consistency"
        ) as pool:
            # map() re-raises the first API error when its result is reached
            for state, discrepancy in zip(
                self.registry,
                pool.map(self.check_user, self.registry),
                strict=True,
            ):
                report.users_checked += 1
                report.workouts_checked += state.known_count()
                if discrepancy is not None:
                    report.discrepancies.append(discrepancy)

        logger.info(
            "Consistency check finished",
            users_checked=report.users_checked,
            workouts_checked=report.workouts_checked,
            discrepancies=len(report.discrepancies),
        )
        return report
