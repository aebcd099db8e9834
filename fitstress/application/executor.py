"""Executes a single job against the API and applies it to the tracked state."""

import time

from ..domain.exceptions import ValidationMismatchError
from ..domain.jobs import Job, ReadJob, WriteJob
from ..infrastructure.api_client import WorkoutApiClient
from ..logging_config import get_logger
from ..logging_utils import log_validation_failure
from .registry import UserRegistry
from .stats import RunStats
from .validation import compare_workouts

logger = get_logger(__name__)


class JobExecutor:
    """Runs jobs synchronously, one HTTP round trip each.

    Locks are only taken around state access, never across the HTTP call.
    Every error propagates to the caller.
    """

    def __init__(
        self,
        client: WorkoutApiClient,
        registry: UserRegistry,
        stats: RunStats,
        read_only: bool = False,
    ):
        self.client = client
        self.registry = registry
        self.stats = stats
        self.read_only = read_only

    def execute(self, job: Job) -> None:
        start_time = time.perf_counter()
        if isinstance(job, ReadJob):
            self.execute_read(job)
        else:
            self.execute_write(job)
        self.stats.record_job(job.kind, (time.perf_counter() - start_time) * 1000)

    def execute_read(self, job: ReadJob) -> None:
        state = self.registry.get(job.user_id)
        if self.read_only:
            self.client.list_workouts(state.user)
            return

        # Anything known before the request must be on the server; anything
        # pending once the response arrives may be
        required = state.known()
        actual = self.client.list_workouts(state.user)
        expected = state.expected_after(required)

        diff = compare_workouts(expected, actual)
        if not diff.ok:
            log_validation_failure(
                job.user_id,
                "read_job",
                missing=len(diff.missing),
                unexpected=len(diff.unexpected),
                duplicated=len(diff.duplicated),
                mismatched=len(diff.mismatched),
                returned=len(actual),
                required=len(expected.required),
                allowed=len(expected.allowed),
            )
            raise ValidationMismatchError(
                job.user_id,
                diff.missing,
                diff.unexpected,
                diff.duplicated,
                diff.mismatched,
            )
        self.stats.record_validated()

    def execute_write(self, job: WriteJob) -> None:
        if self.read_only:
            raise RuntimeError("Write job issued in read-only mode")
        state = self.registry.get(job.user_id)
        state.begin_write(job.fresh)
        self.client.insert_workouts(state.user, job.workouts)
        added = state.commit_write(job.workouts)
        self.stats.record_written(added)
        logger.debug(
            "Write committed",
            user_id=str(job.user_id),
            sent=len(job.workouts),
            added=added,
        )

