"""Manager loop and worker pool of a stress run."""

import queue
import signal
import threading
from dataclasses import dataclass
from enum import StrEnum

from ..domain.exceptions import ConsistencyError
from ..domain.jobs import Job
from ..infrastructure.api_client import WorkoutApiClient
from ..logging_config import get_logger
from ..logging_utils import log_run_phase
from .consistency import ConsistencyChecker, ConsistencyReport
from .executor import JobExecutor
from .job_generator import JobGenerator
from .registry import UserRegistry
from .stats import RunStats, StatsSnapshot

logger = get_logger(__name__)

# How often a blocked manager re-checks for a stop request
PUT_POLL_INTERVAL = 0.1

_STOP_WORKER = object()


class RunPhase(StrEnum):
    INITIALIZING = "initializing"
    RUNNING = "running"
    DRAINING = "draining"
    FINISHED = "finished"


@dataclass(frozen=True)
class RunResult:
    stats: StatsSnapshot
    consistency: ConsistencyReport | None


class WorkOrchestrator:
    """Samples batches of users and feeds their jobs to a worker pool.

    The manager runs in the thread calling ``run()``. Batches pace submission
    through the bounded queue only; there is no completion barrier between
    them. ``request_stop()`` may be called from any thread, and
    ``stop_on_signal()`` from a signal handler: no batch is sampled
    afterwards and queued jobs are finished.
    The first worker error also stops the run, discards the remaining jobs
    and is re-raised from ``run()``.
    """

    def __init__(
        self,
        client: WorkoutApiClient,
        registry: UserRegistry,
        generator: JobGenerator,
        n_threads: int,
        batch_size: int,
        read_only: bool = False,
        max_batches: int | None = None,
        progress_interval: int = 100,
        stats: RunStats | None = None,
    ):
        if n_threads < 1:
            raise ValueError("n_threads must be positive")
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.client = client
        self.registry = registry
        self.generator = generator
        self.n_threads = n_threads
        self.batch_size = batch_size
        self.read_only = read_only
        self.max_batches = max_batches
        self.progress_interval = progress_interval
        self.stats = stats or RunStats()
        self.executor = JobExecutor(client, registry, self.stats, read_only)

        self.phase = RunPhase.INITIALIZING
        self._queue: queue.Queue[object] = queue.Queue(maxsize=batch_size)
        self._stop = threading.Event()
        self._stop_signal: int | None = None
        self._failure: Exception | None = None
        self._failure_lock = threading.Lock()
        self._workers: list[threading.Thread] = []

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    @property
    def stop_signal(self) -> int | None:
        return self._stop_signal

    @property
    def failure(self) -> Exception | None:
        return self._failure

    def request_stop(self) -> None:
        """Stop sampling new batches and drain what was dispatched."""
        if not self._stop.is_set():
            logger.info("Stop requested", phase=str(self.phase))
        self._stop.set()

    def stop_on_signal(self, signum: int) -> None:
        """Like ``request_stop()`` but safe inside a signal handler: no logging."""
        self._stop_signal = signum
        self._stop.set()

    def run(self) -> RunResult:
        self._set_phase(RunPhase.INITIALIZING)
        if self.read_only:
            logger.info("Read-only mode: leaving server data untouched")
        else:
            self.client.truncate_workouts()
        self._start_workers()

        self._set_phase(RunPhase.RUNNING)
        try:
            self._produce()
        finally:
            if self._stop_signal is not None:
                logger.warning(
                    "Signal received, draining",
                    signal=signal.Signals(self._stop_signal).name,
                )
            self._set_phase(RunPhase.DRAINING)
            self._drain()

        if self._failure is not None:
            raise self._failure

        report = None
        if not self.read_only:
            checker = ConsistencyChecker(self.client, self.registry, self.n_threads)
            report = checker.run()
        self._set_phase(RunPhase.FINISHED)

        if report is not None and not report.ok:
            raise ConsistencyError(report)
        return RunResult(self.stats.snapshot(), report)

    def _set_phase(self, phase: RunPhase) -> None:
        self.phase = phase
        log_run_phase(str(phase), batches=self.stats.batches)

    def _start_workers(self) -> None:
        for i in range(self.n_threads):
            worker = threading.Thread(
                target=self._work, name=f"worker-{i}", daemon=True
            )
            worker.start()
            self._workers.append(worker)

    def _produce(self) -> None:
        while not self._stop.is_set():
            if self.max_batches is not None and self.stats.batches >= self.max_batches:
                logger.info("Batch limit reached", max_batches=self.max_batches)
                return

            batch = self.registry.sample(self.batch_size)
            batch_no = self.stats.record_batch()
            for user_id in batch:
                if not self._dispatch(self.generator.make_job(user_id)):
                    return

            if batch_no % self.progress_interval == 0:
                self._log_progress()

    def _dispatch(self, job: Job) -> bool:
        """Block until the job is queued. False if the run stopped meanwhile."""
        while not self._stop.is_set():
            try:
                self._queue.put(job, timeout=PUT_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def _work(self) -> None:
        while True:
            job = self._queue.get()
            try:
                if job is _STOP_WORKER:
                    return
                if self._failure is not None:
                    continue
                try:
                    self.executor.execute(job)  # type: ignore[arg-type]
                except Exception as e:
                    self._fail(e)
            finally:
                self._queue.task_done()

    def _fail(self, error: Exception) -> None:
        with self._failure_lock:
            if self._failure is not None:
                return
            self._failure = error
        logger.error(
            "Worker failed, stopping run",
            error=str(error),
            error_type=type(error).__name__,
        )
        self._stop.set()

    def _drain(self) -> None:
        logger.info(
            "Waiting for dispatched jobs",
            queued=self._queue.qsize(),
            workers=len(self._workers),
        )
        for _ in self._workers:
            self._queue.put(_STOP_WORKER)
        for worker in self._workers:
            worker.join()
        self._workers.clear()

    def _log_progress(self) -> None:
        snapshot = self.stats.snapshot()
        logger.info(
            "Progress",
            batches=snapshot.batches,
            jobs=snapshot.total_jobs,
            workouts_written=snapshot.workouts_written,
            reads_validated=snapshot.reads_validated,
            jobs_per_s=round(snapshot.throughput, 1),
            queued=self._queue.qsize(),
        )
