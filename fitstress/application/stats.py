"""Thread-safe counters for a stress run."""

import threading
import time
from dataclasses import dataclass, field


@dataclass
class JobStats:
    """Aggregated results for one job kind."""

    count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0
    min_ms: float | None = None

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0

    def add(self, elapsed_ms: float) -> None:
        self.count += 1
        self.total_ms += elapsed_ms
        self.max_ms = max(self.max_ms, elapsed_ms)
        if self.min_ms is None or elapsed_ms < self.min_ms:
            self.min_ms = elapsed_ms


@dataclass
class StatsSnapshot:
    elapsed_s: float
    batches: int
    jobs: dict[str, JobStats]
    workouts_written: int
    reads_validated: int

    @property
    def total_jobs(self) -> int:
        return sum(s.count for s in self.jobs.values())

    @property
    def throughput(self) -> float:
        return self.total_jobs / self.elapsed_s if self.elapsed_s > 0 else 0.0


@dataclass
class RunStats:
    """Counters updated by the manager and every worker."""

    started_at: float = field(default_factory=time.monotonic)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _jobs: dict[str, JobStats] = field(default_factory=dict)
    _batches: int = 0
    _workouts_written: int = 0
    _reads_validated: int = 0

    def record_job(self, kind: str, elapsed_ms: float) -> None:
        with self._lock:
            self._jobs.setdefault(kind, JobStats()).add(elapsed_ms)

    def record_batch(self) -> int:
        with self._lock:
            self._batches += 1
            return self._batches

    def record_written(self, n: int) -> None:
        with self._lock:
            self._workouts_written += n

    def record_validated(self) -> None:
        with self._lock:
            self._reads_validated += 1

    @property
    def batches(self) -> int:
        with self._lock:
            return self._batches

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            return StatsSnapshot(
                elapsed_s=time.monotonic() - self.started_at,
                batches=self._batches,
                jobs={
                    kind: JobStats(s.count, s.total_ms, s.max_ms, s.min_ms)
                    for kind, s in self._jobs.items()
                },
                workouts_written=self._workouts_written,
                reads_validated=self._reads_validated,
            )
