from pathlib import Path
from typing import Final

from pydantic import Field, computed_field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_CONNECT,
    DEFAULT_N_THREADS,
    DEFAULT_PROGRESS_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_USERS_CSV_PATH,
    DEFAULT_WORKOUTS_CSV_PATH,
)
from .domain.constants import (
    ENGAGEMENT_MEAN,
    ENGAGEMENT_STDDEV,
    MIN_ENGAGEMENT,
    READ_FRACTION,
    REWRITE_COUNT,
    WRITE_BATCH_SIZE,
)


class Settings(BaseSettings):
    """Stress test settings loaded from environment variables and .env files."""

    # Target server
    connect: str = Field(
        default=DEFAULT_CONNECT, description="host:port of the workout API"
    )
    request_timeout: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT, gt=0, description="HTTP timeout in seconds"
    )

    # Run shape
    batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE, ge=1, description="Users sampled per batch"
    )
    n_threads: int = Field(
        default=DEFAULT_N_THREADS, ge=1, description="Number of worker threads"
    )
    read_only: bool = Field(
        default=False, description="Only issue reads and skip all validation"
    )
    max_batches: int | None = Field(
        default=None, ge=1, description="Stop by itself after this many batches"
    )
    seed: int | None = Field(default=None, description="Seed for sampling and jobs")
    progress_interval: int = Field(
        default=DEFAULT_PROGRESS_INTERVAL,
        ge=1,
        description="Log progress every N batches",
    )

    # Input files
    users_csv_path: Path = Field(
        default=Path(DEFAULT_USERS_CSV_PATH), description="Users CSV file"
    )
    workouts_csv_path: Path = Field(
        default=Path(DEFAULT_WORKOUTS_CSV_PATH), description="Workout template CSV"
    )

    # Workload mix
    read_fraction: float = Field(
        default=READ_FRACTION, ge=0.0, le=1.0, description="Share of read jobs"
    )
    write_batch_size: int = Field(
        default=WRITE_BATCH_SIZE, ge=1, description="Workouts sent per write job"
    )
    rewrite_count: int = Field(
        default=REWRITE_COUNT,
        ge=0,
        description="Previously written workouts re-sent per write job",
    )

    # Engagement weight distribution
    engagement_mean: float = Field(default=ENGAGEMENT_MEAN)
    engagement_stddev: float = Field(default=ENGAGEMENT_STDDEV, ge=0.0)
    min_engagement: float = Field(default=MIN_ENGAGEMENT, gt=0.0)

    # Logging configuration
    debug: bool = Field(default=False, description="Enable debug output")
    log_level: str | None = Field(default=None, description="Override the log level")
    log_to_file: bool = Field(default=False, description="Also log to logs/")

    model_config = SettingsConfigDict(
        env_prefix="FITSTRESS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("connect")
    @classmethod
    def validate_connect(cls, v: str) -> str:
        """Accept host:port with an optional scheme."""
        address = v.split("://", 1)[-1]
        host, sep, port = address.rpartition(":")
        if not sep or not host or not port.isdigit():
            raise ValueError(f"Expected host:port, got {v!r}")
        return v

    @model_validator(mode="after")
    def validate_write_mix(self) -> "Settings":
        if self.rewrite_count >= self.write_batch_size:
            raise ValueError(
                "rewrite_count must be smaller than write_batch_size "
                + f"({self.rewrite_count} >= {self.write_batch_size})"
            )
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def base_url(self) -> str:
        """Base URL of the workout API derived from ``connect``."""
        if "://" in self.connect:
            return self.connect
        return f"http://{self.connect}"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def fresh_per_write(self) -> int:
        """Number of new workouts in a write job for a user with history."""
        return self.write_batch_size - self.rewrite_count


# Global settings instance
settings: Final = Settings()
