"""Stress test exceptions.

Every error here is fatal for a run: the tool exists to surface server
defects, so nothing is retried or recovered locally.
"""

from collections.abc import Iterable
from uuid import UUID


class StressTestError(Exception):
    """Base exception for stress test failures."""

    pass


class ConfigurationError(StressTestError):
    """Raised for unusable input: empty population, unreadable CSVs."""

    pass


class ApiError(StressTestError):
    """Raised when the workout API answers with anything but success."""

    def __init__(
        self,
        endpoint: str,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
        user_id: UUID | None = None,
    ):
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body
        self.user_id = user_id
        detail = f"{endpoint}: {message}"
        if user_id is not None:
            detail += f" (user {user_id})"
        super().__init__(detail)


class MalformedResponseError(ApiError):
    """Raised when a success response body cannot be decoded."""

    pass


class ValidationMismatchError(StressTestError):
    """Raised when a read returns something other than the tracked state."""

    def __init__(
        self,
        user_id: UUID,
        missing: Iterable[object],
        unexpected: Iterable[object],
        duplicated: Iterable[object] = (),
        mismatched: Iterable[object] = (),
    ):
        self.user_id = user_id
        self.missing = sorted(missing, key=str)
        self.unexpected = sorted(unexpected, key=str)
        self.duplicated = sorted(duplicated, key=str)
        self.mismatched = list(mismatched)
        super().__init__(
            f"Read for user {user_id} diverged from tracked state: "
            + f"{len(self.missing)} missing, {len(self.unexpected)} unexpected, "
            + f"{len(self.duplicated)} duplicated, {len(self.mismatched)} mismatched"
        )


class ConsistencyError(StressTestError):
    """Raised when the final consistency pass finds discrepancies."""

    def __init__(self, report):
        self.report = report
        super().__init__(
            f"Final consistency check failed for {len(report.discrepancies)} "
            + f"of {report.users_checked} users"
        )
