import logging
from typing import Any
from uuid import UUID

from .logging_config import get_logger

api_logger = get_logger("api")
validation_logger = get_logger("validation")
run_logger = get_logger("run")


def log_api_call(
    endpoint: str,
    status_code: int | None,
    elapsed_ms: float | None = None,
    user_id: UUID | None = None,
    **kwargs: Any,
) -> None:
    """Log a workout API call with consistent fields.

    Successful calls are logged at DEBUG since a run issues thousands of
    them per second.

    Args:
        endpoint: Logical endpoint name (e.g., 'list_workouts')
        status_code: HTTP status code, None when the request never completed
        elapsed_ms: Round trip time in milliseconds
        user_id: User the call was made for
        **kwargs: Additional context data
    """
    log_data: dict[str, Any] = {"endpoint": endpoint, "status_code": status_code}
    if user_id is not None:
        log_data["user_id"] = str(user_id)
    if elapsed_ms is not None:
        log_data["elapsed_ms"] = round(elapsed_ms, 2)
    log_data.update(kwargs)

    # Different log levels based on status code
    if status_code is None or status_code >= 500:
        log_level = logging.ERROR
    elif status_code >= 300:
        log_level = logging.WARNING
    else:
        log_level = logging.DEBUG

    api_logger.log(log_level, f"{endpoint} -> {status_code}", **log_data)


def log_validation_failure(
    user_id: UUID,
    source: str,
    missing: int,
    unexpected: int,
    duplicated: int = 0,
    **kwargs: Any,
) -> None:
    """Log a divergence between server data and tracked state.

    Args:
        user_id: User whose workouts diverged
        source: Where the divergence was found ('read_job' or 'consistency')
        missing: Tracked workouts absent from the server
        unexpected: Server workouts that were never written
        duplicated: Workouts the server returned more than once
        **kwargs: Additional context data
    """
    validation_logger.error(
        f"Validation failed for user {user_id}",
        user_id=str(user_id),
        source=source,
        missing=missing,
        unexpected=unexpected,
        duplicated=duplicated,
        **kwargs,
    )


def log_run_phase(phase: str, **kwargs: Any) -> None:
    """Log a run state machine transition.

    Args:
        phase: Phase being entered
        **kwargs: Additional context data
    """
    run_logger.info(f"Entering {phase}", phase=phase, **kwargs)
