"""HTTP client for the workout API."""

import json
import time
from collections.abc import Iterable
from uuid import UUID

import httpx
from pydantic import AwareDatetime, BaseModel, ConfigDict, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..constants import DEFAULT_REQUEST_TIMEOUT, USER_ID_HEADER, WORKOUTS_ENDPOINT
from ..domain.entities import UserRecord, Workout
from ..domain.exceptions import ApiError, MalformedResponseError
from ..logging_utils import log_api_call

MAX_ERROR_BODY_LENGTH = 500


class WorkoutPayload(BaseModel):
    """Wire representation of a workout."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    workout_id: UUID
    user_id: UUID
    start_time: AwareDatetime
    end_time: AwareDatetime

    @classmethod
    def from_domain(cls, workout: Workout) -> "WorkoutPayload":
        return cls(
            workout_id=workout.workout_id,
            user_id=workout.user_id,
            start_time=workout.start_time,
            end_time=workout.end_time,
        )

    def to_domain(self) -> Workout:
        return Workout(
            workout_id=self.workout_id,
            user_id=self.user_id,
            start_time=self.start_time,
            end_time=self.end_time,
        )


workout_list_adapter: TypeAdapter[list[WorkoutPayload]] = TypeAdapter(
    list[WorkoutPayload]
)


def encode_workouts(workouts: Iterable[Workout]) -> bytes:
    """Serialize workouts to the JSON array body of an insert request."""
    return workout_list_adapter.dump_json(
        [WorkoutPayload.from_domain(w) for w in workouts]
    )


def decode_workouts(content: bytes | str) -> list[Workout]:
    """Parse a JSON array of workouts. Raises pydantic's ValidationError."""
    return [p.to_domain() for p in workout_list_adapter.validate_json(content)]


def auth_headers(user: UserRecord) -> dict[str, str]:
    return {
        USER_ID_HEADER: str(user.user_id),
        "Authorization": f"Bearer {user.private_key}",
    }


class WorkoutApiClient:
    """Synchronous client shared by all worker threads.

    ``httpx.Client`` is thread safe; the pool is sized to the number of
    workers so every worker can keep one connection alive.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_connections: int = 4,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url
        self.client = httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_connections,
            ),
            headers={
                "User-Agent": "fitstress",
                "Accept": "application/json",
            },
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        self.client.close()

    def build_list_request(self, user: UserRecord) -> httpx.Request:
        return self.client.build_request(
            "GET", WORKOUTS_ENDPOINT, headers=auth_headers(user)
        )

    def build_insert_request(
        self, user: UserRecord, workouts: Iterable[Workout]
    ) -> httpx.Request:
        return self.client.build_request(
            "POST",
            WORKOUTS_ENDPOINT,
            headers={**auth_headers(user), "Content-Type": "application/json"},
            content=encode_workouts(workouts),
        )

    def build_truncate_request(self) -> httpx.Request:
        return self.client.build_request("DELETE", WORKOUTS_ENDPOINT)

    def list_workouts(self, user: UserRecord) -> list[Workout]:
        """Fetch every workout the server holds for ``user``."""
        response = self._send("list_workouts", self.build_list_request(user), user)
        try:
            return decode_workouts(response.content)
        except (PydanticValidationError, ValueError) as e:
            raise MalformedResponseError(
                "list_workouts",
                f"undecodable response body: {e}",
                status_code=response.status_code,
                body=response.text[:MAX_ERROR_BODY_LENGTH],
                user_id=user.user_id,
            ) from e

    def insert_workouts(self, user: UserRecord, workouts: Iterable[Workout]) -> None:
        """Insert ``workouts`` for ``user``. Any non-2xx answer raises."""
        self._send(
            "insert_workouts", self.build_insert_request(user, workouts), user
        )

    def truncate_workouts(self) -> None:
        """Delete all workouts on the server."""
        self._send("truncate_workouts", self.build_truncate_request(), None)

    def _send(
        self, endpoint: str, request: httpx.Request, user: UserRecord | None
    ) -> httpx.Response:
        user_id = user.user_id if user else None
        start_time = time.perf_counter()
        try:
            response = self.client.send(request)
        except httpx.HTTPError as e:
            log_api_call(endpoint, None, user_id=user_id, error=str(e))
            raise ApiError(
                endpoint, f"transport error: {e}", user_id=user_id
            ) from e

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        log_api_call(endpoint, response.status_code, elapsed_ms, user_id=user_id)

        if not response.is_success:
            raise ApiError(
                endpoint,
                f"unexpected status {response.status_code}",
                status_code=response.status_code,
                body=response.text[:MAX_ERROR_BODY_LENGTH],
                user_id=user_id,
            )
        return response


def format_request(request: httpx.Request) -> str:
    """Render a request the way it goes over the wire, for humans."""
    lines = [f"{request.method} {request.url}"]
    lines.extend(f"{name}: {value}" for name, value in request.headers.items())
    body = request.content
    if body:
        lines.append("")
        lines.append(json.dumps(json.loads(body), indent=2))
    return "\n".join(lines)
