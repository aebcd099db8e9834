import json
import logging
import random
import threading
import uuid
from collections import Counter, defaultdict
from datetime import date
from pathlib import Path
from uuid import UUID

import httpx
import pytest
import structlog

from fitstress.application.registry import UserRegistry
from fitstress.constants import USER_ID_HEADER, WORKOUTS_ENDPOINT
from fitstress.domain.entities import UserRecord, WorkoutTemplate
from fitstress.infrastructure.api_client import WorkoutApiClient

TEST_BASE_URL = "http://testserver"


@pytest.fixture(autouse=True, scope="session")
def quiet_logging():
    """Keep structlog output to warnings and never cache stdout handles."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()


class FakeWorkoutServer:
    """In-memory workout API, served through ``httpx.MockTransport``.

    Inserts are upserts keyed by workout id, like a duplicate-tolerant
    server. Knobs let tests make it misbehave.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.workouts: dict[str, dict[str, dict]] = defaultdict(dict)
        self.requests: Counter[str] = Counter()
        # endpoint method -> status code to answer with instead of working
        self.fail_with: dict[str, int] = {}
        # answer inserts with success without storing anything
        self.drop_writes = False
        # body to answer list requests with, verbatim
        self.list_body: bytes | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path != WORKOUTS_ENDPOINT:
            return httpx.Response(404, json={"detail": "not found"})
        with self._lock:
            self.requests[request.method] += 1
        if request.method in self.fail_with:
            return httpx.Response(
                self.fail_with[request.method], json={"detail": "injected failure"}
            )

        if request.method == "DELETE":
            with self._lock:
                self.workouts.clear()
            return httpx.Response(204)

        user_id = request.headers.get(USER_ID_HEADER)
        if not user_id or not request.headers.get("authorization", "").startswith(
            "Bearer "
        ):
            return httpx.Response(401, json={"detail": "missing credentials"})

        if request.method == "GET":
            if self.list_body is not None:
                return httpx.Response(200, content=self.list_body)
            with self._lock:
                body = list(self.workouts[user_id].values())
            return httpx.Response(200, json=body)

        if request.method == "POST":
            payload = json.loads(request.content)
            if any(w["user_id"] != user_id for w in payload):
                return httpx.Response(403, json={"detail": "foreign workout"})
            if not self.drop_writes:
                with self._lock:
                    for workout in payload:
                        self.workouts[user_id][workout["workout_id"]] = workout
            return httpx.Response(201, json=payload)

        return httpx.Response(405)

    def stored(self, user_id: UUID) -> list[dict]:
        with self._lock:
            return list(self.workouts[str(user_id)].values())

    def store_raw(self, user_id: UUID, workout: dict) -> None:
        with self._lock:
            self.workouts[str(user_id)][workout["workout_id"]] = workout

    def remove(self, user_id: UUID, workout_id: UUID) -> None:
        with self._lock:
            del self.workouts[str(user_id)][str(workout_id)]

    def total_stored(self) -> int:
        with self._lock:
            return sum(len(w) for w in self.workouts.values())

    def client(self, **kwargs) -> WorkoutApiClient:
        return WorkoutApiClient(
            TEST_BASE_URL, transport=httpx.MockTransport(self.handler), **kwargs
        )


@pytest.fixture
def fake_server() -> FakeWorkoutServer:
    return FakeWorkoutServer()


@pytest.fixture
def api_client(fake_server: FakeWorkoutServer):
    client = fake_server.client(max_connections=8)
    yield client
    client.close()


@pytest.fixture
def template() -> WorkoutTemplate:
    return WorkoutTemplate(date=date(2021, 3, 1), duration_minutes=45)


@pytest.fixture
def make_user(template: WorkoutTemplate):
    def _make_user(weight: float = 1.0, email: str | None = None) -> UserRecord:
        user_id = uuid.uuid4()
        return UserRecord(
            user_id=user_id,
            email=email or f"{user_id.hex[:8]}@fitbod.me",
            private_key="dGVzdC1rZXk=",
            engagement_weight=weight,
            workout_template=template,
        )

    return _make_user


@pytest.fixture
def users(make_user) -> list[UserRecord]:
    return [make_user(weight) for weight in (0.5, 1.0, 1.5, 2.0, 3.0)]


@pytest.fixture
def registry(users: list[UserRecord]) -> UserRegistry:
    return UserRegistry(users, random.Random(42))


@pytest.fixture
def workouts_csv(tmp_path: Path) -> Path:
    path = tmp_path / "workout.csv"
    path.write_text(
        "Email Address,Workout Date,Workout Duration\n"
        "alice@example.com,2021-03-01,45\n"
        "bob@example.com,03/02/2021,30.0\n"
        "alice@example.com,2021-03-04,60\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def users_csv(tmp_path: Path) -> Path:
    path = tmp_path / "users.csv"
    path.write_text(
        "user_id,email,private_key,engagement\n"
        "6f1c1f9e-5a1e-4d7e-9a55-0d1d1b1f0a01,alice@example.com,a2V5LWE=,2.5\n"
        "6f1c1f9e-5a1e-4d7e-9a55-0d1d1b1f0a02,bob@example.com,a2V5LWI=,\n"
        "6f1c1f9e-5a1e-4d7e-9a55-0d1d1b1f0a03,carol@example.com,a2V5LWM=,0.75\n",
        encoding="utf-8",
    )
    return path
