"""Reading and writing the users and workout-template CSV files."""

import base64
import csv
import itertools
import random
import secrets
import string
import uuid
from collections.abc import Sequence
from datetime import date, datetime
from pathlib import Path
from typing import TypeVar
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..domain.constants import (
    EMAIL_DOMAIN,
    EMAIL_LOCAL_PART_LENGTH,
    ENGAGEMENT_MEAN,
    ENGAGEMENT_STDDEV,
    MIN_ENGAGEMENT,
    PRIVATE_KEY_BYTES,
)
from ..domain.entities import UserRecord, WorkoutTemplate, draw_engagement_weight
from ..domain.exceptions import ConfigurationError
from ..logging_config import get_logger

logger = get_logger(__name__)

USERS_CSV_FIELDS = ("user_id", "email", "private_key", "engagement")
DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y")

RowT = TypeVar("RowT", bound=BaseModel)


class UsersCsvRow(BaseModel):
    user_id: UUID
    email: str
    private_key: str = Field(min_length=1)
    engagement: float | None = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("engagement", "engagement_weight"),
    )

    @field_validator("engagement", mode="before")
    @classmethod
    def blank_is_missing(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class EmailsCsvRow(BaseModel):
    email: str = Field(
        min_length=1,
        validation_alias=AliasChoices("Email", "email", "Email Address"),
    )

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v


class WorkoutsCsvRow(BaseModel):
    email: str = Field(validation_alias=AliasChoices("Email Address", "email"))
    dt: date = Field(validation_alias=AliasChoices("Workout Date", "dt", "date"))
    duration_minutes: int = Field(
        ge=0,
        validation_alias=AliasChoices("Workout Duration", "duration_minutes"),
    )

    @field_validator("dt", mode="before")
    @classmethod
    def parse_date(cls, v):
        if isinstance(v, str):
            for fmt in DATE_FORMATS:
                try:
                    return datetime.strptime(v.strip(), fmt).date()
                except ValueError:
                    continue
        return v

    @field_validator("duration_minutes", mode="before")
    @classmethod
    def parse_duration(cls, v):
        # exports sometimes write whole minutes as "45.0"
        if isinstance(v, str) and v.strip():
            return int(float(v))
        return v

    def template(self) -> WorkoutTemplate:
        return WorkoutTemplate(date=self.dt, duration_minutes=self.duration_minutes)


def _read_rows(path: Path, model: type[RowT]) -> list[RowT]:
    try:
        with path.open(newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            rows = []
            # header is line 1
            for line_no, raw in enumerate(reader, start=2):
                try:
                    rows.append(model.model_validate(raw))
                except PydanticValidationError as e:
                    raise ConfigurationError(
                        f"{path}:{line_no}: invalid row: {e}"
                    ) from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e
    return rows


def load_workout_templates(path: Path) -> list[WorkoutsCsvRow]:
    """Load the example workouts. An empty file is a configuration error."""
    rows = _read_rows(path, WorkoutsCsvRow)
    if not rows:
        raise ConfigurationError(f"No workouts in {path}")
    logger.info("Loaded workout templates", path=str(path), rows=len(rows))
    return rows


def load_emails(path: Path) -> list[str]:
    """Load the user emails of an export, first occurrence wins."""
    seen: set[str] = set()
    emails = []
    for row in _read_rows(path, EmailsCsvRow):
        if row.email.lower() not in seen:
            seen.add(row.email.lower())
            emails.append(row.email)
    if not emails:
        raise ConfigurationError(f"No emails in {path}")
    logger.info("Loaded emails", path=str(path), emails=len(emails))
    return emails


def assign_templates(
    emails: Sequence[str], workouts: Sequence[WorkoutsCsvRow]
) -> list[WorkoutTemplate]:
    """Pick a template per user.

    A user whose email appears in the workout file gets its first workout
    there; everyone else cycles through all rows in file order.
    """
    by_email: dict[str, WorkoutTemplate] = {}
    for row in workouts:
        by_email.setdefault(row.email.lower(), row.template())
    cycle = itertools.cycle([row.template() for row in workouts])
    return [by_email.get(email.lower()) or next(cycle) for email in emails]


def load_users(
    users_path: Path,
    workouts_path: Path,
    rng: random.Random | None = None,
    engagement_mean: float = ENGAGEMENT_MEAN,
    engagement_stddev: float = ENGAGEMENT_STDDEV,
    min_engagement: float = MIN_ENGAGEMENT,
) -> list[UserRecord]:
    """Build user records from the users CSV and the workout templates.

    Rows without an engagement column get a freshly drawn weight.
    """
    rng = rng or random.Random()
    rows = _read_rows(users_path, UsersCsvRow)
    if not rows:
        raise ConfigurationError(f"No users in {users_path}")
    templates = assign_templates(
        [row.email for row in rows], load_workout_templates(workouts_path)
    )

    users = []
    drawn = 0
    for row, template in zip(rows, templates, strict=True):
        weight = row.engagement
        if weight is None:
            weight = draw_engagement_weight(
                rng, engagement_mean, engagement_stddev, min_engagement
            )
            drawn += 1
        users.append(
            UserRecord(
                user_id=row.user_id,
                email=row.email,
                private_key=row.private_key,
                engagement_weight=weight,
                workout_template=template,
            )
        )

    logger.info(
        "Loaded users", path=str(users_path), users=len(users), weights_drawn=drawn
    )
    return users


def write_users(path: Path, users: Sequence[UserRecord]) -> None:
    """Write users in the format ``load_users`` reads."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(USERS_CSV_FIELDS)
        for user in users:
            writer.writerow(
                [
                    user.user_id,
                    user.email,
                    user.private_key,
                    repr(user.engagement_weight),
                ]
            )
    logger.info("Wrote users", path=str(path), users=len(users))


def generate_random_emails(n: int, rng: random.Random | None = None) -> list[str]:
    """Generate ``n`` distinct addresses from shuffled 8-letter combinations."""
    rng = rng or random.Random()
    letters = list(string.ascii_letters)
    rng.shuffle(letters)
    return [
        f"{''.join(combo)}@{EMAIL_DOMAIN}"
        for combo in itertools.islice(
            itertools.combinations(letters, EMAIL_LOCAL_PART_LENGTH), n
        )
    ]


def generate_private_key() -> str:
    return base64.b64encode(secrets.token_bytes(PRIVATE_KEY_BYTES)).decode("ascii")


def generate_users_from_emails(
    emails: Sequence[str],
    workouts: Sequence[WorkoutsCsvRow],
    rng: random.Random | None = None,
    engagement_mean: float = ENGAGEMENT_MEAN,
    engagement_stddev: float = ENGAGEMENT_STDDEV,
    min_engagement: float = MIN_ENGAGEMENT,
) -> list[UserRecord]:
    """Create a user with a fresh id, key and engagement weight per email."""
    if not emails:
        raise ConfigurationError("Need at least one user")
    if not workouts:
        raise ConfigurationError("Need at least one workout template")
    rng = rng or random.Random()
    templates = assign_templates(emails, workouts)
    return [
        UserRecord(
            user_id=uuid.uuid4(),
            email=email,
            private_key=generate_private_key(),
            engagement_weight=draw_engagement_weight(
                rng, engagement_mean, engagement_stddev, min_engagement
            ),
            workout_template=template,
        )
        for email, template in zip(emails, templates, strict=True)
    ]


def generate_random_users(
    n: int,
    workouts: Sequence[WorkoutsCsvRow],
    rng: random.Random | None = None,
    engagement_mean: float = ENGAGEMENT_MEAN,
    engagement_stddev: float = ENGAGEMENT_STDDEV,
    min_engagement: float = MIN_ENGAGEMENT,
) -> list[UserRecord]:
    """Create ``n`` users with random ``@fitbod.me`` emails."""
    if n < 1:
        raise ConfigurationError("Need at least one user")
    rng = rng or random.Random()
    return generate_users_from_emails(
        generate_random_emails(n, rng),
        workouts,
        rng,
        engagement_mean,
        engagement_stddev,
        min_engagement,
    )
