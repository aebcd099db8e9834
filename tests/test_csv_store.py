import random
from datetime import date
from pathlib import Path
from uuid import UUID

import pytest

from fitstress.domain.entities import WorkoutTemplate
from fitstress.domain.exceptions import ConfigurationError
from fitstress.infrastructure.csv_store import (
    assign_templates,
    generate_random_emails,
    generate_random_users,
    generate_users_from_emails,
    load_emails,
    load_users,
    load_workout_templates,
    write_users,
)


def test_load_workout_templates_with_export_headers(workouts_csv: Path):
    rows = load_workout_templates(workouts_csv)

    assert [row.email for row in rows] == [
        "alice@example.com",
        "bob@example.com",
        "alice@example.com",
    ]
    assert rows[1].dt == date(2021, 3, 2)
    assert rows[1].duration_minutes == 30


def test_load_users(users_csv: Path, workouts_csv: Path):
    users = load_users(users_csv, workouts_csv, random.Random(0))

    assert [u.email for u in users] == [
        "alice@example.com",
        "bob@example.com",
        "carol@example.com",
    ]
    assert users[0].user_id == UUID("6f1c1f9e-5a1e-4d7e-9a55-0d1d1b1f0a01")
    assert users[0].engagement_weight == 2.5
    assert users[2].engagement_weight == 0.75
    # blank engagement is drawn
    assert users[1].engagement_weight > 0


def test_users_get_their_own_template(users_csv: Path, workouts_csv: Path):
    users = load_users(users_csv, workouts_csv)

    assert users[0].workout_template == WorkoutTemplate(date(2021, 3, 1), 45)
    assert users[1].workout_template == WorkoutTemplate(date(2021, 3, 2), 30)
    # carol has no workouts and takes the first template in file order
    assert users[2].workout_template == WorkoutTemplate(date(2021, 3, 1), 45)


def test_assign_templates_cycles_for_unknown_emails(workouts_csv: Path):
    rows = load_workout_templates(workouts_csv)

    templates = assign_templates(["x@a", "y@a", "z@a", "w@a"], rows)

    assert [t.date.day for t in templates] == [1, 2, 4, 1]


def test_written_users_load_back(tmp_path: Path, workouts_csv: Path):
    rows = load_workout_templates(workouts_csv)
    users = generate_random_users(20, rows, random.Random(3))
    path = tmp_path / "out" / "users.csv"

    write_users(path, users)
    loaded = load_users(path, workouts_csv)

    assert [(u.user_id, u.email, u.private_key) for u in loaded] == [
        (u.user_id, u.email, u.private_key) for u in users
    ]
    assert [u.engagement_weight for u in loaded] == [
        u.engagement_weight for u in users
    ]


def test_random_emails_are_distinct():
    emails = generate_random_emails(500, random.Random(1))

    assert len(set(emails)) == 500
    assert all(e.endswith("@fitbod.me") and len(e.split("@")[0]) == 8 for e in emails)


def test_random_users_have_positive_weights(workouts_csv: Path):
    users = generate_random_users(
        200, load_workout_templates(workouts_csv), random.Random(9)
    )

    assert all(u.engagement_weight > 0 for u in users)
    assert len({u.private_key for u in users}) == 200


def test_missing_file_is_configuration_error(tmp_path: Path, workouts_csv: Path):
    with pytest.raises(ConfigurationError, match="Cannot read"):
        load_users(tmp_path / "nope.csv", workouts_csv)


def test_empty_users_file_is_configuration_error(tmp_path: Path, workouts_csv: Path):
    path = tmp_path / "users.csv"
    path.write_text("user_id,email,private_key,engagement\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="No users"):
        load_users(path, workouts_csv)


def test_bad_row_names_its_line(tmp_path: Path, workouts_csv: Path):
    path = tmp_path / "users.csv"
    path.write_text(
        "user_id,email,private_key,engagement\n"
        "6f1c1f9e-5a1e-4d7e-9a55-0d1d1b1f0a01,a@example.com,a2V5,1.0\n"
        "not-a-uuid,b@example.com,a2V5,1.0\n",
        encoding="utf-8",
    )

    with pytest.raises(ConfigurationError, match=r"users\.csv:3"):
        load_users(path, workouts_csv)


def test_negative_engagement_rejected(tmp_path: Path, workouts_csv: Path):
    path = tmp_path / "users.csv"
    path.write_text(
        "user_id,email,private_key,engagement\n"
        "6f1c1f9e-5a1e-4d7e-9a55-0d1d1b1f0a01,a@example.com,a2V5,-1.0\n",
        encoding="utf-8",
    )

    with pytest.raises(ConfigurationError):
        load_users(path, workouts_csv)


def test_generate_zero_users_rejected(workouts_csv: Path):
    with pytest.raises(ConfigurationError):
        generate_random_users(0, load_workout_templates(workouts_csv))


def test_load_emails_dedupes_case_insensitively(tmp_path: Path):
    path = tmp_path / "user.csv"
    path.write_text(
        "Email,Name\nalice@example.com,Alice\n Bob@example.com ,Bob\n"
        "ALICE@example.com,Alice again\n",
        encoding="utf-8",
    )

    assert load_emails(path) == ["alice@example.com", "Bob@example.com"]


def test_load_emails_empty_file_is_configuration_error(tmp_path: Path):
    path = tmp_path / "user.csv"
    path.write_text("Email\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="No emails"):
        load_emails(path)


def test_users_from_emails_match_their_workouts(workouts_csv: Path):
    rows = load_workout_templates(workouts_csv)

    users = generate_users_from_emails(
        ["bob@example.com", "alice@example.com"], rows, random.Random(4)
    )

    assert [u.email for u in users] == ["bob@example.com", "alice@example.com"]
    assert users[0].workout_template == WorkoutTemplate(date(2021, 3, 2), 30)
    assert users[1].workout_template == WorkoutTemplate(date(2021, 3, 1), 45)
    assert len({u.user_id for u in users}) == 2
