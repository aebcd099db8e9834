import random
import threading
import uuid
from datetime import timedelta

import pytest

from fitstress.application.job_generator import JobGenerator
from fitstress.application.locking import ReadWriteLock
from fitstress.application.registry import UserRegistry
from fitstress.application.user_state import ExpectedWorkouts, UserState


def test_scripted_writes_accumulate_without_duplicates(make_user):
    """Writes of 15, 15 (10 overlap) and 15 (10 overlap) leave exactly 25."""
    user = make_user()
    registry = UserRegistry([user], random.Random(0))
    generator = JobGenerator(registry, random.Random(0), read_fraction=0.0)
    state = registry.get(user.user_id)

    first = generator.make_write(user.user_id)
    assert (len(first.existing), len(first.fresh)) == (0, 15)
    state.begin_write(first.fresh)
    assert state.commit_write(first.workouts) == 15

    second = generator.make_write(user.user_id)
    assert (len(second.existing), len(second.fresh)) == (10, 5)
    assert set(second.existing) <= state.known()
    state.begin_write(second.fresh)
    assert state.commit_write(second.workouts) == 5

    third = generator.make_write(user.user_id)
    assert (len(third.existing), len(third.fresh)) == (10, 5)
    state.begin_write(third.fresh)
    assert state.commit_write(third.workouts) == 5

    assert state.known_count() == 25
    assert state.pending_count() == 0
    assert state.known() == set(first.workouts) | set(second.fresh) | set(third.fresh)


def test_commit_is_idempotent(make_user, template):
    user = make_user()
    state = UserState(0, user)
    workouts = [template.build(user.user_id, i) for i in range(3)]

    assert state.commit_write(workouts) == 3
    assert state.commit_write(workouts) == 0
    assert state.known_count() == 3


def test_most_recent_keeps_insertion_order(make_user, template):
    user = make_user()
    workouts = [template.build(user.user_id, i) for i in range(12)]
    state = UserState(0, user, workouts)

    assert state.most_recent(10) == tuple(workouts[2:])
    assert state.most_recent(0) == ()
    assert state.most_recent(50) == tuple(workouts)


def test_sequence_numbers_never_repeat(make_user):
    state = UserState(0, make_user())

    assert list(state.allocate_sequence(3)) == [0, 1, 2]
    assert list(state.allocate_sequence(2)) == [3, 4]


def test_fresh_workouts_are_distinct_in_content(make_user, template):
    user = make_user()
    first = template.build(user.user_id, 0)
    second = template.build(user.user_id, 1)

    assert first.workout_id != second.workout_id
    assert second.start_time - first.start_time == timedelta(days=1)
    assert first.end_time - first.start_time == timedelta(minutes=45)


def test_workout_starts_at_half_past_six_pacific(make_user, template):
    workout = template.build(make_user().user_id)

    # 2021-03-01 is PST, UTC-8
    assert (workout.start_time.hour, workout.start_time.minute) == (14, 30)


def test_pending_writes_widen_expected_bounds(make_user, template):
    user = make_user()
    committed = template.build(user.user_id, 0)
    in_flight = template.build(user.user_id, 1)
    state = UserState(0, user, [committed])

    required = state.known()
    state.begin_write([in_flight])
    expected = state.expected_after(required)

    assert expected.matches(frozenset([committed]))
    assert expected.matches(frozenset([committed, in_flight]))
    assert not expected.matches(frozenset([in_flight]))


def test_quiescent_bounds_are_exact(make_user, template):
    user = make_user()
    workouts = [template.build(user.user_id, i) for i in range(2)]
    state = UserState(0, user, workouts)

    expected = state.expected_after(state.known())

    assert expected.required == expected.allowed == frozenset(workouts)
    assert isinstance(expected, ExpectedWorkouts)


def test_foreign_workout_rejected(make_user, template):
    state = UserState(0, make_user())
    foreign = template.build(uuid.uuid4())

    with pytest.raises(ValueError, match="belongs to"):
        state.commit_write([foreign])


def test_readers_share_the_lock():
    lock = ReadWriteLock()
    both_inside = threading.Barrier(2, timeout=5)

    def reader():
        with lock.read_locked():
            both_inside.wait()

    thread = threading.Thread(target=reader)
    thread.start()
    with lock.read_locked():
        both_inside.wait()
    thread.join(timeout=5)

    assert not thread.is_alive()


def test_writer_excludes_readers():
    lock = ReadWriteLock()
    acquired = threading.Event()

    def writer():
        with lock.write_locked():
            acquired.set()

    lock.acquire_read()
    thread = threading.Thread(target=writer)
    thread.start()
    assert not acquired.wait(0.2)

    lock.release_read()
    assert acquired.wait(5)
    thread.join(timeout=5)


def test_release_without_acquire_is_an_error():
    lock = ReadWriteLock()

    with pytest.raises(RuntimeError):
        lock.release_read()
    with pytest.raises(RuntimeError):
        lock.release_write()
