import random
import uuid
from collections import Counter

import pytest

from fitstress.application.registry import UserRegistry
from fitstress.domain.entities import UserRecord, draw_engagement_weight
from fitstress.domain.exceptions import ConfigurationError

# chi-square critical value for 2 degrees of freedom at p = 0.001
CHI_SQUARE_CRITICAL_DF2 = 13.816


def test_sampling_follows_engagement_weights(make_user):
    """Weights [1, 1, 2] should split 10,000 draws roughly 25/25/50."""
    users = [make_user(1.0), make_user(1.0), make_user(2.0)]
    registry = UserRegistry(users, random.Random(1234))

    draws = 10_000
    counts = Counter(registry.sample(draws))

    expected = {u.user_id: draws * u.engagement_weight / 4.0 for u in users}
    chi_square = sum(
        (counts[user_id] - exp) ** 2 / exp for user_id, exp in expected.items()
    )
    assert chi_square < CHI_SQUARE_CRITICAL_DF2

    for user in users:
        share = counts[user.user_id] / draws
        assert share == pytest.approx(user.engagement_weight / 4.0, abs=0.02)


def test_sample_with_replacement_exceeds_population(registry: UserRegistry):
    batch = registry.sample(len(registry) * 10)

    assert len(batch) == len(registry) * 10
    assert set(batch) <= {state.user_id for state in registry}


def test_sample_zero(registry: UserRegistry):
    assert registry.sample(0) == []


def test_empty_population_is_configuration_error():
    with pytest.raises(ConfigurationError, match="empty"):
        UserRegistry([])


def test_duplicate_user_ids_rejected(make_user):
    user = make_user()
    with pytest.raises(ConfigurationError, match="Duplicate"):
        UserRegistry([user, user])


def test_arena_lookup(registry: UserRegistry, users):
    for index, user in enumerate(users):
        state = registry.get(user.user_id)
        assert state.index == index
        assert registry.at(index) is state
        assert user.user_id in registry
        assert state.known_count() == 0

    with pytest.raises(KeyError):
        registry.get(uuid.uuid4())


def test_total_weight(registry: UserRegistry, users):
    assert registry.total_weight == pytest.approx(
        sum(u.engagement_weight for u in users)
    )


def test_non_positive_weight_rejected(template):
    with pytest.raises(ConfigurationError):
        UserRecord(
            user_id=uuid.uuid4(),
            email="x@fitbod.me",
            private_key="key",
            engagement_weight=0.0,
            workout_template=template,
        )


def test_engagement_weight_is_clamped_positive():
    rng = random.Random(7)
    weights = [draw_engagement_weight(rng, -5.0, 0.1, 0.01) for _ in range(100)]

    assert all(w == 0.01 for w in weights)


def test_engagement_weight_follows_normal_distribution():
    rng = random.Random(7)
    weights = [draw_engagement_weight(rng, 10.0, 1.0, 0.01) for _ in range(5_000)]

    assert sum(weights) / len(weights) == pytest.approx(10.0, abs=0.1)
