import pytest

from ticket_cache.services import is_fresh, remaining_ttl

TTL = 300.0
T0 = 1_700_000_000.0


@pytest.mark.parametrize(
    "age, expected",
    [
        (0.0, True),
        (60.0, True),
        (299.999, True),
        (300.0, False),
        (360.0, False),
    ],
)
def test_is_fresh_by_age(age: float, expected: bool):
    assert is_fresh(T0, T0 + age, TTL) is expected


def test_future_timestamp_from_clock_skew_is_fresh():
    assert is_fresh(T0 + 3600, T0, TTL) is True


def test_per_key_ttl_override_is_honoured():
    assert is_fresh(T0, T0 + 30, 10) is False
    assert is_fresh(T0, T0 + 30, 60) is True


def test_remaining_ttl_counts_down_and_clamps():
    assert remaining_ttl(T0, T0 + 60, TTL) == pytest.approx(240.0)
    assert remaining_ttl(T0, T0 + 600, TTL) == 0.0
    # Skewed entry never reports more than a full lifetime
    assert remaining_ttl(T0 + 100, T0, TTL) == pytest.approx(TTL)
