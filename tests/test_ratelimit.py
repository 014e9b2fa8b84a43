"""Unit tests for auth/ratelimit.py -- RateLimiter over the limits library.

Window-expiry tests use a one-second policy and a short sleep: the memory
storage reads the wall clock, so real time has to pass.
"""

import time

import pytest

from auth.exceptions import RateLimited
from auth.ratelimit import AUTH, DEFAULT_POLICIES, GENERAL, RateLimiter


@pytest.fixture
def limiter() -> RateLimiter:
    return RateLimiter({GENERAL: "100 per 15 minutes", AUTH: "5 per 15 minutes"})


def test_default_policies() -> None:
    limiter = RateLimiter()
    assert limiter.policy(GENERAL).amount == 100
    assert limiter.policy(AUTH).amount == 5
    assert set(DEFAULT_POLICIES) == {GENERAL, AUTH}


def test_allows_up_to_limit_then_rejects(limiter: RateLimiter) -> None:
    decisions = [limiter.allow("1.2.3.4", AUTH) for _ in range(5)]
    assert all(d.allowed for d in decisions)
    assert [d.remaining for d in decisions] == [4, 3, 2, 1, 0]

    sixth = limiter.allow("1.2.3.4", AUTH)
    assert sixth.allowed is False
    assert 0 < sixth.retry_after <= 15 * 60


def test_keys_are_independent(limiter: RateLimiter) -> None:
    for _ in range(5):
        limiter.allow("1.2.3.4", AUTH)
    assert limiter.allow("5.6.7.8", AUTH).allowed is True


def test_policies_are_independent(limiter: RateLimiter) -> None:
    for _ in range(5):
        limiter.allow("1.2.3.4", AUTH)
    assert limiter.allow("1.2.3.4", GENERAL).allowed is True


def test_check_raises_with_retry_after(limiter: RateLimiter) -> None:
    for _ in range(5):
        limiter.check("1.2.3.4", AUTH)
    with pytest.raises(RateLimited) as exc_info:
        limiter.check("1.2.3.4", AUTH)
    assert exc_info.value.retry_after >= 1
    assert exc_info.value.status_code == 429


def test_rejected_attempts_are_not_counted() -> None:
    limiter = RateLimiter({AUTH: "2 per 1 second"})
    assert limiter.allow("k", AUTH).allowed
    assert limiter.allow("k", AUTH).allowed
    for _ in range(10):
        assert not limiter.allow("k", AUTH).allowed
    # Had the rejections been recorded, the window would still be full.
    time.sleep(1.1)
    assert limiter.allow("k", AUTH).allowed


def test_window_elapses() -> None:
    limiter = RateLimiter({AUTH: "5 per 1 second"})
    for _ in range(5):
        assert limiter.allow("k", AUTH).allowed
    assert not limiter.allow("k", AUTH).allowed
    time.sleep(1.1)
    assert limiter.allow("k", AUTH).allowed


def test_reset_clears_windows(limiter: RateLimiter) -> None:
    for _ in range(5):
        limiter.allow("k", AUTH)
    limiter.reset()
    assert limiter.allow("k", AUTH).allowed


def test_unknown_policy(limiter: RateLimiter) -> None:
    with pytest.raises(ValueError):
        limiter.allow("k", "uploads")
