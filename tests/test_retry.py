"""Tests for retry policy and rate limiter."""

import pytest

from issue_correlator.exceptions import (
    CorrelatorError,
    ExhaustedRetry,
    RateLimitExceeded,
    TransientExternalFailure,
)
from issue_correlator.retry import RateLimiter, RetryPolicy


class FlakyCall:
    """Callable failing with the given errors before succeeding."""

    def __init__(self, *errors: Exception, result: str = "ok") -> None:
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class TestRateLimiter:
    """Test RateLimiter pacing and cool-down."""

    def test_enforces_minimum_interval(self, limiter, fake_clock) -> None:
        limiter.wait()
        limiter.wait()
        assert fake_clock.sleeps == [pytest.approx(0.2)]

    def test_no_sleep_when_interval_elapsed(self, limiter, fake_clock) -> None:
        limiter.wait()
        fake_clock.now += 5
        limiter.wait()
        assert fake_clock.sleeps == []

    def test_cool_down_uses_hint_then_default(self, limiter, fake_clock) -> None:
        assert limiter.cool_down(12) == 12
        assert limiter.cool_down() == 60.0
        assert limiter.cool_downs == 2
        assert fake_clock.sleeps == [12, 60.0]

    def test_cool_down_is_capped(self, fake_clock) -> None:
        limiter = RateLimiter(max_cool_down=100, clock=fake_clock, sleep=fake_clock.sleep)
        assert limiter.cool_down(3600) == 100

    def test_defer_pushes_next_call(self, limiter, fake_clock) -> None:
        limiter.defer(10)
        limiter.wait()
        assert fake_clock.sleeps == [pytest.approx(10)]


class TestRetryPolicy:
    """Test RetryPolicy backoff ladder."""

    def test_delay_grows_and_is_capped(self, limiter, fake_clock) -> None:
        policy = RetryPolicy(max_attempts=4, base_delay=2, multiplier=2, max_delay=5)
        call = FlakyCall(*[TransientExternalFailure("down") for _ in range(3)])

        assert policy.call(call, limiter=limiter) == "ok"
        assert fake_clock.sleeps == [2, 4, 5]

    def test_transient_failure_retried(self, limiter, fake_clock) -> None:
        call = FlakyCall(TransientExternalFailure("timeout"))
        assert RetryPolicy().call(call, limiter=limiter) == "ok"
        assert call.calls == 2
        assert 2.0 in fake_clock.sleeps

    def test_exhausted_after_max_attempts(self, limiter) -> None:
        call = FlakyCall(*[TransientExternalFailure("down") for _ in range(5)])
        with pytest.raises(ExhaustedRetry) as exc_info:
            RetryPolicy(max_attempts=3).call(call, limiter=limiter)
        assert call.calls == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, TransientExternalFailure)

    def test_non_transient_error_not_retried(self, limiter) -> None:
        call = FlakyCall(CorrelatorError("bad request"))
        with pytest.raises(CorrelatorError, match="bad request"):
            RetryPolicy().call(call, limiter=limiter)
        assert call.calls == 1

    def test_rate_limit_triggers_single_cool_down(self, limiter, fake_clock) -> None:
        call = FlakyCall(RateLimitExceeded("slow down", retry_after=42))
        assert RetryPolicy().call(call, limiter=limiter) == "ok"
        assert limiter.cool_downs == 1
        assert 42 in fake_clock.sleeps

    def test_rate_limited_twice_gives_up(self, limiter) -> None:
        call = FlakyCall(RateLimitExceeded("slow down"), RateLimitExceeded("again"))
        with pytest.raises(ExhaustedRetry, match="Still rate limited"):
            RetryPolicy().call(call, limiter=limiter)
        assert limiter.cool_downs == 1
        assert call.calls == 2
