"""Retry policy and request pacing for external calls.

Every call to GitHub or Stack Exchange goes through ``RetryPolicy.call`` with
a shared ``RateLimiter``: transient failures climb an exponential backoff
ladder, while a rate-limit signal triggers one long cool-down instead.
"""

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel, Field
from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .exceptions import ExhaustedRetry, RateLimitExceeded, TransientExternalFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiter:
    """Keeps a minimum interval between external calls.

    Also owns the sleep used for rate-limit cool-downs, so tests can swap in
    a fake clock and sleep and never wait for real.
    """

    def __init__(
        self,
        min_interval: float = 0.2,
        cool_down_seconds: float = 60.0,
        max_cool_down: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize rate limiter.

        Args:
            min_interval: Minimum seconds between two external calls
            cool_down_seconds: Cool-down used when the service gives no hint
            max_cool_down: Upper bound for any single cool-down
            clock: Monotonic clock function
            sleep: Sleep function
        """
        self.min_interval = min_interval
        self.cool_down_seconds = cool_down_seconds
        self.max_cool_down = max_cool_down
        self.clock = clock
        self.sleep = sleep
        self.cool_downs = 0
        self._next_allowed = 0.0

    def wait(self) -> None:
        """Block until the next call is allowed, then reserve the slot."""
        now = self.clock()
        delay = self._next_allowed - now
        if delay > 0:
            logger.debug("Pacing external call, sleeping %.2fs", delay)
            self.sleep(delay)
            now = self._next_allowed
        self._next_allowed = now + self.min_interval

    def defer(self, seconds: float) -> None:
        """Push the next allowed call at least ``seconds`` into the future."""
        if seconds > 0:
            self._next_allowed = max(self._next_allowed, self.clock() + seconds)

    def cool_down(self, retry_after: float | None = None) -> float:
        """Sleep once for a rate-limit cool-down.

        Args:
            retry_after: Service-provided wait in seconds, if any

        Returns:
            Seconds slept
        """
        seconds = retry_after if retry_after and retry_after > 0 else None
        if seconds is None:
            seconds = self.cool_down_seconds
        seconds = min(seconds, self.max_cool_down)

        logger.warning("Rate limited, cooling down for %.1f seconds", seconds)
        self.sleep(seconds)
        self.cool_downs += 1
        self._next_allowed = self.clock()
        return seconds


class RetryPolicy(BaseModel):
    """Exponential backoff with a cap on attempts and on delay."""

    max_attempts: int = Field(3, ge=1, description="Attempts including the first")
    base_delay: float = Field(2.0, ge=0, description="Delay before the 2nd attempt")
    multiplier: float = Field(2.0, ge=1, description="Growth factor per attempt")
    max_delay: float = Field(30.0, ge=0, description="Cap for a single delay")

    def retrying(self, sleep: Callable[[float], None] = time.sleep) -> Retrying:
        """Build a tenacity controller for this policy.

        Rate-limit errors are excluded from the ladder; ``call`` handles them.
        """
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.base_delay,
                exp_base=self.multiplier,
                max=self.max_delay,
            ),
            retry=(
                retry_if_exception_type(TransientExternalFailure)
                & retry_if_not_exception_type(RateLimitExceeded)
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=sleep,
        )

    def call(
        self,
        func: Callable[..., T],
        *args: Any,
        limiter: RateLimiter | None = None,
        **kwargs: Any,
    ) -> T:
        """Run ``func`` under this policy.

        Args:
            func: Callable performing one external call
            *args: Positional arguments for ``func``
            limiter: Rate limiter providing sleep and cool-down
            **kwargs: Keyword arguments for ``func``

        Returns:
            Whatever ``func`` returns

        Raises:
            ExhaustedRetry: Retries used up, or still rate limited after the
                cool-down
            Exception: Any non-transient error from ``func`` unchanged
        """
        sleep = limiter.sleep if limiter is not None else time.sleep
        try:
            return self._run(func, args, kwargs, sleep)
        except RateLimitExceeded as exc:
            if limiter is None:
                raise ExhaustedRetry(
                    "Rate limited and no limiter available for cool-down",
                    attempts=1,
                    last_error=exc,
                ) from exc
            limiter.cool_down(exc.retry_after)

        try:
            return self._run(func, args, kwargs, sleep)
        except RateLimitExceeded as exc:
            raise ExhaustedRetry(
                "Still rate limited after cool-down", attempts=2, last_error=exc
            ) from exc

    def _run(
        self,
        func: Callable[..., T],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        sleep: Callable[[float], None],
    ) -> T:
        try:
            return self.retrying(sleep)(func, *args, **kwargs)
        except RetryError as exc:
            last_error = exc.last_attempt.exception()
            raise ExhaustedRetry(
                f"Gave up after {self.max_attempts} attempts: {last_error}",
                attempts=self.max_attempts,
                last_error=last_error,
            ) from last_error
