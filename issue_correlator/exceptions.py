"""Error hierarchy for the correlation engine.

Only the I/O boundary (issue source, knowledge base, storage) raises these.
Signal extraction, search ranking, precedent matching and synthesis never
raise on sparse input.
"""

from typing import Any


class CorrelatorError(Exception):
    """Base class for all correlator errors.

    Attributes:
        message: Human-readable error description
        context: Additional context for logging and run statistics
    """

    def __init__(
        self, message: str, context: dict[str, Any] | None = None, **kwargs: Any
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = dict(context) if context is not None else {}
        if kwargs:
            self.context.update(kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for logging/reporting."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConfigurationError(CorrelatorError):
    """Missing or invalid settings. Fatal, raised before any batch starts."""


class TransientExternalFailure(CorrelatorError):
    """Network, timeout or server-side failure that may succeed on retry."""


class RateLimitExceeded(TransientExternalFailure):
    """The external service asked us to slow down.

    Handled with a single cool-down instead of the regular backoff ladder.
    """

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, context, **kwargs)
        self.retry_after = retry_after
        self.context["retry_after"] = retry_after


class MalformedExternalResponse(CorrelatorError):
    """External payload did not match the expected schema."""


class ExhaustedRetry(CorrelatorError):
    """All retry attempts failed; the caller records a gap and moves on."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context, attempts=attempts)
        self.attempts = attempts
        self.last_error = last_error
        if last_error is not None:
            self.context["last_error"] = str(last_error)
