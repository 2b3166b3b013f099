"""Exceptions raised by the import pipeline and the rate limiter."""

from __future__ import annotations


class SignalwatchError(Exception):
    """Base class for signalwatch errors."""


class BatchValidationError(SignalwatchError):
    """The batch payload failed validation. Nothing was persisted.

    ``errors`` holds one ``"<field.path>: <message>"`` line per offending
    field across the whole batch.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"{len(self.errors)} validation error(s)")


class AuthExpiredError(SignalwatchError):
    """No valid actor was available when the batch started."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class PersistenceError(SignalwatchError):
    """The store refused or failed to write a record.

    The message is for operator logs only.
    """


class RateLimitExceeded(SignalwatchError):
    """An operation exceeded its per-actor request budget."""

    def __init__(self, operation: str, reset_seconds: int) -> None:
        self.operation = operation
        self.reset_seconds = reset_seconds
        super().__init__(
            f"Rate limit exceeded. Try again in {reset_seconds} seconds."
        )
