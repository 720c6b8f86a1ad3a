"""Bounded retry with a caller-supplied error classifier."""

from __future__ import annotations

import enum
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from extra_container.logger import logger


class Outcome(enum.Enum):
    SUCCESS = "success"  # the error means the goal is already reached
    RETRY = "retry"
    FATAL = "fatal"


class RetryExhaustedError(Exception):
    def __init__(self, attempts: int, last_error: Exception | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"gave up after {attempts} attempts: {last_error}")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 20
    delay: float = 0.1
    backoff: float = 1.0  # delay multiplier per attempt
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def call(
        self,
        op: Callable[[], object],
        classify: Callable[[Exception], Outcome],
        *,
        label: str = "operation",
    ) -> int:
        """Run *op* until it succeeds; return the attempt number that succeeded.

        Raises :class:`RetryExhaustedError` after ``max_attempts`` retryable
        failures. A ``FATAL`` classification re-raises immediately.
        """
        last_error: Exception | None = None
        delay = self.delay
        for attempt in range(1, self.max_attempts + 1):
            try:
                op()
                return attempt
            except Exception as exc:
                outcome = classify(exc)
                if outcome is Outcome.SUCCESS:
                    return attempt
                if outcome is Outcome.FATAL:
                    raise
                last_error = exc
                logger.debug("Retrying", op=label, attempt=attempt, err=str(exc))
            if attempt < self.max_attempts:
                self.sleep(delay)
                delay *= self.backoff
        raise RetryExhaustedError(self.max_attempts, last_error)
