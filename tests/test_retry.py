"""Tests for the bounded retry policy."""

from __future__ import annotations

import pytest

from extra_container.retry import Outcome, RetryExhaustedError, RetryPolicy


class _Flaky:
    def __init__(self, errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            err = self.errors.pop(0)
            if err is not None:
                raise err


def _classify(exc: Exception) -> Outcome:
    if isinstance(exc, LookupError):
        return Outcome.SUCCESS
    if isinstance(exc, RuntimeError):
        return Outcome.RETRY
    return Outcome.FATAL


class TestRetryPolicy:
    def test_first_success(self):
        sleeps: list[float] = []
        op = _Flaky([])
        assert RetryPolicy(sleep=sleeps.append).call(op, _classify) == 1
        assert sleeps == []

    def test_retries_until_success(self):
        sleeps: list[float] = []
        op = _Flaky([RuntimeError("busy"), RuntimeError("busy"), None])
        policy = RetryPolicy(max_attempts=5, delay=0.5, sleep=sleeps.append)
        assert policy.call(op, _classify) == 3
        assert sleeps == [0.5, 0.5]

    def test_success_classification_stops_immediately(self):
        op = _Flaky([RuntimeError("x"), LookupError("gone"), RuntimeError("never")])
        assert RetryPolicy(sleep=lambda _: None).call(op, _classify) == 2
        assert op.calls == 2

    def test_exhaustion_carries_last_error(self):
        sleeps: list[float] = []
        op = _Flaky([RuntimeError(f"fail {i}") for i in range(10)])
        policy = RetryPolicy(max_attempts=4, delay=0.1, sleep=sleeps.append)
        with pytest.raises(RetryExhaustedError) as exc_info:
            policy.call(op, _classify)
        assert op.calls == 4
        assert exc_info.value.attempts == 4
        assert str(exc_info.value.last_error) == "fail 3"
        # no sleep after the final attempt
        assert len(sleeps) == 3

    def test_fatal_reraises(self):
        op = _Flaky([ValueError("bad")])
        with pytest.raises(ValueError, match="bad"):
            RetryPolicy(sleep=lambda _: None).call(op, _classify)
        assert op.calls == 1

    def test_backoff_multiplies_delay(self):
        sleeps: list[float] = []
        op = _Flaky([RuntimeError(), RuntimeError(), None])
        RetryPolicy(delay=1.0, backoff=2.0, sleep=sleeps.append).call(op, _classify)
        assert sleeps == [1.0, 2.0]
