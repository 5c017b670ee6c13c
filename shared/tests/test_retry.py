"""Tests for the bounded retry policy."""

from __future__ import annotations

import pytest
from django.db import IntegrityError, OperationalError

from shared.application.retry import NO_RETRY, RetryPolicy, guarded, persistence_guard
from shared.domain.exceptions import PersistenceError


class Flaky(Exception):
    pass


def _policy(**overrides) -> RetryPolicy:
    values = {"name": "test", "attempts": 3, "base_delay": 0.05, "jitter": 0, "retry_on": (Flaky,)}
    values.update(overrides)
    return RetryPolicy(**values)


def test_operation_receives_attempt_numbers():
    seen = []
    sleeps = []

    def operation(attempt):
        seen.append(attempt)
        if attempt < 2:
            raise Flaky()
        return "done"

    assert _policy().run(operation, sleep=sleeps.append) == "done"
    assert seen == [0, 1, 2]
    assert sleeps == [0.05, 0.1]


def test_exhausted_policy_reraises_last_error():
    calls = []

    def operation(attempt):
        calls.append(attempt)
        raise Flaky(f"attempt {attempt}")

    with pytest.raises(Flaky, match="attempt 2"):
        _policy().run(operation, sleep=lambda delay: None)
    assert calls == [0, 1, 2]


def test_errors_outside_retry_on_propagate_immediately():
    calls = []

    def operation(attempt):
        calls.append(attempt)
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        _policy().run(operation, sleep=lambda delay: None)
    assert calls == [0]


def test_no_retry_runs_once():
    calls = []

    def operation(attempt):
        calls.append(attempt)
        raise Flaky()

    with pytest.raises(Flaky):
        NO_RETRY.run(operation)
    assert calls == [0]


def test_delay_is_capped_and_jittered():
    policy = _policy(base_delay=0.5, max_delay=1.0, jitter=0.1)

    assert 0.5 <= policy.delay_for(0) <= 0.55
    assert 1.0 <= policy.delay_for(5) <= 1.1


def test_guarded_converts_database_errors():
    def operation(attempt):
        raise OperationalError("server closed the connection")

    with pytest.raises(PersistenceError) as exc_info:
        guarded(_policy(retry_on=(OperationalError,)), operation)
    assert exc_info.value.status_code == 503
    assert isinstance(exc_info.value.__cause__, OperationalError)


def test_guarded_leaves_integrity_errors_to_the_caller():
    def operation(attempt):
        raise IntegrityError("duplicate key")

    with pytest.raises(IntegrityError):
        guarded(_policy(), operation)


def test_persistence_guard():
    with pytest.raises(PersistenceError):
        with persistence_guard("create_booking", target=5):
            raise OperationalError("timeout")

    with pytest.raises(IntegrityError):
        with persistence_guard("create_booking", target=5):
            raise IntegrityError("unique")

    with pytest.raises(KeyError):
        with persistence_guard("create_booking", target=5):
            raise KeyError("not a database problem")
