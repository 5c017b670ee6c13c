"""
Bounded Retry Policy

One retry primitive for the whole codebase. Call sites never loop on their
own; they pick a policy for the kind of operation they perform:

- reference allocation retries on unique violations (a concurrent writer
  took the same code) with a fresh attempt number each time;
- idempotent reads retry on transient connection failures;
- non-idempotent writes are not retried at all.
"""

from __future__ import annotations

import random
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, TypeVar

import structlog
from django.db import DatabaseError, IntegrityError, InterfaceError, OperationalError  # type: ignore

from shared.domain.exceptions import PersistenceError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff with jitter, bounded by ``attempts``.

    ``operation`` receives the zero-based attempt number so that callers can
    change strategy on retries (the reference allocator switches to a gap
    scan). Exceptions outside ``retry_on`` propagate immediately.
    """

    name: str
    attempts: int = 3
    base_delay: float = 0.05
    max_delay: float = 1.0
    backoff_multiplier: float = 2.0
    jitter: float = 0.1
    retry_on: tuple[type[BaseException], ...] = ()

    def delay_for(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.backoff_multiplier ** attempt), self.max_delay)
        if self.jitter:
            delay += random.uniform(0, self.jitter * delay)
        return delay

    def run(
        self,
        operation: Callable[[int], T],
        *,
        target: object = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> T:
        log = logger.bind(operation=self.name, target_id=target)
        for attempt in range(self.attempts):
            try:
                result = operation(attempt)
            except self.retry_on as exc:
                if attempt + 1 >= self.attempts:
                    log.error(
                        "retry_exhausted",
                        attempt=attempt + 1,
                        attempts=self.attempts,
                        error=str(exc),
                    )
                    raise
                delay = self.delay_for(attempt)
                log.warning(
                    "retrying",
                    attempt=attempt + 1,
                    attempts=self.attempts,
                    delay=round(delay, 3),
                    error=str(exc),
                )
                sleep(delay)
                continue
            if attempt:
                log.info("retry_succeeded", attempt=attempt + 1)
            return result
        raise RuntimeError(f"Retry policy {self.name} configured with no attempts")


NO_RETRY = RetryPolicy(name="no_retry", attempts=1)

# Idempotent reads may be repeated after a dropped connection.
READ_RETRY = RetryPolicy(
    name="read",
    attempts=3,
    base_delay=0.1,
    retry_on=(OperationalError, InterfaceError),
)


@contextmanager
def persistence_guard(operation: str, target: object = None, attempt: int = 1):
    """
    Convert unexpected database failures into ``PersistenceError``.

    Integrity errors pass through untouched: callers interpret them
    (reference collision versus castle/date conflict).
    """
    try:
        yield
    except IntegrityError:
        raise
    except DatabaseError as exc:
        logger.error(
            "persistence_failed",
            operation=operation,
            target_id=target,
            attempt=attempt,
            error=str(exc),
        )
        raise PersistenceError() from exc


def guarded(policy: RetryPolicy, operation: Callable[[int], T], *, target: object = None) -> T:
    """Run ``operation`` under ``policy``; a database failure that survives
    the policy becomes ``PersistenceError``."""
    attempts_made = 0

    def attempt(number: int) -> T:
        nonlocal attempts_made
        attempts_made = number + 1
        return operation(number)

    try:
        return policy.run(attempt, target=target)
    except IntegrityError:
        raise
    except DatabaseError as exc:
        logger.error(
            "persistence_failed",
            operation=policy.name,
            target_id=target,
            attempt=attempts_made,
            error=str(exc),
        )
        raise PersistenceError() from exc
