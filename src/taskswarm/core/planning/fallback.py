"""
Ordered fallback chain.

A chain is a list of named attempts. Each attempt either returns a value or
raises `AttemptRejected` (or any other exception). The chain runs attempts in
order and stops at the first success. The last attempt is expected to be one
that cannot fail (a deterministic heuristic); if every attempt fails the last
error is re-raised.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, TypeVar

import structlog

T = TypeVar("T")

logger = structlog.get_logger()


class AttemptRejected(Exception):
    """Raised by an attempt whose result exists but is not acceptable."""

    def __init__(self, reason: str, value: Any = None):
        super().__init__(reason)
        self.reason = reason
        self.value = value


@dataclass
class Attempt(Generic[T]):
    name: str
    run: Callable[[], Awaitable[T]]


@dataclass
class ChainOutcome(Generic[T]):
    """Value produced by the chain plus which attempt produced it."""

    value: T
    attempt: str
    failures: list[tuple[str, str]] = field(default_factory=list)


class FallbackChain(Generic[T]):
    """Try attempts in order until one succeeds."""

    def __init__(self, attempts: list[Attempt[T]], component: str = "fallback_chain"):
        if not attempts:
            raise ValueError("FallbackChain requires at least one attempt")
        self.attempts = attempts
        self.logger = logger.bind(component=component)

    async def run(self) -> ChainOutcome[T]:
        failures: list[tuple[str, str]] = []
        last_error: Exception | None = None
        for attempt in self.attempts:
            try:
                value = await attempt.run()
            except Exception as e:
                last_error = e
                failures.append((attempt.name, str(e)))
                self.logger.warning(
                    "fallback.attempt_failed",
                    attempt=attempt.name,
                    error_type=type(e).__name__,
                    error=str(e)[:200],
                )
                continue
            if failures:
                self.logger.info("fallback.recovered", attempt=attempt.name, failed=len(failures))
            return ChainOutcome(value=value, attempt=attempt.name, failures=failures)

        if last_error is None:
            raise RuntimeError("FallbackChain has no attempts to run")
        raise last_error
