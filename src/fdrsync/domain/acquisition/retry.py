"""Retry and skip budgets shared by the acquisition stages."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_fixed

from fdrsync.domain.ports.fetching import FlowSourceError

if TYPE_CHECKING:
    from collections.abc import Callable

    from tenacity import RetryCallState

log = getLogger(__name__)


class SkipLimitExceededError(RuntimeError):
    """Raised when a stage gives up on more work items than its budget allows."""

    def __init__(self, stage: str, limit: int) -> None:
        super().__init__(f"Stage {stage} exceeded its skip limit of {limit}")
        self.stage = stage
        self.limit = limit


class StageFailedError(RuntimeError):
    """Raised by the pipeline when a stage terminates with a fatal error."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(f"Stage {stage} failed: {cause}")
        self.stage = stage
        self.cause = cause


def is_transient(error: BaseException) -> bool:
    return isinstance(error, FlowSourceError) and error.transient


@dataclass(slots=True, frozen=True)
class RetrySettings:
    """Fixed-backoff retry for transient flow-source failures."""

    attempts: int = 3
    backoff_seconds: float = 2.0
    sleep: Callable[[float], None] = time.sleep

    def call[T](self, operation: Callable[[], T], *, description: str) -> T:
        def log_retry(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome is not None else None
            log.warning(
                "%s failed (attempt %s/%s), retrying in %ss: %s",
                description,
                state.attempt_number,
                self.attempts,
                self.backoff_seconds,
                error,
            )

        retrying = Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_fixed(self.backoff_seconds),
            retry=retry_if_exception(is_transient),
            before_sleep=log_retry,
            sleep=self.sleep,
            reraise=True,
        )
        return retrying(operation)


@dataclass(slots=True)
class SkipBudget:
    stage: str
    limit: int
    _skipped: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def skipped(self) -> int:
        return self._skipped

    def consume(self, description: str, error: BaseException) -> None:
        """Record one skipped item, raising once the budget is exceeded."""

        with self._lock:
            self._skipped += 1
            skipped = self._skipped
        log.warning("Skipping %s (%s/%s): %s", description, skipped, self.limit, error)
        if skipped > self.limit:
            raise SkipLimitExceededError(self.stage, self.limit) from error
