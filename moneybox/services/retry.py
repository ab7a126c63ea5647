from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from ..core.config import Settings
from ..core.errors import ConcurrencyConflictError, MoneyboxError


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded, sequential retry of an attempt that may hit a conflict.

    Only ``ConcurrencyConflictError`` is retried. The delay grows linearly:
    ``backoff_seconds * attempt``.
    """

    max_attempts: int = 3
    backoff_seconds: float = 0.05
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            backoff_seconds=settings.retry_backoff_seconds,
        )

    def _retrying(self, operation: str, context: dict[str, Any]) -> Retrying:
        def log_conflict(retry_state: RetryCallState) -> None:
            logger.warning(
                f"{operation}.conflict",
                extra={
                    **context,
                    "attempt": retry_state.attempt_number,
                    "retry_in": retry_state.next_action.sleep if retry_state.next_action else None,
                    "reason": str(retry_state.outcome.exception()),
                },
            )

        return Retrying(
            retry=retry_if_exception_type(ConcurrencyConflictError),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.backoff_seconds, increment=self.backoff_seconds),
            sleep=self.sleep,
            before_sleep=log_conflict,
        )

    def run(
        self,
        attempt_fn: Callable[[int], T],
        *,
        operation: str,
        context: dict[str, Any],
    ) -> tuple[T, int]:
        """Call ``attempt_fn(attempt)`` until it returns; return ``(value, attempts)``."""
        try:
            for attempt in self._retrying(operation, context):
                number = attempt.retry_state.attempt_number
                with attempt:
                    logger.debug(f"{operation}.attempt", extra={**context, "attempt": number})
                    value = attempt_fn(number)
        except RetryError as exc:
            last = exc.last_attempt
            logger.error(
                f"{operation}.retries_exhausted",
                extra={**context, "attempt": last.attempt_number, "max_attempts": self.max_attempts},
            )
            raise ConcurrencyConflictError(
                "The account was modified by another transaction. Please try again.",
                attempts=last.attempt_number,
            ) from last.exception()
        except MoneyboxError:
            raise
        except Exception:
            logger.exception(f"{operation}.unexpected_error", extra=context)
            raise
        return value, number
