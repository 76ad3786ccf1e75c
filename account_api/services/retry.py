"""Bounded fixed-delay retry for outbound notifications."""

from __future__ import annotations

import logging
import time
from typing import Callable

from tenacity import RetryError, Retrying, before_sleep_log, stop_after_attempt, wait_fixed

from ..domain.errors import DispatchError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_DELAY_MS = 100

Sleeper = Callable[[float], None]


def dispatch_with_retry(
    notify: Callable[[], None],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    delay_ms: int = DEFAULT_DELAY_MS,
    *,
    sleep: Sleeper = time.sleep,
) -> int:
    """
    Call ``notify`` until it succeeds or ``max_attempts`` calls have failed.

    The wait between attempts is fixed; there is no backoff or jitter. The
    calling thread is blocked for the whole sequence.

    Returns:
        The number of attempts used, including the successful one.

    Raises:
        DispatchError: If every attempt raised.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempts = 0
    retrying = Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_fixed(delay_ms / 1000),
        sleep=sleep,
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
    try:
        for attempt in retrying:
            with attempt:
                attempts += 1
                notify()
    except RetryError as exc:
        cause = exc.last_attempt.exception()
        logger.error("Notification failed after %s attempts: %s", attempts, cause)
        raise DispatchError() from cause
    return attempts


class RetryPolicy:
    """Holds the configured attempt budget so collaborators share one policy."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        delay_ms: int = DEFAULT_DELAY_MS,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self.max_attempts = max_attempts
        self.delay_ms = delay_ms
        self._sleep = sleep

    def run(self, notify: Callable[[], None]) -> int:
        return dispatch_with_retry(
            notify,
            self.max_attempts,
            self.delay_ms,
            sleep=self._sleep,
        )
