"""
Fixed-delay retry loop around a backend.

Every failure is treated the same: the scheduler sleeps retry_delay
seconds and tries again until retry_count attempts have been made.
The first success ends the loop.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from .backends import SyncBackend
from .models import Outcome, RetryResult, SyncAttempt, SyncProfile

logger = logging.getLogger("synctools.retry")


class RetryScheduler:
    """Drives a backend through up to retry_count attempts."""

    def __init__(
        self,
        backend: SyncBackend,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.backend = backend
        self._sleep = sleep

    def execute(self, profile: SyncProfile) -> RetryResult:
        """Run the backend until it succeeds or the attempt budget is spent.

        Args:
            profile: Supplies retry_count, retry_delay and dry_run.

        Returns:
            RetryResult with every attempt made and the final outcome.
        """
        max_attempts = profile.retry_count
        attempts: list[SyncAttempt] = []
        outcome = Outcome.failure("no attempts made")

        for index in range(1, max_attempts + 1):
            logger.info("Sync attempt %d of %d", index, max_attempts)
            attempt = SyncAttempt(index=index)
            attempts.append(attempt)

            outcome = self.backend.run(profile, profile.dry_run)
            attempt.outcome = outcome
            if outcome.success:
                return RetryResult(outcome=outcome, attempts=attempts)

            if index < max_attempts:
                logger.warning(
                    "Sync failed (%s), retrying in %s seconds...",
                    outcome.reason, profile.retry_delay,
                )
                self._sleep(profile.retry_delay)

        logger.error("Sync failed after %d attempts", max_attempts)
        return RetryResult(outcome=outcome, attempts=attempts)
