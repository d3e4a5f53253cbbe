"""Waiting on things that finish outside our process."""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from workstation.errors import PollTimeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-interval polling; ``max_attempts=None`` polls forever."""

    interval: float
    max_attempts: Optional[int] = None


def wait_until(predicate: Callable[[], bool], policy: RetryPolicy,
               sleep: Callable[[float], None] = time.sleep,
               on_first_miss: Optional[Callable[[], None]] = None) -> int:
    """Poll ``predicate`` until it returns True.

    ``on_first_miss`` runs once, after the first failed check, and never
    again. Returns the number of checks made.
    """
    attempts = 0
    while True:
        attempts += 1
        if predicate():
            return attempts
        if attempts == 1 and on_first_miss is not None:
            on_first_miss()
        if policy.max_attempts is not None and attempts >= policy.max_attempts:
            raise PollTimeout(f"Gave up after {attempts} attempts")
        logger.debug("Not ready yet (attempt %d); sleeping %ss", attempts, policy.interval)
        sleep(policy.interval)
