# app/retry.py

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry policy for calls that hit the database at a request boundary."""

    max_attempts: int = 3
    backoff_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    retry_on: Tuple[Type[BaseException], ...] = (OperationalError,)


def run_with_retry(fn: Callable[[], T], policy: Optional[RetryPolicy] = None, label: str = "call") -> T:
    """
    Runs fn, retrying transient storage errors with exponential backoff.
    Anything not listed in policy.retry_on propagates immediately, and the
    last transient error propagates once attempts are exhausted.
    """
    policy = policy or RetryPolicy()
    delay = policy.backoff_seconds
    attempt = 1
    while True:
        try:
            return fn()
        except policy.retry_on:
            if attempt >= policy.max_attempts:
                logger.exception("%s failed after %s attempts", label, attempt)
                raise
            logger.warning("%s failed (attempt %s/%s), retrying in %.2fs", label, attempt, policy.max_attempts, delay)
            if delay > 0:
                time.sleep(delay)
            delay *= policy.backoff_multiplier
            attempt += 1
