"""Bounded exponential backoff for eventually consistent reads."""
from __future__ import annotations

import logging
import time
from typing import Callable, Tuple, Type, TypeVar

T = TypeVar("T")

LOGGER = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 5
DEFAULT_INITIAL_DELAY = 2.0


def retry_with_backoff(
    operation: Callable[[], T],
    *,
    attempts: int = DEFAULT_ATTEMPTS,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    factor: float = 2.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    description: str = "operation",
) -> T:
    """Call ``operation`` until it succeeds or ``attempts`` run out.

    The delay starts at ``initial_delay`` seconds and is multiplied by
    ``factor`` after every failed attempt. Exceptions outside ``retry_on``
    propagate immediately; the last matching exception is re-raised once the
    attempts are exhausted.
    """

    if attempts < 1:
        raise ValueError("attempts must be at least 1.")

    delay = initial_delay
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except retry_on as exc:
            if attempt == attempts:
                LOGGER.warning(
                    "Giving up on %s after %s attempts", description, attempts,
                    extra={"context": {"error": str(exc)}},
                )
                raise
            LOGGER.info(
                "Retrying %s in %.1fs (attempt %s/%s)",
                description,
                delay,
                attempt,
                attempts,
                extra={"context": {"error": str(exc)}},
            )
            if delay > 0:
                sleep(delay)
            delay *= factor

    raise AssertionError("unreachable")  # pragma: no cover


__all__ = ["DEFAULT_ATTEMPTS", "DEFAULT_INITIAL_DELAY", "retry_with_backoff"]
