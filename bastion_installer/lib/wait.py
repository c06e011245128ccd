from __future__ import annotations

import logging
import time
from typing import Callable

from ..errors import TimeoutExceeded

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 10
DEFAULT_DELAY_S = 1.0


def wait_until(
    predicate: Callable[[], bool],
    *,
    what: str,
    attempts: int = DEFAULT_ATTEMPTS,
    delay_s: float = DEFAULT_DELAY_S,
    sleep: Callable[[float], None] = time.sleep,
    dry_run: bool = False,
) -> int:
    """Re-probe until predicate() is true.

    Performs at most `attempts` probes with `delay_s` between consecutive
    probes. Returns the attempt number that succeeded; raises TimeoutExceeded
    once the ceiling is reached.
    """

    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    if dry_run:
        logger.info("Would wait for %s", what)
        return 1

    for attempt in range(1, attempts + 1):
        if predicate():
            if attempt > 1:
                logger.info("%s ready after %d attempts", what, attempt)
            return attempt
        if attempt < attempts:
            logger.debug("Waiting for %s (%d/%d)", what, attempt, attempts)
            sleep(delay_s)

    raise TimeoutExceeded(what, attempts)
