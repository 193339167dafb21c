# waiting.py
import logging
import threading
import time
from typing import Callable, Optional

log = logging.getLogger(__name__)

# fixed: coarse enough not to spin, fine enough not to stall a foreground fetch
POLL_PERIOD = 0.5


def wait_until(
        predicate: Callable[[], bool],
        max_duration: float,
        *,
        stop: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
) -> bool:
    """
    Poll predicate every POLL_PERIOD until it is true or max_duration has elapsed.

    - returns True as soon as predicate() is observed true
    - max_duration <= 0 -> predicate checked once, never sleeps
    - the yield is Event.wait(), so the worker thread sleeps without spinning;
      setting `stop` ends the wait early with False
    """
    stop = stop or threading.Event()
    start = clock()
    polls = 0
    while True:
        polls += 1
        if predicate():
            log.debug(f"[WAIT] predicate true after {clock() - start:.2f}s polls={polls}")
            return True
        if clock() - start >= max_duration:
            log.debug(f"[WAIT] gave up after {clock() - start:.2f}s polls={polls}")
            return False
        if stop.wait(POLL_PERIOD):
            log.debug(f"[WAIT] stopped after {clock() - start:.2f}s polls={polls}")
            return False
