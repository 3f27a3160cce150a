import time
from typing import Callable, Optional


def poll_until(
    predicate: Callable[[], bool],
    interval: float = 0.1,
    timeout: Optional[float] = None,
    backoff: float = 1.0,
    max_interval: Optional[float] = None,
    on_retry: Optional[Callable[[int], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic
) -> bool:
    """
    Poll ``predicate`` until it returns True, sleeping between checks.

    The interval grows by ``backoff`` after every failed check and is capped at
    ``max_interval``. ``timeout=None`` polls forever, which is reserved for the
    start-up phases (waiting for the controller connection and for the program
    to become idle).

    :param predicate, Callable: condition to wait for
    :param interval, float: first sleep between checks (s)
    :param timeout, float|None: give up after this many seconds
    :param backoff, float: interval multiplier applied after every failed check
    :param max_interval, float|None: upper bound for the interval
    :param on_retry, Callable|None: called with the attempt number after each failed check
    :param sleep, Callable: sleep function
    :param clock, Callable: monotonic clock
    :return: bool, True if the predicate held before the timeout
    """
    if interval < 0:
        raise ValueError("interval must be >= 0")
    if backoff < 1.0:
        raise ValueError("backoff must be >= 1.0")

    deadline = None if timeout is None else clock() + timeout
    attempt = 0
    delay = interval
    while True:
        if predicate():
            return True
        attempt += 1
        if on_retry is not None:
            on_retry(attempt)
        if deadline is not None:
            remaining = deadline - clock()
            if remaining <= 0:
                return False
            sleep(min(delay, remaining))
        else:
            sleep(delay)
        delay = delay * backoff
        if max_interval is not None:
            delay = min(delay, max_interval)
