import logging
import time
from datetime import timedelta
from typing import Callable, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")
Seconds = Union[float, int, timedelta]


class PollTimeoutError(Exception):
    """Raised by poll_until when no result was produced before the deadline."""

    def __init__(self, timeout: float, elapsed: float):
        self.timeout = timeout
        self.elapsed = elapsed
        super().__init__(f"No result after {elapsed:.2f} seconds (timeout {timeout:.2f} seconds)")


def _to_seconds(value: Seconds, name: str) -> float:
    seconds = value.total_seconds() if isinstance(value, timedelta) else float(value)
    if seconds < 0:
        raise ValueError(f"{name} must not be negative, got {value!r}")
    return seconds


def poll_until(
    fn: Callable[[], Optional[T]],
    interval: Seconds,
    timeout: Seconds,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """
    Calls ``fn`` until it returns something other than None.

    The timeout is an absolute deadline measured from the first call, not a
    per-attempt limit. Exceptions raised by ``fn`` propagate immediately.

    :param fn: Step function; returns None while the awaited condition is not met
    :param interval: Delay between attempts (seconds or timedelta)
    :param timeout: Overall deadline (seconds or timedelta)
    :param sleep: Sleep function, injectable for tests
    :param clock: Monotonic clock, injectable for tests
    :return: First non-None value returned by ``fn``
    :raises PollTimeoutError: If the deadline passes first
    """
    interval = _to_seconds(interval, "interval")
    timeout = _to_seconds(timeout, "timeout")

    start = clock()
    deadline = start + timeout
    attempt = 0

    while True:
        attempt += 1
        result = fn()
        if result is not None:
            return result

        now = clock()
        if now >= deadline:
            raise PollTimeoutError(timeout, now - start)

        delay = min(interval, deadline - now)
        logger.debug(f"Attempt {attempt} not ready, next check in {delay:.2f}s")
        sleep(delay)
