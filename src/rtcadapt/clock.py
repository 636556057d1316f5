import time


def current_ms() -> int:
    """
    Monotonic time in milliseconds, used by all congestion timers.
    """
    return int(time.monotonic() * 1000)
