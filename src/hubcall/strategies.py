import math
import random
from collections.abc import Callable

DelayFn = Callable[[int], float]

_MAX_EXPONENT = 64


def quadratic_delay(base_s: float = 2.0) -> DelayFn:
    """
    Quadratic retry delay.

    delay = attempt^2 * base_s

    With the default base this waits 2s, 8s and 18s before the first three
    retries.
    """
    if base_s < 0:
        raise ValueError("base_s must be >= 0.")

    def f(attempt: int) -> float:
        return float(attempt * attempt) * base_s

    return f


def constant_delay(delay_s: float) -> DelayFn:
    """Wait the same amount of time before every retry."""
    if delay_s < 0:
        raise ValueError("delay_s must be >= 0.")

    def f(attempt: int) -> float:
        return delay_s

    return f


def no_delay(attempt: int) -> float:
    return 0.0


def equal_jitter(base_s: float = 0.25, max_s: float = 30.0) -> DelayFn:
    """
    Equal-jitter exponential backoff.

    cap = min(max_s, base_s * 2^attempt)
    sleep in [cap/2, cap]

    The exponent is capped so huge attempt numbers cannot overflow.
    """
    if base_s < 0:
        raise ValueError("base_s must be >= 0.")
    if max_s < 0:
        raise ValueError("max_s must be >= 0.")

    def f(attempt: int) -> float:
        exponent = min(max(attempt, 0), _MAX_EXPONENT)
        cap = min(max_s, base_s * (2.0**exponent))
        return cap / 2.0 + random.uniform(0.0, cap / 2.0)

    return f


def clamp_delay(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return max(0.0, value)
