import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

logger = logging.getLogger(__name__)

RequestObserver = Callable[[datetime, Any, Any], Awaitable[None] | None]
ResponseObserver = Callable[[datetime, Any, Any, Any, float], Awaitable[None] | None]
MetricHook = Callable[[str, int, float, dict[str, Any]], None]
LogHook = Callable[[str, dict[str, Any]], None]


@dataclass
class ObserverSet:
    """Ordered observers for one operation."""

    on_request: list[RequestObserver] = field(default_factory=list)
    on_response: list[ResponseObserver] = field(default_factory=list)


async def notify(observers: Sequence[Callable[..., Any]], *args: Any, event: str) -> None:
    """
    Invoke each observer in order with ``args``.

    Observers may be plain or async callables. A failing observer is logged
    and skipped; the remaining observers still run.
    """
    for observer in list(observers):
        try:
            outcome = observer(*args)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.warning("Observer %r for %s failed", observer, event, exc_info=True)


def emit_hooks(
    event: str,
    attempt: int,
    sleep_s: float,
    tags: dict[str, Any],
    *,
    on_metric: MetricHook | None,
    on_log: LogHook | None,
) -> None:
    if on_metric is not None:
        try:
            on_metric(event, attempt, sleep_s, tags)
        except Exception:
            logger.debug("Metric hook failed for %s", event, exc_info=True)

    if on_log is not None:
        fields = {"attempt": attempt, "sleep_s": sleep_s, **tags}
        try:
            on_log(event, fields)
        except Exception:
            logger.debug("Log hook failed for %s", event, exc_info=True)
