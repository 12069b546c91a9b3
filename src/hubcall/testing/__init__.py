"""Testing utilities for deterministic hub exchanges and observability."""

from __future__ import annotations

import asyncio
import json
from collections import deque
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..correlation import PROCESS_ID_HEADER
from ..retry import RetryController
from ..strategies import no_delay
from ..transport import JSON_UTF8, HTTPExchange

Scripted = HTTPExchange | BaseException


@dataclass(frozen=True)
class SendRecord:
    path: str
    headers: dict[str, str]
    body: bytes
    timeout_s: float

    @property
    def process_id(self) -> str | None:
        return self.headers.get(PROCESS_ID_HEADER)

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8"))


class FakeTransport:
    """
    Transport stub answering from a script.

    Each send pops the next scripted item: an HTTPExchange is returned, an
    exception is raised. Once the script is used up the last item repeats.
    ``delay_s`` makes every send wait first, to simulate a slow hub.
    """

    def __init__(
        self,
        script: Sequence[Scripted] = (),
        *,
        delay_s: float = 0.0,
        echo_process_id: bool = True,
    ) -> None:
        self._script: deque[Scripted] = deque(script)
        self._last: Scripted | None = None
        self.delay_s = delay_s
        self.echo_process_id = echo_process_id
        self.sends: list[SendRecord] = []

    def push(self, *items: Scripted) -> None:
        self._script.extend(items)

    def _next(self) -> Scripted:
        if self._script:
            self._last = self._script.popleft()
        if self._last is None:
            raise AssertionError("FakeTransport has no scripted response")
        return self._last

    async def send(
        self,
        path: str,
        *,
        headers: Mapping[str, str],
        body: bytes,
        timeout_s: float,
    ) -> HTTPExchange:
        record = SendRecord(path=path, headers=dict(headers), body=body, timeout_s=timeout_s)
        self.sends.append(record)
        item = self._next()
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if isinstance(item, BaseException):
            raise item
        if self.echo_process_id and item.correlation_id is None and record.process_id is not None:
            return HTTPExchange(
                status_code=item.status_code,
                content_type=item.content_type,
                body=item.body,
                headers={**item.headers, PROCESS_ID_HEADER: record.process_id},
                timestamp=item.timestamp,
                runtime_s=item.runtime_s,
                correlation_id=record.process_id,
            )
        return item


def json_exchange(
    status: int,
    body: Any,
    *,
    content_type: str = JSON_UTF8,
    headers: Mapping[str, str] | None = None,
) -> HTTPExchange:
    """Build an exchange whose body is ``body`` encoded as JSON."""

    raw = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
    return HTTPExchange(
        status_code=status,
        content_type=content_type,
        body=raw,
        headers=dict(headers or {}),
    )


def html_exchange(status: int, text: str = "<html><body>Forbidden</body></html>") -> HTTPExchange:
    return HTTPExchange(
        status_code=status,
        content_type="text/html; charset=utf-8",
        body=text.encode("utf-8"),
    )


@dataclass
class DeterministicDelay:
    """Deterministic retry delay for tests.

    Returns values from ``delays`` based on the retry number (1-based).
    Past the end of the list the last value repeats.
    """

    delays: Sequence[float]
    calls: list[int] = field(default_factory=list)

    def __call__(self, attempt: int) -> float:
        self.calls.append(attempt)
        if not self.delays:
            return 0.0
        index = min(attempt - 1, len(self.delays) - 1)
        return float(self.delays[index])


def instant_retries(max_retries: int = 3, *, retry_transport_timeouts: bool = False) -> RetryController:
    """RetryController with zero delay for fast, deterministic retries in tests."""

    return RetryController(
        max_retries=max_retries,
        delay=no_delay,
        retry_transport_timeouts=retry_transport_timeouts,
    )


def no_retries() -> RetryController:
    """RetryController that never retries."""

    return instant_retries(0)


@dataclass(frozen=True)
class ObservedEvent:
    kind: str
    timestamp: datetime
    caller: Any
    request: Any
    result: Any | None = None
    runtime_s: float | None = None


class RecordingObserver:
    """Records pre-send and post-response notifications in order."""

    def __init__(self) -> None:
        self.events: list[ObservedEvent] = []

    def on_request(self, timestamp: datetime, caller: Any, request: Any) -> None:
        self.events.append(ObservedEvent("request", timestamp, caller, request))

    def on_response(
        self,
        timestamp: datetime,
        caller: Any,
        request: Any,
        result: Any,
        runtime_s: float,
    ) -> None:
        self.events.append(ObservedEvent("response", timestamp, caller, request, result, runtime_s))

    @property
    def kinds(self) -> list[str]:
        return [event.kind for event in self.events]

    def reset(self) -> None:
        self.events.clear()


__all__ = [
    "DeterministicDelay",
    "FakeTransport",
    "ObservedEvent",
    "RecordingObserver",
    "SendRecord",
    "html_exchange",
    "instant_retries",
    "json_exchange",
    "no_retries",
]
