import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class CounterSnapshot:
    requests_ok: int
    responses_ok: int
    responses_error: int

    def to_json(self) -> dict[str, int]:
        return {
            "requests_ok": self.requests_ok,
            "responses_ok": self.responses_ok,
            "responses_error": self.responses_error,
        }


class CounterValues:
    """
    Thread-safe, monotonically increasing counters for one operation.

    Concurrent calls of the same operation share one instance; every
    increment happens under the lock so no update is lost.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requests_ok = 0
        self._responses_ok = 0
        self._responses_error = 0

    def inc_requests_ok(self) -> None:
        with self._lock:
            self._requests_ok += 1

    def inc_responses_ok(self) -> None:
        with self._lock:
            self._responses_ok += 1

    def inc_responses_error(self) -> None:
        with self._lock:
            self._responses_error += 1

    @property
    def requests_ok(self) -> int:
        return self._requests_ok

    @property
    def responses_ok(self) -> int:
        return self._responses_ok

    @property
    def responses_error(self) -> int:
        return self._responses_error

    def snapshot(self) -> CounterSnapshot:
        with self._lock:
            return CounterSnapshot(self._requests_ok, self._responses_ok, self._responses_error)

    def to_json(self) -> dict[str, int]:
        return self.snapshot().to_json()


class APICounters:
    """Per-operation counters, created on first use."""

    def __init__(self, operations: tuple[str, ...] = ()) -> None:
        self._lock = threading.Lock()
        self._values: dict[str, CounterValues] = {name: CounterValues() for name in operations}

    def __getitem__(self, operation: str) -> CounterValues:
        with self._lock:
            values = self._values.get(operation)
            if values is None:
                values = self._values[operation] = CounterValues()
            return values

    def operations(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._values)

    def to_json(self) -> dict[str, dict[str, int]]:
        with self._lock:
            items = list(self._values.items())
        return {name: values.to_json() for name, values in items}
