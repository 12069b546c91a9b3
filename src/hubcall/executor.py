"""
The operation executor.

One ``execute`` call is one logical protocol exchange: allocate a
correlation id, notify observers, send with bounded retries, classify, and
hand back an ``OperationResult``. Every protocol operation is an
``Operation`` value fed through the same loop.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any, Generic, TypeVar
from urllib.parse import quote

from .classify import Classification, ResponseParser, classify, format_stack_trace
from .config import ExecutorConfig
from .correlation import PROCESS_ID_HEADER, CorrelationId, allocate
from .counters import APICounters
from .errors import (
    FailureKind,
    OperationCancelledError,
    OutcomeCategory,
    SerializationError,
    StopReason,
    TransportTimeoutError,
)
from .observers import (
    LogHook,
    MetricHook,
    ObserverSet,
    RequestObserver,
    ResponseObserver,
    emit_hooks,
    notify,
)
from .result import HTTP_REQUEST_FAILED, OperationResult, StructuredError, SystemFault
from .retry import RetryController
from .transport import HTTPExchange, HttpxTransport, Transport
from .wire import encode_json

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Operation(Generic[T]):
    """
    Static description of one protocol operation.

    ``path`` is a ``str.format`` template; its fields are filled from the
    request's ``path_params``, percent-encoded (``DE*GEF`` becomes
    ``DE%2AGEF``).
    """

    name: str
    path: str
    parse: ResponseParser[T]
    serialize: Callable[[Mapping[str, Any]], bytes] = encode_json

    def render_path(self, params: Mapping[str, Any]) -> str:
        encoded = {key: quote(str(value), safe="") for key, value in params.items()}
        try:
            return self.path.format(**encoded)
        except KeyError as exc:
            raise SerializationError(f"Missing path parameter {exc} for {self.name}!") from exc


@dataclass(frozen=True)
class OperationRequest:
    """
    One outbound request.

    ``event_tracking_id`` only travels to observers and results; it is never
    put on the wire.
    """

    payload: Mapping[str, Any]
    path_params: Mapping[str, Any] = field(default_factory=dict)
    timeout_s: float | None = None
    cancellation: asyncio.Event | None = field(default=None, compare=False, repr=False)
    event_tracking_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        if self.timeout_s is not None and self.timeout_s <= 0:
            raise ValueError("timeout_s must be > 0.")
        if not isinstance(self.payload, Mapping):
            raise TypeError("payload must be a mapping.")
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))
        object.__setattr__(self, "path_params", MappingProxyType(dict(self.path_params)))


async def _until_cancelled(aw: Awaitable[T], cancellation: asyncio.Event | None) -> T:
    """
    Await ``aw`` unless ``cancellation`` fires first.

    When the signal wins, the pending work is cancelled and awaited until it
    has unwound, then OperationCancelledError is raised.
    """
    if cancellation is None:
        return await aw

    task = asyncio.ensure_future(aw)
    if cancellation.is_set():
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise OperationCancelledError()

    waiter = asyncio.ensure_future(cancellation.wait())
    aborted = False
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not task.done():
            aborted = True
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    if aborted or task.cancelled():
        raise OperationCancelledError()
    return task.result()


@dataclass
class _ResultBuilder(Generic[T]):
    request: OperationRequest
    correlation_id: CorrelationId
    start: float

    def details(
        self,
        *,
        exchange: HTTPExchange | None,
        attempts: int,
        stop_reason: StopReason,
        failure: FailureKind | None = None,
    ) -> dict[str, Any]:
        details: dict[str, Any] = {
            "timestamp": exchange.timestamp if exchange is not None else datetime.now(UTC),
            "runtime_s": time.monotonic() - self.start,
            "http_response": exchange,
            "attempts": attempts,
            "stop_reason": stop_reason,
        }
        if failure is not None:
            details["failure"] = failure
        return details

    def system_error(
        self,
        message: str,
        *,
        stack_trace: str | None = None,
        exchange: HTTPExchange | None = None,
        attempts: int,
        stop_reason: StopReason,
        failure: FailureKind = FailureKind.SYSTEM_FAILURE,
    ) -> OperationResult[T]:
        return OperationResult.failed(
            self.request,
            SystemFault(message=message, stack_trace=stack_trace),
            self.correlation_id,
            **self.details(exchange=exchange, attempts=attempts, stop_reason=stop_reason, failure=failure),
        )

    def from_classification(
        self,
        classification: Classification,
        exchange: HTTPExchange | None,
        attempts: int,
    ) -> OperationResult[T]:
        category = classification.category

        if category is OutcomeCategory.SUCCESS:
            return OperationResult.success(
                self.request,
                classification.payload,
                self.correlation_id,
                **self.details(exchange=exchange, attempts=attempts, stop_reason=StopReason.TERMINAL_OUTCOME),
            )

        if category is OutcomeCategory.VALIDATION_ERROR and classification.validation_errors is not None:
            return OperationResult.bad_request(
                self.request,
                classification.validation_errors,
                self.correlation_id,
                **self.details(exchange=exchange, attempts=attempts, stop_reason=StopReason.TERMINAL_OUTCOME),
            )

        if category is OutcomeCategory.UNAUTHORIZED and classification.status_code is not None:
            return OperationResult.failed(
                self.request,
                StructuredError(classification.status_code),
                self.correlation_id,
                **self.details(
                    exchange=exchange,
                    attempts=attempts,
                    stop_reason=StopReason.TERMINAL_OUTCOME,
                    failure=FailureKind.AUTHORIZATION_REJECTION,
                ),
            )

        if category is OutcomeCategory.FORBIDDEN:
            return self.system_error(
                HTTP_REQUEST_FAILED,
                exchange=exchange,
                attempts=attempts,
                stop_reason=StopReason.TERMINAL_OUTCOME,
                failure=FailureKind.NETWORK_REJECTION,
            )

        if category is OutcomeCategory.MALFORMED_RESPONSE:
            return self.system_error(
                classification.error_message or HTTP_REQUEST_FAILED,
                stack_trace=classification.stack_trace,
                exchange=exchange,
                attempts=attempts,
                stop_reason=StopReason.TERMINAL_OUTCOME,
                failure=FailureKind.PARSE_FAILURE,
            )

        # Retries ran out without a terminal answer.
        return self.system_error(
            HTTP_REQUEST_FAILED,
            exchange=exchange,
            attempts=attempts,
            stop_reason=StopReason.MAX_RETRIES_EXHAUSTED,
            failure=(
                FailureKind.TRANSIENT_FAILURE
                if category is OutcomeCategory.TIMEOUT
                else FailureKind.SYSTEM_FAILURE
            ),
        )


class OperationExecutor:
    """
    Runs protocol operations against the hub.

    Parameters
    ----------
    transport:
        Anything implementing ``Transport``. Shared by all concurrent calls.

    config:
        Timeouts, retry budget and delay. Defaults to ``ExecutorConfig()``.

    retry:
        Optional RetryController overriding the one derived from ``config``.

    counters:
        Optional APICounters to update; one is created otherwise.

    on_metric / on_log:
        Optional observability hooks with the same signatures as the
        observers in ``hubcall.observers``. Events emitted:

          * "request" : a call started (attempt 0)
          * "retry"   : another attempt is scheduled after ``sleep_s``
          * "success" : the call returned a parsed response
          * "failure" : the call returned any other result

        Hook errors are logged and swallowed.

    caller:
        Object passed to observers as the sender. Defaults to the executor.

    Notes
    -----
    ``execute`` never raises for ``Exception`` subclasses: serialization,
    transport, parse and observer failures all come back as results.
    ``asyncio.CancelledError`` of the surrounding task still propagates.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        config: ExecutorConfig | None = None,
        retry: RetryController | None = None,
        counters: APICounters | None = None,
        on_metric: MetricHook | None = None,
        on_log: LogHook | None = None,
        caller: Any | None = None,
    ) -> None:
        self.transport = transport
        self.config = config or ExecutorConfig()
        self.retry = retry or RetryController.from_config(self.config)
        self.counters = counters if counters is not None else APICounters()
        self.on_metric = on_metric
        self.on_log = on_log
        self.caller = caller if caller is not None else self
        self._observers: dict[str, ObserverSet] = {}

    @classmethod
    def from_config(
        cls,
        config: ExecutorConfig,
        *,
        transport: Transport | None = None,
        **kwargs: Any,
    ) -> "OperationExecutor":
        """
        Construct an executor from an ExecutorConfig bundle.

        Without an explicit transport an HttpxTransport for
        ``config.remote_url`` is created.
        """
        if transport is None:
            transport = HttpxTransport(config.remote_url, user_agent=config.user_agent)
        return cls(transport, config=config, **kwargs)

    def observers(self, operation: Operation[Any] | str) -> ObserverSet:
        name = operation if isinstance(operation, str) else operation.name
        return self._observers.setdefault(name, ObserverSet())

    def add_request_observer(self, operation: Operation[Any] | str, observer: RequestObserver) -> None:
        self.observers(operation).on_request.append(observer)

    def add_response_observer(self, operation: Operation[Any] | str, observer: ResponseObserver) -> None:
        self.observers(operation).on_response.append(observer)

    def _emit(self, event: str, attempt: int, sleep_s: float, tags: dict[str, Any]) -> None:
        emit_hooks(event, attempt, sleep_s, tags, on_metric=self.on_metric, on_log=self.on_log)

    async def execute(self, operation: Operation[T], request: OperationRequest) -> OperationResult[T]:
        correlation_id = allocate()
        start = time.monotonic()
        counters = self.counters[operation.name]
        observers = self.observers(operation)

        counters.inc_requests_ok()
        await notify(
            observers.on_request,
            datetime.now(UTC),
            self.caller,
            request,
            event=f"{operation.name}.on_request",
        )
        self._emit("request", 0, 0.0, {"operation": operation.name})

        builder: _ResultBuilder[T] = _ResultBuilder(request, correlation_id, start)
        result = await self._run(operation, request, correlation_id, builder)

        if result.is_successful:
            counters.inc_responses_ok()
        else:
            counters.inc_responses_error()

        tags: dict[str, Any] = {"operation": operation.name}
        if result.http_response is not None:
            tags["status"] = result.http_response.status_code
        if result.failure is not None:
            tags["failure"] = result.failure.value
        if result.stop_reason is not None:
            tags["stop_reason"] = result.stop_reason.value
        self._emit("success" if result.is_successful else "failure", result.attempts, 0.0, tags)

        await notify(
            observers.on_response,
            datetime.now(UTC),
            self.caller,
            request,
            result,
            result.runtime_s or 0.0,
            event=f"{operation.name}.on_response",
        )
        return result

    async def _run(
        self,
        operation: Operation[T],
        request: OperationRequest,
        correlation_id: CorrelationId,
        builder: _ResultBuilder[T],
    ) -> OperationResult[T]:
        try:
            body = operation.serialize(request.payload)
            path = operation.render_path(request.path_params)
        except Exception as exc:
            return builder.system_error(
                str(exc) or type(exc).__name__,
                stack_trace=format_stack_trace(exc),
                attempts=0,
                stop_reason=StopReason.SERIALIZATION_ERROR,
            )

        headers = {PROCESS_ID_HEADER: correlation_id}
        timeout_s = request.timeout_s or self.config.request_timeout_s
        exchange: HTTPExchange | None = None
        attempts = 0

        while True:
            attempts += 1
            logger.debug(
                "%s attempt %d (Process-ID %s, tracking %s)",
                operation.name,
                attempts,
                correlation_id,
                request.event_tracking_id,
            )
            try:
                exchange = await _until_cancelled(
                    self.transport.send(path, headers=headers, body=body, timeout_s=timeout_s),
                    request.cancellation,
                )
            except OperationCancelledError as exc:
                return builder.system_error(
                    str(exc),
                    exchange=exchange,
                    attempts=attempts,
                    stop_reason=StopReason.CANCELLED,
                )
            except TransportTimeoutError as exc:
                if not self.retry.retry_transport_timeouts:
                    return self._transport_failure(builder, exc, attempts)
                exchange = None
                classification = Classification(category=OutcomeCategory.TIMEOUT, http_status=408)
            except Exception as exc:
                return self._transport_failure(builder, exc, attempts)
            else:
                if exchange.correlation_id is not None and exchange.correlation_id != correlation_id:
                    logger.debug(
                        "%s: hub echoed Process-ID %s for request %s",
                        operation.name,
                        exchange.correlation_id,
                        correlation_id,
                    )
                classification = self._classify(operation, exchange)

            if not self.retry.should_retry(classification.category, attempts - 1):
                return self._finish(builder, classification, exchange, attempts)

            sleep_s = self.retry.delay_before(attempts)
            category = classification.category
            self._emit(
                "retry",
                attempts,
                sleep_s,
                {
                    "operation": operation.name,
                    "category": category.name if category is not None else None,
                    "status": classification.http_status,
                },
            )
            try:
                await _until_cancelled(asyncio.sleep(sleep_s), request.cancellation)
            except OperationCancelledError as exc:
                return builder.system_error(
                    str(exc),
                    exchange=exchange,
                    attempts=attempts,
                    stop_reason=StopReason.CANCELLED,
                )

    @staticmethod
    def _transport_failure(builder: _ResultBuilder[T], exc: Exception, attempts: int) -> OperationResult[T]:
        return builder.system_error(
            str(exc) or type(exc).__name__,
            stack_trace=format_stack_trace(exc),
            attempts=attempts,
            stop_reason=StopReason.TRANSPORT_ERROR,
        )

    @staticmethod
    def _classify(operation: Operation[T], exchange: HTTPExchange) -> Classification:
        try:
            return classify(exchange.status_code, exchange.content_type, exchange.body, operation.parse)
        except Exception as exc:
            return Classification(
                category=OutcomeCategory.MALFORMED_RESPONSE,
                http_status=exchange.status_code,
                error_message=str(exc) or type(exc).__name__,
                stack_trace=format_stack_trace(exc),
            )

    @staticmethod
    def _finish(
        builder: _ResultBuilder[T],
        classification: Classification,
        exchange: HTTPExchange | None,
        attempts: int,
    ) -> OperationResult[T]:
        # the hub answered; a failure here keeps the exchange for diagnostics
        try:
            return builder.from_classification(classification, exchange, attempts)
        except Exception as exc:
            return builder.system_error(
                str(exc) or type(exc).__name__,
                stack_trace=format_stack_trace(exc),
                exchange=exchange,
                attempts=attempts,
                stop_reason=StopReason.TERMINAL_OUTCOME,
                failure=FailureKind.PARSE_FAILURE,
            )
