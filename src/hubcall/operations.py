"""
The CPO operations of the hub's OICP 2.3 API.

Each operation is an ``Operation`` value; ``HubClient`` binds them to one
``OperationExecutor`` and exposes one coroutine per operation.
"""

import asyncio
from collections.abc import Mapping
from types import TracebackType
from typing import Any

from .config import ExecutorConfig
from .counters import APICounters
from .executor import Operation, OperationExecutor, OperationRequest
from .observers import LogHook, MetricHook, RequestObserver, ResponseObserver
from .result import OperationResult
from .retry import RetryController
from .transport import HttpxTransport, Transport
from .wire import Acknowledgement, AuthenticationDataResponse, AuthorizationResponse

CHARGING_NOTIFICATIONS_PATH = "/api/oicp/notificationmgmt/v11/charging-notifications"

AUTHORIZE_START: Operation[AuthorizationResponse] = Operation(
    name="AuthorizeStart",
    path="/api/oicp/charging/v21/operators/{operator_id}/authorize/start",
    parse=AuthorizationResponse.from_json,
)

AUTHORIZE_STOP: Operation[AuthorizationResponse] = Operation(
    name="AuthorizeStop",
    path="/api/oicp/charging/v21/operators/{operator_id}/authorize/stop",
    parse=AuthorizationResponse.from_json,
)

SEND_CHARGING_START_NOTIFICATION: Operation[Acknowledgement] = Operation(
    name="SendChargingStartNotification",
    path=CHARGING_NOTIFICATIONS_PATH,
    parse=Acknowledgement.from_json,
)

SEND_CHARGING_PROGRESS_NOTIFICATION: Operation[Acknowledgement] = Operation(
    name="SendChargingProgressNotification",
    path=CHARGING_NOTIFICATIONS_PATH,
    parse=Acknowledgement.from_json,
)

SEND_CHARGING_END_NOTIFICATION: Operation[Acknowledgement] = Operation(
    name="SendChargingEndNotification",
    path=CHARGING_NOTIFICATIONS_PATH,
    parse=Acknowledgement.from_json,
)

SEND_CHARGING_ERROR_NOTIFICATION: Operation[Acknowledgement] = Operation(
    name="SendChargingErrorNotification",
    path=CHARGING_NOTIFICATIONS_PATH,
    parse=Acknowledgement.from_json,
)

SEND_CHARGE_DETAIL_RECORD: Operation[Acknowledgement] = Operation(
    name="SendChargeDetailRecord",
    path="/api/oicp/cdrmgmt/v22/operators/{operator_id}/charge-detail-record",
    parse=Acknowledgement.from_json,
)

PULL_AUTHENTICATION_DATA: Operation[AuthenticationDataResponse] = Operation(
    name="PullAuthenticationData",
    path="/api/oicp/authdata/v21/operators/{operator_id}/pull-request",
    parse=AuthenticationDataResponse.from_json,
)

OPERATIONS: tuple[Operation[Any], ...] = (
    AUTHORIZE_START,
    AUTHORIZE_STOP,
    SEND_CHARGING_START_NOTIFICATION,
    SEND_CHARGING_PROGRESS_NOTIFICATION,
    SEND_CHARGING_END_NOTIFICATION,
    SEND_CHARGING_ERROR_NOTIFICATION,
    SEND_CHARGE_DETAIL_RECORD,
    PULL_AUTHENTICATION_DATA,
)

# notification "Type" discriminator, added when the payload omits it
_NOTIFICATION_TYPES = {
    SEND_CHARGING_START_NOTIFICATION.name: "Start",
    SEND_CHARGING_PROGRESS_NOTIFICATION.name: "Progress",
    SEND_CHARGING_END_NOTIFICATION.name: "End",
    SEND_CHARGING_ERROR_NOTIFICATION.name: "Error",
}


class HubClient:
    """
    CPO client for the hub.

    Usage:
        async with HubClient(config=ExecutorConfig(remote_url=...)) as hub:
            result = await hub.authorize_start("DE*GEF", payload)
            if result.is_successful and result.response.is_authorized:
                ...

    Every method returns an ``OperationResult`` and never raises for
    protocol, transport or parse failures. Keyword options
    (``timeout_s``, ``cancellation``, ``event_tracking_id``) are forwarded
    to ``OperationRequest``.

    Programming errors are raised before anything is counted or sent:
    ``ValueError`` for a non-positive ``timeout_s``, ``TypeError`` for a
    payload that is not a mapping or an unknown keyword option.
    """

    def __init__(
        self,
        transport: Transport | None = None,
        *,
        config: ExecutorConfig | None = None,
        retry: RetryController | None = None,
        on_metric: MetricHook | None = None,
        on_log: LogHook | None = None,
    ) -> None:
        self.config = config or ExecutorConfig()
        self._owned_transport: HttpxTransport | None = None
        if transport is None:
            transport = self._owned_transport = HttpxTransport(
                self.config.remote_url,
                user_agent=self.config.user_agent,
            )
        self.executor = OperationExecutor(
            transport,
            config=self.config,
            retry=retry,
            counters=APICounters(tuple(op.name for op in OPERATIONS)),
            on_metric=on_metric,
            on_log=on_log,
            caller=self,
        )

    async def __aenter__(self) -> "HubClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owned_transport is not None:
            await self._owned_transport.aclose()

    @property
    def counters(self) -> APICounters:
        return self.executor.counters

    def on_request(self, operation: Operation[Any] | str, observer: RequestObserver) -> None:
        self.executor.add_request_observer(operation, observer)

    def on_response(self, operation: Operation[Any] | str, observer: ResponseObserver) -> None:
        self.executor.add_response_observer(operation, observer)

    async def _call(
        self,
        operation: Operation[Any],
        payload: Mapping[str, Any],
        path_params: Mapping[str, Any] | None = None,
        *,
        timeout_s: float | None = None,
        cancellation: asyncio.Event | None = None,
        event_tracking_id: str | None = None,
    ) -> OperationResult[Any]:
        options: dict[str, Any] = {"timeout_s": timeout_s, "cancellation": cancellation}
        if event_tracking_id is not None:
            options["event_tracking_id"] = event_tracking_id
        request = OperationRequest(payload=payload, path_params=path_params or {}, **options)
        return await self.executor.execute(operation, request)

    async def _notify(
        self,
        operation: Operation[Acknowledgement],
        payload: Mapping[str, Any],
        **options: Any,
    ) -> OperationResult[Acknowledgement]:
        body = {"Type": _NOTIFICATION_TYPES[operation.name], **payload}
        return await self._call(operation, body, **options)

    async def authorize_start(
        self, operator_id: str, payload: Mapping[str, Any], **options: Any
    ) -> OperationResult[AuthorizationResponse]:
        return await self._call(AUTHORIZE_START, payload, {"operator_id": operator_id}, **options)

    async def authorize_stop(
        self, operator_id: str, payload: Mapping[str, Any], **options: Any
    ) -> OperationResult[AuthorizationResponse]:
        return await self._call(AUTHORIZE_STOP, payload, {"operator_id": operator_id}, **options)

    async def send_charging_start_notification(
        self, payload: Mapping[str, Any], **options: Any
    ) -> OperationResult[Acknowledgement]:
        return await self._notify(SEND_CHARGING_START_NOTIFICATION, payload, **options)

    async def send_charging_progress_notification(
        self, payload: Mapping[str, Any], **options: Any
    ) -> OperationResult[Acknowledgement]:
        return await self._notify(SEND_CHARGING_PROGRESS_NOTIFICATION, payload, **options)

    async def send_charging_end_notification(
        self, payload: Mapping[str, Any], **options: Any
    ) -> OperationResult[Acknowledgement]:
        return await self._notify(SEND_CHARGING_END_NOTIFICATION, payload, **options)

    async def send_charging_error_notification(
        self, payload: Mapping[str, Any], **options: Any
    ) -> OperationResult[Acknowledgement]:
        return await self._notify(SEND_CHARGING_ERROR_NOTIFICATION, payload, **options)

    async def send_charge_detail_record(
        self, operator_id: str, payload: Mapping[str, Any], **options: Any
    ) -> OperationResult[Acknowledgement]:
        return await self._call(SEND_CHARGE_DETAIL_RECORD, payload, {"operator_id": operator_id}, **options)

    async def pull_authentication_data(
        self, operator_id: str, payload: Mapping[str, Any], **options: Any
    ) -> OperationResult[AuthenticationDataResponse]:
        return await self._call(PULL_AUTHENTICATION_DATA, payload, {"operator_id": operator_id}, **options)
