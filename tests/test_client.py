# tests/test_client.py


import asyncio
import json
from typing import Any

import httpx
import pytest

from hubcall.config import ExecutorConfig
from hubcall.errors import FailureKind, StopReason, TransportError, TransportTimeoutError
from hubcall.operations import (
    AUTHORIZE_START,
    OPERATIONS,
    PULL_AUTHENTICATION_DATA,
    HubClient,
)
from hubcall.result import ResultKind
from hubcall.testing import FakeTransport, RecordingObserver, instant_retries, json_exchange
from hubcall.transport import JSON_UTF8, HttpxTransport
from hubcall.wire import AuthenticationDataResponse, AuthorizationResponse

ACK = {"Result": True, "StatusCode": {"Code": "000"}}
AUTHORIZED = {
    "AuthorizationStatus": "Authorized",
    "StatusCode": {"Code": "000", "Description": None, "AdditionalInfo": None},
    "SessionID": "b2688855-7f00-0002-6d8e-48d498e00000",
    "ProviderID": "DE-GDF",
}


def test_operations_table() -> None:
    assert [op.name for op in OPERATIONS] == [
        "AuthorizeStart",
        "AuthorizeStop",
        "SendChargingStartNotification",
        "SendChargingProgressNotification",
        "SendChargingEndNotification",
        "SendChargingErrorNotification",
        "SendChargeDetailRecord",
        "PullAuthenticationData",
    ]


@pytest.mark.parametrize(
    "method, expected_path",
    [
        ("authorize_start", "/api/oicp/charging/v21/operators/DE%2AGEF/authorize/start"),
        ("authorize_stop", "/api/oicp/charging/v21/operators/DE%2AGEF/authorize/stop"),
        ("send_charge_detail_record", "/api/oicp/cdrmgmt/v22/operators/DE%2AGEF/charge-detail-record"),
        ("pull_authentication_data", "/api/oicp/authdata/v21/operators/DE%2AGEF/pull-request"),
    ],
)
def test_operator_scoped_paths(method: str, expected_path: str) -> None:
    transport = FakeTransport([json_exchange(200, AUTHORIZED if "authorize" in method else ACK)])
    hub = HubClient(transport, retry=instant_retries())

    asyncio.run(getattr(hub, method)("DE*GEF", {"OperatorID": "DE*GEF"}))

    assert transport.sends[0].path == expected_path


@pytest.mark.parametrize(
    "method, notification_type",
    [
        ("send_charging_start_notification", "Start"),
        ("send_charging_progress_notification", "Progress"),
        ("send_charging_end_notification", "End"),
        ("send_charging_error_notification", "Error"),
    ],
)
def test_notifications_share_path_and_carry_type(method: str, notification_type: str) -> None:
    transport = FakeTransport([json_exchange(200, ACK)])
    hub = HubClient(transport, retry=instant_retries())

    result = asyncio.run(getattr(hub, method)({"SessionID": "s-1"}))

    assert result.is_successful is True
    send = transport.sends[0]
    assert send.path == "/api/oicp/notificationmgmt/v11/charging-notifications"
    assert send.json() == {"Type": notification_type, "SessionID": "s-1"}


def test_explicit_notification_type_is_kept() -> None:
    transport = FakeTransport([json_exchange(200, ACK)])
    hub = HubClient(transport, retry=instant_retries())

    asyncio.run(hub.send_charging_error_notification({"Type": "Error", "ErrorType": "ConnectorError"}))

    assert transport.sends[0].json()["Type"] == "Error"


def test_authorize_start_result_and_counters() -> None:
    transport = FakeTransport([json_exchange(200, AUTHORIZED)])
    hub = HubClient(transport, retry=instant_retries())

    result = asyncio.run(
        hub.authorize_start("DE*GEF", {"EvseID": "DE*GEF*E1*1"}, timeout_s=3.0, event_tracking_id="evt-42")
    )

    assert isinstance(result.response, AuthorizationResponse)
    assert result.response.is_authorized is True
    assert result.request.event_tracking_id == "evt-42"
    assert transport.sends[0].timeout_s == 3.0

    counters = hub.counters.to_json()
    assert set(counters) == {op.name for op in OPERATIONS}
    assert counters["AuthorizeStart"] == {"requests_ok": 1, "responses_ok": 1, "responses_error": 0}
    assert counters["AuthorizeStop"] == {"requests_ok": 0, "responses_ok": 0, "responses_error": 0}


def test_client_observers_receive_client_as_caller() -> None:
    transport = FakeTransport([json_exchange(200, AUTHORIZED)])
    hub = HubClient(transport, retry=instant_retries())
    recorder = RecordingObserver()
    hub.on_request(AUTHORIZE_START, recorder.on_request)
    hub.on_response("AuthorizeStart", recorder.on_response)

    asyncio.run(hub.authorize_start("DE*GEF", {}))
    asyncio.run(hub.authorize_stop("DE*GEF", {}))

    assert recorder.kinds == ["request", "response"]
    assert all(event.caller is hub for event in recorder.events)


def _mock_client(handler: Any) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_httpx_transport_posts_json_with_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"ProviderAuthenticationData": [], "StatusCode": {"Code": "000"}},
            headers={"Process-ID": request.headers["Process-ID"]},
        )

    client = _mock_client(handler)
    transport = HttpxTransport("https://hub.test/", client=client, user_agent="test-agent")
    hub = HubClient(transport, retry=instant_retries())

    result = asyncio.run(hub.pull_authentication_data("DE*GEF", {"ProviderIDs": ["DE-GDF"]}))

    assert result.kind is ResultKind.RESPONSE
    assert isinstance(result.response, AuthenticationDataResponse)
    request = seen[0]
    assert request.method == "POST"
    assert request.url.raw_path == b"/api/oicp/authdata/v21/operators/DE%2AGEF/pull-request"
    assert request.headers["Content-Type"] == JSON_UTF8
    assert request.headers["Accept"] == JSON_UTF8
    assert request.headers["User-Agent"] == "test-agent"
    assert request.headers["Process-ID"] == result.correlation_id
    assert json.loads(request.content) == {"ProviderIDs": ["DE-GDF"]}
    assert result.http_response is not None
    assert result.http_response.correlation_id == result.correlation_id
    assert result.http_response.runtime_s >= 0.0

    asyncio.run(transport.aclose())
    assert client.is_closed is False
    asyncio.run(client.aclose())


def test_httpx_transport_maps_timeouts_and_errors() -> None:
    def timeout_handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    def error_handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def send(handler: Any) -> None:
        async with _mock_client(handler) as client:
            transport = HttpxTransport("https://hub.test", client=client)
            await transport.send("/x", headers={}, body=b"{}", timeout_s=1.0)

    with pytest.raises(TransportTimeoutError):
        asyncio.run(send(timeout_handler))
    with pytest.raises(TransportError) as info:
        asyncio.run(send(error_handler))
    assert not isinstance(info.value, TransportTimeoutError)


def test_end_to_end_retry_over_httpx() -> None:
    statuses = iter([503, 408, 200])

    def handler(request: httpx.Request) -> httpx.Response:
        status = next(statuses)
        if status == 200:
            return httpx.Response(200, json=AUTHORIZED)
        return httpx.Response(status, text="try again")

    async def run() -> Any:
        async with _mock_client(handler) as client:
            hub = HubClient(HttpxTransport("https://hub.test", client=client), retry=instant_retries())
            return await hub.authorize_start("DE*GEF", {})

    result = asyncio.run(run())

    assert result.is_successful is True
    assert result.attempts == 3


def test_end_to_end_connect_error_is_system_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def run() -> Any:
        async with _mock_client(handler) as client:
            hub = HubClient(HttpxTransport("https://hub.test", client=client), retry=instant_retries())
            return await hub.send_charge_detail_record("DE*GEF", {"SessionID": "s-1"})

    result = asyncio.run(run())

    assert result.failure is FailureKind.SYSTEM_FAILURE
    assert result.stop_reason is StopReason.TRANSPORT_ERROR
    assert result.error is not None and "connection refused" in result.error.message


def test_client_context_manager_closes_owned_transport() -> None:
    async def run() -> HubClient:
        async with HubClient(config=ExecutorConfig(remote_url="https://hub.test")) as hub:
            assert isinstance(hub.executor.transport, HttpxTransport)
        return hub

    hub = asyncio.run(run())
    transport = hub.executor.transport
    assert isinstance(transport, HttpxTransport)
    assert transport._client.is_closed is True


def test_client_rejects_programming_errors_before_counting() -> None:
    transport = FakeTransport([json_exchange(200, AUTHORIZED)])
    hub = HubClient(transport, retry=instant_retries())

    with pytest.raises(ValueError):
        asyncio.run(hub.authorize_start("DE*GEF", {}, timeout_s=0))
    with pytest.raises(TypeError):
        asyncio.run(hub.authorize_start("DE*GEF", ["not", "a", "mapping"]))  # type: ignore[arg-type]

    assert transport.sends == []
    assert hub.counters["AuthorizeStart"].requests_ok == 0
