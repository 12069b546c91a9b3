"""
Async demo: HubClient against a local fake hub.

Run with:
    uv pip install -e .
    uv run python docs/snippets/local_hub_demo.py
"""

import asyncio
import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Mapping

from hubcall import ExecutorConfig, HubClient, OperationResult, constant_delay


class FakeHubHandler(BaseHTTPRequestHandler):
    cdr_count = 0

    def _reply(self, status: int, body: Any, content_type: str = "application/json") -> None:
        raw = body.encode("utf-8") if isinstance(body, str) else json.dumps(body).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Process-ID", self.headers.get("Process-ID", ""))
        self.end_headers()
        self.wfile.write(raw)

    def do_POST(self) -> None:  # noqa: N802 - BaseHTTPRequestHandler hook name
        length = int(self.headers.get("Content-Length", "0"))
        payload = json.loads(self.rfile.read(length) or b"{}")

        if self.path.endswith("/authorize/start"):
            if payload.get("Identification") is None:
                self._reply(
                    400,
                    {
                        "message": "Error!",
                        "validationErrors": [
                            {"fieldReference": "Identification", "errorMessage": "must not be null"}
                        ],
                    },
                )
                return
            self._reply(
                200,
                {
                    "AuthorizationStatus": "Authorized",
                    "StatusCode": {"Code": "000"},
                    "SessionID": "b2688855-7f00-0002-6d8e-48d498e00000",
                    "ProviderID": "DE-GDF",
                },
            )
            return
        if self.path.endswith("/authorize/stop"):
            self._reply(
                401,
                {"StatusCode": {"Code": "017", "Description": "Unauthorized Access", "AdditionalInfo": None}},
            )
            return
        if self.path.endswith("/charge-detail-record"):
            FakeHubHandler.cdr_count += 1
            if FakeHubHandler.cdr_count < 3:
                self._reply(503, "busy", content_type="text/plain")
                return
            self._reply(200, {"Result": True, "StatusCode": {"Code": "000"}})
            return
        self._reply(403, "<html><body>Forbidden</body></html>", content_type="text/html")

    def log_message(self, format: str, *args: object) -> None:
        return


def start_server() -> ThreadingHTTPServer:
    server = ThreadingHTTPServer(("127.0.0.1", 0), FakeHubHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server


def log_event(event: str, fields: Mapping[str, object]) -> None:
    if event != "retry":
        return
    print(f"[retry] op={fields.get('operation')} attempt={fields.get('attempt')} status={fields.get('status')}")


def print_result(label: str, result: OperationResult[Any]) -> None:
    print(f"\n=== {label} ===")
    print(json.dumps(result.to_json(), indent=2, default=str))


async def demo(base_url: str) -> None:
    config = ExecutorConfig(remote_url=base_url, retry_delay=constant_delay(0.1))
    async with HubClient(config=config, on_log=log_event) as hub:
        evse = {"OperatorID": "DE*GEF", "EvseID": "DE*GEF*E1234*1"}
        print_result(
            "authorize start",
            await hub.authorize_start("DE*GEF", {**evse, "Identification": {"RFIDMifareFamilyIdentification": {"UID": "1AA2BB"}}}),
        )
        print_result("authorize start, no identification", await hub.authorize_start("DE*GEF", evse))
        print_result("authorize stop", await hub.authorize_stop("DE*GEF", evse))
        print_result("charge detail record", await hub.send_charge_detail_record("DE*GEF", {"SessionID": "s-1"}))
        print_result("start notification", await hub.send_charging_start_notification({"SessionID": "s-1"}))
        print("\n=== counters ===")
        print(json.dumps(hub.counters.to_json(), indent=2))


if __name__ == "__main__":
    server = start_server()
    try:
        asyncio.run(demo(f"http://127.0.0.1:{server.server_port}"))
    finally:
        server.shutdown()
        server.server_close()
