import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

import httpx

from .config import DEFAULT_USER_AGENT
from .correlation import PROCESS_ID_HEADER
from .errors import TransportError, TransportTimeoutError

logger = logging.getLogger(__name__)

JSON_UTF8 = "application/json; charset=utf-8"


@dataclass(frozen=True)
class HTTPExchange:
    """One HTTP response as seen by the executor."""

    status_code: int
    content_type: str | None
    body: bytes
    headers: Mapping[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    runtime_s: float = 0.0
    correlation_id: str | None = None

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class Transport(Protocol):
    async def send(
        self,
        path: str,
        *,
        headers: Mapping[str, str],
        body: bytes,
        timeout_s: float,
    ) -> HTTPExchange:
        """
        POST ``body`` to ``path`` and return the hub's response.

        Raises TransportTimeoutError when the hub does not answer in time and
        TransportError for any other connect or I/O failure.
        """
        ...


class HttpxTransport:
    """
    Transport on top of ``httpx.AsyncClient``.

    TLS client certificates, proxies and pool limits belong on the client;
    pass a preconfigured one in to use them. A client created here is closed
    by ``aclose``; an injected one is left to its owner.
    """

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient()

    async def send(
        self,
        path: str,
        *,
        headers: Mapping[str, str],
        body: bytes,
        timeout_s: float,
    ) -> HTTPExchange:
        request_headers = {
            "Accept": JSON_UTF8,
            "Content-Type": JSON_UTF8,
            "User-Agent": self.user_agent,
            **headers,
        }
        url = self.base_url + path
        start = time.monotonic()
        try:
            response = await self._client.post(
                url,
                content=body,
                headers=request_headers,
                timeout=timeout_s,
            )
        except httpx.TimeoutException as exc:
            raise TransportTimeoutError(f"HTTP request to {url} timed out after {timeout_s}s") from exc
        except httpx.HTTPError as exc:
            raise TransportError(str(exc) or type(exc).__name__) from exc

        runtime_s = time.monotonic() - start
        logger.debug("POST %s -> %s in %.3fs", url, response.status_code, runtime_s)
        return HTTPExchange(
            status_code=response.status_code,
            content_type=response.headers.get("Content-Type"),
            body=response.content,
            headers=dict(response.headers),
            timestamp=datetime.now(UTC),
            runtime_s=runtime_s,
            correlation_id=response.headers.get(PROCESS_ID_HEADER),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
