"""
HTTP transport.

The transport performs the raw request/response exchange and nothing else:
no credentials, no classification, no retries. Anything implementing the
Transport protocol can be handed to the client (tests use in-memory fakes).
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol

import aiohttp

from authed_client.common.exceptions import TransportFailure
from authed_client.common.logging.decorators import LoggedClass
from authed_client.common.security import sanitize_url


@dataclass
class TransportResponse:
    """Status, headers and decoded body of one HTTP exchange."""

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Transport(Protocol):
    """The raw send capability consumed by the client and renewal client."""

    async def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> TransportResponse:
        """Perform one exchange; raise TransportFailure if no response arrives."""
        ...


class AiohttpTransport(LoggedClass):
    """
    Transport backed by a shared aiohttp.ClientSession.

    Provides:
    - Lazy session creation with a bounded connection pool
    - Concurrency limiting via semaphore
    - JSON request bodies and JSON/text response decoding
    - Mapping of aiohttp/timeout errors to TransportFailure

    Usage:
        async with AiohttpTransport(timeout_seconds=30) as transport:
            response = await transport.send("GET", url, headers={})
    """

    log_component = "transport"

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        max_concurrent: int = 20,
        default_headers: Optional[Mapping[str, str]] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.max_concurrent = max_concurrent
        self.default_headers = dict(default_headers or {})

        self._session: Optional[aiohttp.ClientSession] = None
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._closed = False

        super().__init__()

    async def __aenter__(self) -> "AiohttpTransport":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> None:
        """Create aiohttp session if not exists."""
        if self._closed:
            raise TransportFailure("Transport closed")
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.max_concurrent,
                limit_per_host=self.max_concurrent,
            )
            # Auth header is per-request: the credential may change between calls
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers=self.default_headers,
            )
            self._semaphore = asyncio.Semaphore(self.max_concurrent)

    async def close(self) -> None:
        """Close the HTTP session. A closed transport cannot be reopened."""
        self._closed = True
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    @property
    def closed(self) -> bool:
        return self._session is None or self._session.closed

    @staticmethod
    async def _decode_body(response: aiohttp.ClientResponse) -> Any:
        text = await response.text()
        if not text:
            return None
        if "json" in (response.content_type or ""):
            try:
                return json.loads(text)
            except ValueError:
                return text
        return text

    async def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> TransportResponse:
        """
        Perform one HTTP exchange.

        Args:
            method: HTTP method
            url: Absolute URL
            headers: Request headers (merged over the session defaults)
            body: JSON-serializable body, raw string/bytes, or None
            params: Query parameters
            timeout: Total timeout override in seconds

        Returns:
            TransportResponse for any status code

        Raises:
            TransportFailure: On connection errors, timeout, or after close()
        """
        await self._ensure_session()
        assert self._session is not None and self._semaphore is not None  # for mypy

        total = timeout if timeout is not None else self.timeout_seconds
        kwargs: Dict[str, Any] = {
            "params": params,
            "headers": dict(headers),
            "timeout": aiohttp.ClientTimeout(total=total),
        }
        if isinstance(body, (str, bytes)):
            kwargs["data"] = body
        elif body is not None:
            kwargs["json"] = body

        async with self._semaphore:
            try:
                async with self._session.request(method, url, **kwargs) as response:
                    decoded = await self._decode_body(response)
                    return TransportResponse(
                        status=response.status,
                        headers=dict(response.headers),
                        body=decoded,
                    )

            except asyncio.TimeoutError as e:
                raise TransportFailure(
                    f"Timeout after {total}s: {method} {sanitize_url(url)}",
                    timed_out=True,
                    cause=e,
                ) from e

            except aiohttp.ClientError as e:
                raise TransportFailure(
                    f"Connection error: {method} {sanitize_url(url)}",
                    cause=e,
                ) from e
