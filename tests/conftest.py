"""
pytest configuration for authed_client tests.

Adds src directory to Python path for imports and provides in-memory fakes
for the transport and the remote API.
"""

import asyncio
import inspect
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from authed_client.auth.coordinator import RefreshCoordinator  # noqa: E402
from authed_client.auth.models import CredentialPair  # noqa: E402
from authed_client.auth.renewal import RenewalClient  # noqa: E402
from authed_client.auth.signals import SessionSignal  # noqa: E402
from authed_client.auth.store import CredentialStore  # noqa: E402
from authed_client.client import AuthenticatedClient  # noqa: E402
from authed_client.common.logging.context import clear_log_context  # noqa: E402
from authed_client.transport import TransportResponse  # noqa: E402

BASE_URL = "https://api.example.com"


def json_response(status: int, body: Any = None, headers: Optional[Dict[str, str]] = None) -> TransportResponse:
    return TransportResponse(
        status=status,
        headers=headers or {"Content-Type": "application/json"},
        body=body,
    )


def auth_body(access: str, refresh: str, user: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Enveloped login/refresh payload as the server sends it."""
    data: Dict[str, Any] = {
        "tokens": {
            "accessToken": access,
            "refreshToken": refresh,
            "expiresAt": "2030-01-01T00:00:00Z",
            "tokenType": "Bearer",
        }
    }
    if user is not None:
        data["user"] = user
    return {"success": True, "message": "ok", "data": data}


def invalid_token_body() -> Dict[str, Any]:
    return {
        "success": False,
        "error": {"code": "INVALID_TOKEN", "message": "Invalid or expired token"},
    }


@dataclass
class RecordedCall:
    """One exchange seen by FakeTransport."""

    method: str
    url: str
    headers: Dict[str, str]
    body: Any = None
    params: Optional[Dict[str, Any]] = None
    timeout: Optional[float] = None

    @property
    def path(self) -> str:
        return urlparse(self.url).path

    @property
    def bearer(self) -> Optional[str]:
        value = self.headers.get("Authorization")
        if value and value.startswith("Bearer "):
            return value[len("Bearer "):]
        return None


Handler = Callable[[RecordedCall], Any]


@dataclass
class FakeTransport:
    """
    In-memory Transport.

    Routes (method, path) to handlers. A handler receives the RecordedCall
    and returns a TransportResponse (or an awaitable of one), or raises.
    Unrouted calls get a 404.
    """

    calls: List[RecordedCall] = field(default_factory=list)
    routes: Dict[Tuple[str, str], Handler] = field(default_factory=dict)

    def route(self, method: str, path: str, handler: Handler) -> None:
        self.routes[(method.upper(), path)] = handler

    def calls_to(self, path: str) -> List[RecordedCall]:
        return [c for c in self.calls if c.path == path]

    async def send(self, method, url, headers, body=None, params=None, timeout=None):
        call = RecordedCall(
            method=method,
            url=url,
            headers=dict(headers),
            body=body,
            params=params,
            timeout=timeout,
        )
        self.calls.append(call)
        handler = self.routes.get((method.upper(), call.path))
        if handler is None:
            return json_response(404, {"success": False, "message": "Not found"})
        result = handler(call)
        if inspect.isawaitable(result):
            result = await result
        return result


class FakeApi:
    """
    Remote API with bearer-protected resources and a refresh endpoint.

    Exactly one access credential is valid at a time. A successful refresh
    issues A{n}/R{n} and invalidates the previous pair.
    """

    def __init__(
        self,
        transport: FakeTransport,
        access: str = "A1",
        refresh: str = "R1",
        refresh_delay: float = 0.05,
    ):
        self.transport = transport
        self.valid_access = access
        self.valid_refresh = refresh
        self.refresh_delay = refresh_delay
        self.generation = 1
        self.reject_refresh = False
        transport.route("POST", "/auth/refresh", self._refresh)

    def protect(self, method: str, path: str, body: Any = None) -> None:
        """Serve ``body`` on path to callers holding the valid access credential."""

        def handler(call: RecordedCall) -> TransportResponse:
            if call.bearer != self.valid_access:
                return json_response(401, invalid_token_body())
            return json_response(200, {"success": True, "data": body or {"path": path}})

        self.transport.route(method, path, handler)

    async def _refresh(self, call: RecordedCall) -> TransportResponse:
        await asyncio.sleep(self.refresh_delay)
        presented = (call.body or {}).get("refreshToken")
        if self.reject_refresh or presented != self.valid_refresh:
            return json_response(401, invalid_token_body())
        self.generation += 1
        self.valid_access = f"A{self.generation}"
        self.valid_refresh = f"R{self.generation}"
        return json_response(200, auth_body(self.valid_access, self.valid_refresh))


@pytest.fixture(autouse=True)
def reset_log_context():
    """Keep context fields from leaking between tests."""
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def fake_api(transport):
    return FakeApi(transport)


@pytest.fixture
def store():
    store = CredentialStore()
    store.set(CredentialPair("A1", "R1"))
    return store


@pytest.fixture
def logout_signal():
    return SessionSignal("logout")


@pytest.fixture
def renewal_client(transport):
    return RenewalClient(transport, BASE_URL, timeout_seconds=5.0)


@pytest.fixture
def coordinator(store, renewal_client, logout_signal):
    return RefreshCoordinator(store, renewal_client, logout_signal, renewal_timeout_seconds=2.0)


@pytest.fixture
def client(transport, store, coordinator):
    return AuthenticatedClient(
        transport,
        store,
        coordinator,
        BASE_URL,
        default_headers={"Content-Type": "application/json"},
    )
