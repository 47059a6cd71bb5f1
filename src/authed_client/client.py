"""
Authenticated API client (request dispatcher).

Every outgoing call gets the current access credential and a fresh
correlation id attached. Every response is classified:

- success: returned as ApiResponse
- credential expired (401 on a call that carried a bearer credential and
  does not target an authentication endpoint): routed to the refresh
  coordinator, which renews once and replays the call
- anything else: raised as a typed ApiError

Other failures are never retried here, and the dispatcher never changes
the credential store.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urljoin

from authed_client.auth.coordinator import RefreshCoordinator
from authed_client.auth.store import CredentialStore
from authed_client.common.exceptions import (
    ApiError,
    CredentialExpired,
    TransportFailure,
    error_for_response,
)
from authed_client.common.logging.context import log_context
from authed_client.common.logging.decorators import LoggedClass
from authed_client.common.security import (
    AUTH_PATH_PREFIX,
    is_auth_endpoint,
    sanitize_body,
    sanitize_url,
)
from authed_client.transport import Transport, TransportResponse


@dataclass
class RequestSpec:
    """
    Description of one API call.

    Replays re-issue the same spec, so it must not be mutated by the
    dispatcher.
    """

    method: str
    path: str  # Relative to the client's base_url, or absolute
    params: Optional[Dict[str, Any]] = None
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class ApiResponse:
    """Successful API response."""

    status: int
    headers: Dict[str, str]
    body: Any
    correlation_id: str
    request_id: Optional[str] = None  # Server-echoed request id, if any

    @property
    def data(self) -> Any:
        """Body with a ``{"success": true, "data": ...}`` envelope unwrapped."""
        body = self.body
        if isinstance(body, Mapping) and body.get("success") is True and "data" in body:
            return body["data"]
        return body


def is_credential_expired(
    status: int,
    had_credential: bool,
    url: str,
    auth_path_prefix: str = AUTH_PATH_PREFIX,
) -> bool:
    """
    Decide whether a response means "the access credential expired".

    A 401 from an authentication endpoint is a failed sign-in or renewal,
    and a 401 on an anonymous call is a plain authentication failure;
    neither can be fixed by renewing.
    """
    return status == 401 and had_credential and not is_auth_endpoint(url, auth_path_prefix)


def _header_value(headers: Mapping[str, str], name: str) -> Optional[str]:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


class AuthenticatedClient(LoggedClass):
    """
    Client for calls that need the session's access credential.

    Usage:
        client = AuthenticatedClient(transport, store, coordinator, "https://api.example.com")
        response = await client.get("/users/profile")
        profile = response.data

    Args:
        transport: Raw send capability
        store: Credential store (read only)
        coordinator: Refresh coordinator shared by every call of the session
        base_url: Base URL for relative paths
        default_headers: Headers sent with every call
        max_replay_depth: Highest replay depth whose expiry may still go
            through the coordinator; deeper expiries raise CredentialExpired
        correlation_header: Header carrying the per-call correlation id
        auth_path_prefix: Path prefix identifying authentication endpoints
        timeout_seconds: Per-call timeout handed to the transport
        session_id: Session identifier attached to the log context of every call
    """

    log_component = "client"

    def __init__(
        self,
        transport: Transport,
        store: CredentialStore,
        coordinator: RefreshCoordinator,
        base_url: str,
        default_headers: Optional[Mapping[str, str]] = None,
        max_replay_depth: int = 1,
        correlation_header: str = "X-Request-ID",
        auth_path_prefix: str = AUTH_PATH_PREFIX,
        timeout_seconds: Optional[float] = None,
        session_id: Optional[str] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.default_headers = dict(default_headers or {})
        self.max_replay_depth = max_replay_depth
        self.correlation_header = correlation_header
        self.auth_path_prefix = auth_path_prefix
        self.timeout_seconds = timeout_seconds
        self.session_id = session_id

        self._transport = transport
        self._store = store
        self._coordinator = coordinator

        super().__init__()

    def build_url(self, path: str) -> str:
        """Resolve a path against base_url; absolute URLs pass through."""
        if path.startswith(("http://", "https://")):
            return path
        return urljoin(self.base_url + "/", path.lstrip("/"))

    def _build_headers(self, spec: RequestSpec, correlation_id: str) -> Dict[str, str]:
        headers = dict(self.default_headers)
        headers.update(spec.headers)
        access = self._store.access_credential()
        if access:
            headers["Authorization"] = f"Bearer {access}"
        headers[self.correlation_header] = correlation_id
        return headers

    async def send(self, spec: RequestSpec) -> ApiResponse:
        """
        Send one call, renewing the credential once if it has expired.

        A stored credential already past its stated expiry is renewed before
        the call is sent; otherwise expiry is detected from the response.

        Returns:
            ApiResponse of the call (or of its replay)

        Raises:
            CredentialExpired: Still expired after the allowed replays
            RenewalRejected: Renewal refused; the session has ended
            TransportFailure: No response (call or renewal)
            ApiError: Any other classified failure
        """
        session_fields = {"session_id": self.session_id} if self.session_id else {}
        with log_context(**session_fields):
            if self._past_local_expiry(spec):
                self._log(
                    logging.INFO,
                    "Access credential past its stated expiry; renewing before send",
                    api_method=spec.method,
                    url=sanitize_url(self.build_url(spec.path)),
                )
                return await self._coordinator.handle_expiry(
                    lambda: self._dispatch(spec, 0)
                )
            return await self._dispatch(spec, replay_depth=0)

    def _past_local_expiry(self, spec: RequestSpec) -> bool:
        if is_auth_endpoint(self.build_url(spec.path), self.auth_path_prefix):
            return False
        pair = self._store.get()
        return pair is not None and pair.is_expired()

    async def _dispatch(self, spec: RequestSpec, replay_depth: int) -> ApiResponse:
        correlation_id = str(uuid.uuid4())
        url = self.build_url(spec.path)
        headers = self._build_headers(spec, correlation_id)
        had_credential = "Authorization" in headers

        with log_context(correlation_id=correlation_id):
            self._log(
                logging.DEBUG,
                "API request",
                api_method=spec.method,
                url=sanitize_url(url),
                body=sanitize_body(spec.body, url, self.auth_path_prefix),
                replay_depth=replay_depth,
            )

            try:
                response = await self._transport.send(
                    spec.method,
                    url,
                    headers=headers,
                    body=spec.body,
                    params=spec.params,
                    timeout=self.timeout_seconds,
                )
            except TransportFailure as e:
                e.request_id = correlation_id
                self._log_exception(
                    e,
                    "API request failed without response",
                    level=logging.WARNING,
                    include_traceback=False,
                    api_method=spec.method,
                    url=sanitize_url(url),
                    timed_out=e.timed_out,
                )
                raise

            self._log(
                logging.DEBUG,
                "API response",
                http_status=response.status,
                body=sanitize_body(response.body, url, self.auth_path_prefix),
            )

            if response.ok:
                return self._to_api_response(response, correlation_id)

            if is_credential_expired(
                response.status, had_credential, url, self.auth_path_prefix
            ):
                if replay_depth > self.max_replay_depth:
                    self._log(
                        logging.WARNING,
                        "Credential still expired after replay; giving up",
                        api_method=spec.method,
                        url=sanitize_url(url),
                        replay_depth=replay_depth,
                    )
                    raise CredentialExpired(
                        "Access credential expired after renewal",
                        status_code=response.status,
                        request_id=correlation_id,
                    )

                self._log(
                    logging.INFO,
                    "Access credential expired; waiting for renewal",
                    api_method=spec.method,
                    url=sanitize_url(url),
                    replay_depth=replay_depth,
                )
                next_depth = replay_depth + 1
                return await self._coordinator.handle_expiry(
                    lambda: self._dispatch(spec, next_depth)
                )

            error: ApiError = error_for_response(
                response.status,
                sanitize_url(url),
                response.body,
                response.headers,
                request_id=correlation_id,
            )
            self._log(
                logging.WARNING,
                "API request failed",
                api_method=spec.method,
                url=sanitize_url(url),
                http_status=response.status,
                error_category=error.error_type.value,
                error_code=error.code,
            )
            raise error

    def _to_api_response(
        self, response: TransportResponse, correlation_id: str
    ) -> ApiResponse:
        return ApiResponse(
            status=response.status,
            headers=response.headers,
            body=response.body,
            correlation_id=correlation_id,
            request_id=_header_value(response.headers, self.correlation_header),
        )

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> ApiResponse:
        """Build a RequestSpec and send it."""
        spec = RequestSpec(method.upper(), path, params=params, body=body, headers=headers or {})
        return await self.send(spec)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None, **kwargs: Any) -> ApiResponse:
        return await self.request("GET", path, params=params, **kwargs)

    async def post(self, path: str, body: Any = None, **kwargs: Any) -> ApiResponse:
        return await self.request("POST", path, body=body, **kwargs)

    async def put(self, path: str, body: Any = None, **kwargs: Any) -> ApiResponse:
        return await self.request("PUT", path, body=body, **kwargs)

    async def patch(self, path: str, body: Any = None, **kwargs: Any) -> ApiResponse:
        return await self.request("PATCH", path, body=body, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> ApiResponse:
        return await self.request("DELETE", path, **kwargs)
