"""
Session wiring.

One ApiSession owns exactly one credential store, one logout signal, one
refresh coordinator and one client. Sessions never share renewal state.
"""

import logging
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from authed_client.auth.coordinator import RefreshCoordinator
from authed_client.auth.renewal import RenewalClient
from authed_client.auth.service import AuthService
from authed_client.auth.signals import Listener, SessionSignal
from authed_client.auth.store import (
    CredentialSlot,
    CredentialStore,
    FileCredentialSlot,
    MemoryCredentialSlot,
)
from authed_client.client import AuthenticatedClient
from authed_client.common.logging.decorators import LoggedClass
from authed_client.config import ClientConfig
from authed_client.transport import AiohttpTransport, Transport


class ApiSession(LoggedClass):
    """
    Authenticated API session.

    Usage:
        async with ApiSession.from_config() as session:
            session.on_logout(lambda reason: print("signed out:", reason))
            await session.auth.login(email, password)
            response = await session.client.get("/users/profile")

    Args:
        config: Client configuration
        transport: Transport to use; when omitted an AiohttpTransport is
            created and owned (closed by close())
        slot: Credential slot; defaults to a file slot when
            config.credential_file is set, otherwise memory
        session_id: Identifier attached to the log records of this session's calls
    """

    log_component = "session"

    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[Transport] = None,
        slot: Optional[CredentialSlot] = None,
        session_id: Optional[str] = None,
    ):
        self.config = config
        self.base_url = config.base_url
        self.session_id = session_id or uuid.uuid4().hex[:12]

        self._owns_transport = transport is None
        if transport is None:
            transport = AiohttpTransport(
                timeout_seconds=config.timeout_seconds,
                max_concurrent=config.max_concurrent,
            )
        self.transport = transport

        if slot is None:
            if config.credential_file:
                slot = FileCredentialSlot(Path(config.credential_file))
            else:
                slot = MemoryCredentialSlot()

        self.store = CredentialStore(slot)
        self.logout_signal = SessionSignal("logout")
        self.renewal_client = RenewalClient(
            transport,
            config.base_url,
            refresh_path=config.refresh_path,
            timeout_seconds=config.renewal_timeout_seconds,
            headers=config.default_headers,
        )
        self.coordinator = RefreshCoordinator(
            self.store,
            self.renewal_client,
            self.logout_signal,
            renewal_timeout_seconds=config.renewal_timeout_seconds,
        )
        self.client = AuthenticatedClient(
            transport,
            self.store,
            self.coordinator,
            config.base_url,
            default_headers=config.default_headers,
            max_replay_depth=config.max_replay_depth,
            correlation_header=config.correlation_header,
            auth_path_prefix=config.auth_path_prefix,
            timeout_seconds=config.timeout_seconds,
            session_id=self.session_id,
        )
        self.auth = AuthService(
            self.client,
            self.store,
            login_path=config.login_path,
            logout_path=config.logout_path,
            profile_path=config.profile_path,
        )
        self._closed = False

        super().__init__()

    @classmethod
    def from_config(
        cls,
        config_path: Optional[Path] = None,
        **kwargs: Any,
    ) -> "ApiSession":
        """Build a session from config.yaml plus environment overrides."""
        return cls(ClientConfig.load_config(config_path), **kwargs)

    def on_logout(self, listener: Listener) -> Callable[[], None]:
        """Subscribe to forced sign-out; returns an unsubscribe function."""
        return self.logout_signal.subscribe(listener)

    def get_diagnostics(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "authenticated": self.store.has_credentials(),
            "logout_signals": self.logout_signal.emit_count,
            **self.coordinator.get_diagnostics(),
        }

    async def __aenter__(self) -> "ApiSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Stop renewal and close the owned transport. Credentials are kept."""
        if self._closed:
            return
        self._closed = True
        await self.coordinator.aclose()
        if self._owns_transport and isinstance(self.transport, AiohttpTransport):
            await self.transport.close()
        self._log(logging.DEBUG, "Session closed")
