"""
Credential handling: store, renewal client, single-flight coordinator and
the logout signal.

AuthService lives in authed_client.auth.service and is not re-exported here
(it depends on the client, which depends on this package).
"""

from authed_client.auth.coordinator import RefreshCoordinator
from authed_client.auth.models import CredentialPair
from authed_client.auth.renewal import RenewalClient
from authed_client.auth.signals import RENEWAL_FAILED, SessionSignal
from authed_client.auth.store import (
    CredentialStore,
    FileCredentialSlot,
    MemoryCredentialSlot,
)

__all__ = [
    "CredentialPair",
    "CredentialStore",
    "FileCredentialSlot",
    "MemoryCredentialSlot",
    "RENEWAL_FAILED",
    "RefreshCoordinator",
    "RenewalClient",
    "SessionSignal",
]
