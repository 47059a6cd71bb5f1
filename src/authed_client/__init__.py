"""
authed_client: authenticated HTTP API access with single-flight credential
renewal.

Quick start:
    from authed_client import ApiSession

    async with ApiSession.from_config() as session:
        await session.auth.login(email, password)
        response = await session.client.get("/users/profile")
"""

from authed_client.client import ApiResponse, AuthenticatedClient, RequestSpec
from authed_client.common.exceptions import (
    ApiError,
    CredentialExpired,
    ErrorType,
    RenewalRejected,
    TransportFailure,
)
from authed_client.config import ClientConfig
from authed_client.session import ApiSession

__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "ApiResponse",
    "ApiSession",
    "AuthenticatedClient",
    "ClientConfig",
    "CredentialExpired",
    "ErrorType",
    "RenewalRejected",
    "RequestSpec",
    "TransportFailure",
]
