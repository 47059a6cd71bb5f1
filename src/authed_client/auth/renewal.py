"""
Credential renewal client.

Exchanges a refresh credential for a new credential pair with exactly one
call to the refresh endpoint. Never retries: at most one renewal attempt
per expiry event is the coordinator's policy.
"""

import logging
from typing import Any, Dict, Optional

from authed_client.auth.models import CredentialPair, parse_auth_payload
from authed_client.common.exceptions import (
    ApiError,
    RenewalRejected,
    error_for_response,
)
from authed_client.common.logging.decorators import LoggedClass
from authed_client.transport import Transport

# Statuses meaning "this refresh credential is no good"
REJECTION_STATUSES = (400, 401, 403)


class RenewalClient(LoggedClass):
    """
    Client for the refresh endpoint.

    Usage:
        renewal = RenewalClient(transport, "https://api.example.com")
        pair = await renewal.renew(refresh_credential)

    Raises from renew():
        RenewalRejected: refresh credential invalid/expired, or the server
            answered with something that is not a credential pair
        TransportFailure: no response (connection failure or timeout)
        ApiError: any other classified server failure (e.g. ServerError)
    """

    log_component = "renewal"

    def __init__(
        self,
        transport: Transport,
        base_url: str,
        refresh_path: str = "/auth/refresh",
        timeout_seconds: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.refresh_path = refresh_path
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._headers = dict(headers or {"Content-Type": "application/json"})
        super().__init__()

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.refresh_path.lstrip('/')}"

    @staticmethod
    def _rejection(status: int, body: Any, url: str) -> RenewalRejected:
        classified = error_for_response(status, url, body)
        return RenewalRejected(
            classified.message,
            status_code=status,
            code=classified.code,
            details=classified.details,
        )

    async def renew(self, refresh_credential: str) -> CredentialPair:
        """
        Exchange a refresh credential for a new pair.

        Args:
            refresh_credential: Current refresh credential

        Returns:
            New CredentialPair
        """
        if not refresh_credential:
            raise RenewalRejected("No refresh credential available", code="NO_REFRESH_CREDENTIAL")

        self._log(logging.DEBUG, "Requesting credential renewal", url=self.url)

        response = await self._transport.send(
            "POST",
            self.url,
            headers=self._headers,
            body={"refreshToken": refresh_credential},
            timeout=self.timeout_seconds,
        )

        if response.status in REJECTION_STATUSES:
            error = self._rejection(response.status, response.body, self.url)
            self._log(
                logging.WARNING,
                "Credential renewal rejected",
                http_status=response.status,
                error_code=error.code,
            )
            raise error

        if not response.ok:
            failure: ApiError = error_for_response(
                response.status, self.url, response.body, response.headers
            )
            self._log(
                logging.WARNING,
                "Credential renewal failed",
                http_status=response.status,
                error_category=failure.error_type.value,
            )
            raise failure

        try:
            pair, _ = parse_auth_payload(response.body)
        except ValueError as e:
            raise RenewalRejected(
                "Malformed renewal response",
                status_code=response.status,
                code="MALFORMED_RENEWAL_RESPONSE",
                cause=e,
            ) from e

        self._log(logging.DEBUG, "Credential renewal succeeded", http_status=response.status)
        return pair
