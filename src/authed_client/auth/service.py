"""Account operations: sign-in, sign-out and profile lookup."""

import logging
from typing import Any, Dict, Optional

from authed_client.auth.models import parse_auth_payload
from authed_client.auth.store import CredentialStore
from authed_client.client import ApiResponse, AuthenticatedClient
from authed_client.common.exceptions import ApiError, AuthenticationFailure
from authed_client.common.logging.decorators import LoggedClass, logged_operation


def _require_success(response: ApiResponse, failure_message: str) -> Any:
    """Return the envelope payload, raising if the envelope reports failure."""
    body = response.body
    if isinstance(body, dict) and body.get("success") is False:
        raise ApiError(
            body.get("message") or failure_message,
            status_code=response.status,
            code="REQUEST_FAILED",
            request_id=response.correlation_id,
        )
    return response.data


class AuthService(LoggedClass):
    """
    Sign-in/sign-out on top of the authenticated client.

    Usage:
        service = AuthService(client, store)
        user = await service.login("jane@example.com", "secret")
        ...
        await service.logout()
    """

    log_component = "service"

    def __init__(
        self,
        client: AuthenticatedClient,
        store: CredentialStore,
        login_path: str = "/auth/login",
        logout_path: str = "/auth/logout",
        profile_path: str = "/users/profile",
    ):
        self.login_path = login_path
        self.logout_path = logout_path
        self.profile_path = profile_path
        self._client = client
        self._store = store
        super().__init__()

    @logged_operation(level=logging.INFO)
    async def login(self, email: str, password: str) -> Optional[Dict[str, Any]]:
        """
        Sign in and store the returned credential pair.

        Returns:
            User mapping from the response, if the server sent one

        Raises:
            AuthenticationFailure: Wrong credentials or malformed response
            ApiError: Any other failure
        """
        response = await self._client.post(
            self.login_path, body={"email": email, "password": password}
        )
        _require_success(response, "Login failed")

        try:
            pair, user = parse_auth_payload(response.body)
        except ValueError as e:
            raise AuthenticationFailure(
                "Malformed login response",
                status_code=response.status,
                code="MALFORMED_AUTH_RESPONSE",
                request_id=response.correlation_id,
                cause=e,
            ) from e

        self._store.set(pair)
        return user

    @logged_operation(level=logging.INFO)
    async def logout(self) -> None:
        """
        Sign out. The local credentials are cleared even if the server call
        fails; the failure is raised afterwards.
        """
        try:
            response = await self._client.post(self.logout_path)
            _require_success(response, "Logout failed")
        finally:
            self._store.clear()

    @logged_operation()
    async def current_user(self) -> Dict[str, Any]:
        """Fetch the signed-in user's profile."""
        response = await self._client.get(self.profile_path)
        return _require_success(response, "Failed to fetch user profile")

    def is_authenticated(self) -> bool:
        """True while a credential pair is stored.

        An access credential past its expiry still counts: the next call
        renews it.
        """
        return self._store.has_credentials()
