"""Tests for the credential renewal client."""

import pytest

from authed_client.auth.renewal import RenewalClient
from authed_client.common.exceptions import (
    RenewalRejected,
    ServerError,
    TransportFailure,
)
from conftest import BASE_URL, auth_body, invalid_token_body, json_response


@pytest.fixture
def renewal(transport):
    return RenewalClient(transport, BASE_URL + "/", timeout_seconds=3.0)


class TestRenewalClient:
    @pytest.mark.asyncio
    async def test_success(self, transport, renewal):
        transport.route("POST", "/auth/refresh", lambda call: json_response(200, auth_body("A2", "R2")))

        pair = await renewal.renew("R1")

        assert pair.access_credential == "A2"
        assert pair.refresh_credential == "R2"

        call = transport.calls[0]
        assert call.url == "https://api.example.com/auth/refresh"
        assert call.body == {"refreshToken": "R1"}
        assert call.timeout == 3.0
        assert "Authorization" not in call.headers

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 401, 403])
    async def test_rejection_statuses(self, transport, renewal, status):
        transport.route("POST", "/auth/refresh", lambda call: json_response(status, invalid_token_body()))

        with pytest.raises(RenewalRejected) as exc_info:
            await renewal.renew("R1")

        assert exc_info.value.status_code == status
        assert exc_info.value.code == "INVALID_TOKEN"

    @pytest.mark.asyncio
    async def test_server_error_is_not_rejection(self, transport, renewal):
        transport.route("POST", "/auth/refresh", lambda call: json_response(503))

        with pytest.raises(ServerError):
            await renewal.renew("R1")

    @pytest.mark.asyncio
    async def test_malformed_success_body(self, transport, renewal):
        transport.route("POST", "/auth/refresh", lambda call: json_response(200, {"success": True, "data": {}}))

        with pytest.raises(RenewalRejected) as exc_info:
            await renewal.renew("R1")

        assert exc_info.value.code == "MALFORMED_RENEWAL_RESPONSE"

    @pytest.mark.asyncio
    async def test_transport_failure_propagates(self, transport, renewal):
        def unreachable(call):
            raise TransportFailure("Connection error")

        transport.route("POST", "/auth/refresh", unreachable)

        with pytest.raises(TransportFailure):
            await renewal.renew("R1")

    @pytest.mark.asyncio
    async def test_empty_refresh_credential(self, transport, renewal):
        with pytest.raises(RenewalRejected):
            await renewal.renew("")
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_single_attempt(self, transport, renewal):
        transport.route("POST", "/auth/refresh", lambda call: json_response(500))

        with pytest.raises(ServerError):
            await renewal.renew("R1")

        assert len(transport.calls) == 1

    def test_custom_refresh_path(self, transport):
        renewal = RenewalClient(transport, "https://x.test/api", refresh_path="session/refresh")
        assert renewal.url == "https://x.test/api/session/refresh"
