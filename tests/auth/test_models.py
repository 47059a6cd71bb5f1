"""Tests for CredentialPair and auth payload parsing."""

from datetime import datetime, timedelta, timezone

import pytest

from authed_client.auth.models import CredentialPair, parse_auth_payload


class TestCredentialPair:
    def test_requires_both_credentials(self):
        with pytest.raises(ValueError):
            CredentialPair("", "R1")
        with pytest.raises(ValueError):
            CredentialPair("A1", "")

    def test_repr_hides_credentials(self):
        text = repr(CredentialPair("secret-access", "secret-refresh"))
        assert "secret-access" not in text
        assert "secret-refresh" not in text

    def test_naive_expiry_treated_as_utc(self):
        pair = CredentialPair("A1", "R1", expiry=datetime(2030, 1, 1))
        assert pair.expiry.tzinfo == timezone.utc

    def test_unknown_expiry_never_expired(self):
        assert CredentialPair("A1", "R1").is_expired() is False

    def test_expiry_buffer(self):
        now = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
        soon = CredentialPair("A1", "R1", expiry=now + timedelta(minutes=4))
        later = CredentialPair("A1", "R1", expiry=now + timedelta(minutes=10))

        assert soon.is_expired(now=now) is True
        assert later.is_expired(now=now) is False
        assert soon.is_expired(buffer=timedelta(0), now=now) is False

    def test_dict_round_trip_preserves_fields(self):
        pair = CredentialPair(
            "A1", "R1", expiry=datetime(2030, 1, 1, tzinfo=timezone.utc), token_type="Bearer"
        )
        data = pair.to_dict()

        assert data["accessToken"] == "A1"
        assert data["refreshToken"] == "R1"
        assert CredentialPair.from_dict(data) == pair

    def test_from_dict_incomplete(self):
        with pytest.raises(ValueError):
            CredentialPair.from_dict({"accessToken": "A1"})


class TestParseAuthPayload:
    def test_enveloped_payload(self):
        body = {
            "success": True,
            "message": "Token refreshed successfully",
            "data": {
                "user": {"id": "1", "email": "jane@example.com"},
                "tokens": {
                    "accessToken": "A2",
                    "refreshToken": "R2",
                    "expiresAt": "2030-01-01T00:00:00Z",
                    "tokenType": "Bearer",
                },
            },
        }
        pair, user = parse_auth_payload(body)

        assert pair.access_credential == "A2"
        assert pair.refresh_credential == "R2"
        assert pair.expiry == datetime(2030, 1, 1, tzinfo=timezone.utc)
        assert user == {"id": "1", "email": "jane@example.com"}

    def test_bare_tokens(self):
        pair, user = parse_auth_payload({"accessToken": "A2", "refreshToken": "R2"})
        assert pair.access_credential == "A2"
        assert user is None

    def test_failed_envelope(self):
        with pytest.raises(ValueError, match="Invalid"):
            parse_auth_payload({"success": False, "message": "Invalid refresh token"})

    @pytest.mark.parametrize(
        "body",
        [
            None,
            "not json",
            {"success": True, "data": None},
            {"tokens": {"accessToken": "A2"}},
            {"accessToken": "", "refreshToken": "R2"},
        ],
    )
    def test_malformed(self, body):
        with pytest.raises(ValueError):
            parse_auth_payload(body)
