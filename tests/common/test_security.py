"""Tests for log sanitization helpers."""

import pytest

from authed_client.common.security import (
    REDACTED,
    is_auth_endpoint,
    redact_email,
    sanitize_body,
    sanitize_error_message,
    sanitize_url,
)


class TestSanitizeUrl:
    def test_redacts_sensitive_query_params(self):
        url = "https://api.example.com/files?token=abc123&page=2"
        assert sanitize_url(url) == f"https://api.example.com/files?token={REDACTED}&page=2"

    def test_param_match_is_case_insensitive(self):
        assert "s3cr3t" not in sanitize_url("https://x.test/a?API_KEY=s3cr3t")

    def test_url_without_query_unchanged(self):
        url = "https://api.example.com/users/profile"
        assert sanitize_url(url) == url

    def test_empty(self):
        assert sanitize_url("") == ""


class TestIsAuthEndpoint:
    @pytest.mark.parametrize(
        "url",
        [
            "https://api.example.com/auth/login",
            "https://api.example.com/auth/refresh",
            "https://api.example.com/api/v1/auth/logout",
            "/auth",
        ],
    )
    def test_auth_urls(self, url):
        assert is_auth_endpoint(url) is True

    @pytest.mark.parametrize(
        "url",
        [
            "https://api.example.com/users/profile",
            "https://api.example.com/authors/1",
            "https://api.example.com/oauth-apps",
            "",
        ],
    )
    def test_other_urls(self, url):
        assert is_auth_endpoint(url) is False

    def test_custom_prefix(self):
        assert is_auth_endpoint("https://x.test/session/new", prefix="/session") is True
        assert is_auth_endpoint("https://x.test/auth/login", prefix="/session") is False


class TestSanitizeErrorMessage:
    def test_bearer_token(self):
        msg = sanitize_error_message("Header was Bearer eyJhbGciOi.payload.sig")
        assert "eyJhbGciOi" not in msg
        assert f"Bearer {REDACTED}" in msg

    def test_json_token_keys(self):
        msg = sanitize_error_message('{"accessToken": "abc", "refreshToken": "def"}')
        assert "abc" not in msg
        assert "def" not in msg

    def test_password_param(self):
        assert "hunter2" not in sanitize_error_message("password=hunter2&x=1")

    def test_embedded_url_sanitized(self):
        msg = sanitize_error_message("GET https://x.test/a?sig=zzz failed")
        assert "zzz" not in msg

    def test_truncation(self):
        msg = sanitize_error_message("x" * 1000, max_length=100)
        assert len(msg) == 100
        assert msg.endswith("...")


class TestSanitizeBody:
    def test_auth_endpoint_body_fully_redacted(self):
        body = {"email": "jane@example.com", "password": "pw"}
        assert sanitize_body(body, "https://api.example.com/auth/login") == REDACTED

    def test_password_and_email_masked(self):
        body = {"email": "jane@example.com", "password": "pw", "name": "Jane"}
        sanitized = sanitize_body(body, "https://api.example.com/users")

        assert sanitized == {
            "email": "jane@[redacted]",
            "password": REDACTED,
            "name": "Jane",
        }

    def test_nested_credentials(self):
        body = {"data": {"tokens": {"accessToken": "a", "refreshToken": "r"}}, "items": [{"token": "t"}]}
        sanitized = sanitize_body(body, "https://api.example.com/x")

        assert sanitized["data"]["tokens"] == {"accessToken": REDACTED, "refreshToken": REDACTED}
        assert sanitized["items"] == [{"token": REDACTED}]

    def test_input_not_mutated(self):
        body = {"password": "pw"}
        sanitize_body(body, "https://api.example.com/x")
        assert body == {"password": "pw"}

    def test_none_passthrough(self):
        assert sanitize_body(None, "https://api.example.com/auth/login") is None

    def test_string_body_pattern_sanitized(self):
        assert "hunter2" not in sanitize_body("password=hunter2", "https://x.test/form")


class TestRedactEmail:
    def test_keeps_local_part(self):
        assert redact_email("jane.doe@example.com") == "jane.doe@[redacted]"

    def test_non_email_unchanged(self):
        assert redact_email("jane") == "jane"
