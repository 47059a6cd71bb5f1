"""
Security utilities for request/response diagnostics.

Provides:
- URL sanitization (token removal for logs)
- Error message sanitization
- Request/response body sanitization
"""

import re
from typing import Any, Mapping
from urllib.parse import urlparse, urlunparse

REDACTED = "[REDACTED]"

# Default path prefix of authentication endpoints (login, refresh, logout, ...)
AUTH_PATH_PREFIX = "/auth"


# ---------------------------------------------------------------------------
# URL Sanitization (for logging)
# ---------------------------------------------------------------------------

# Query parameters that may contain sensitive tokens
SENSITIVE_PARAMS = {
    "token",
    "access_token",
    "refresh_token",
    "id_token",
    "code",
    "api_key",
    "apikey",
    "key",
    "secret",
    "client_secret",
    "password",
    "pwd",
    "auth",
    "authorization",
    "sig",
    "signature",
}


def sanitize_url(url: str) -> str:
    """
    Remove sensitive query parameters from URL.

    Preserves the path and structure for debugging while removing
    tokens that could grant access if exposed in logs.

    Args:
        url: URL that may contain sensitive parameters

    Returns:
        URL with sensitive parameters replaced with [REDACTED]
    """
    if not url:
        return url

    try:
        parsed = urlparse(url)
    except ValueError:
        return url

    if not parsed.query:
        return url

    sanitized_params = []
    for param in parsed.query.split("&"):
        if "=" in param:
            key, _ = param.split("=", 1)
            if key.lower() in SENSITIVE_PARAMS:
                sanitized_params.append(f"{key}={REDACTED}")
                continue
        sanitized_params.append(param)

    return urlunparse(parsed._replace(query="&".join(sanitized_params)))


def is_auth_endpoint(url: str, prefix: str = AUTH_PATH_PREFIX) -> bool:
    """
    Check whether a URL targets an authentication endpoint.

    Matches when any path segment sequence starts with ``prefix``, so both
    ``/auth/login`` and ``/api/auth/refresh`` qualify.
    """
    if not url or not prefix:
        return False
    path = urlparse(url).path or url
    prefix = "/" + prefix.strip("/")
    return path == prefix or path.startswith(prefix + "/") or f"{prefix}/" in path


# ---------------------------------------------------------------------------
# Error Message Sanitization
# ---------------------------------------------------------------------------

# Patterns that may contain sensitive data in error messages
SENSITIVE_PATTERNS = [
    (re.compile(r"bearer\s+[a-zA-Z0-9\-_.~+/=]+", re.IGNORECASE), f"Bearer {REDACTED}"),
    (re.compile(r'token=[^&\s"\']+', re.IGNORECASE), f"token={REDACTED}"),
    (re.compile(r'password=[^&\s"\']+', re.IGNORECASE), f"password={REDACTED}"),
    (re.compile(r'secret=[^&\s"\']+', re.IGNORECASE), f"secret={REDACTED}"),
    (re.compile(r'api[_-]?key[=:]\s*[^\s"\'&]+', re.IGNORECASE), f"api_key={REDACTED}"),
    (
        re.compile(r'"(accessToken|refreshToken|access_token|refresh_token)"\s*:\s*"[^"]*"'),
        rf'"\1": "{REDACTED}"',
    ),
]

_URL_PATTERN = re.compile(r'https?://[^\s"\'<>]+')


def sanitize_error_message(msg: str, max_length: int = 500) -> str:
    """
    Remove potentially sensitive data from error messages.

    Applies pattern-based redaction and truncates to max_length.

    Args:
        msg: Error message that may contain sensitive data
        max_length: Maximum length of returned message

    Returns:
        Sanitized and truncated error message
    """
    if not msg:
        return msg

    for pattern, replacement in SENSITIVE_PATTERNS:
        msg = pattern.sub(replacement, msg)

    for match in _URL_PATTERN.finditer(msg):
        original_url = match.group(0)
        sanitized = sanitize_url(original_url)
        if sanitized != original_url:
            msg = msg.replace(original_url, sanitized)

    if len(msg) > max_length:
        msg = msg[: max_length - 3] + "..."

    return msg


# ---------------------------------------------------------------------------
# Body Sanitization (for request/response diagnostics)
# ---------------------------------------------------------------------------

# Body keys whose values are credentials (compared case-insensitively)
SENSITIVE_BODY_KEYS = {
    "password",
    "confirmpassword",
    "confirm_password",
    "currentpassword",
    "current_password",
    "newpassword",
    "new_password",
    "token",
    "accesstoken",
    "access_token",
    "refreshtoken",
    "refresh_token",
    "idtoken",
    "id_token",
    "authorization",
    "secret",
    "client_secret",
    "apikey",
    "api_key",
}


def redact_email(value: str) -> str:
    """Keep the local part of an email address: ``jane@[redacted]``."""
    if "@" not in value:
        return value
    return value.split("@", 1)[0] + "@[redacted]"


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        sanitized = {}
        for key, item in value.items():
            lowered = str(key).lower()
            if lowered in SENSITIVE_BODY_KEYS:
                sanitized[key] = REDACTED
            elif lowered == "email" and isinstance(item, str):
                sanitized[key] = redact_email(item)
            else:
                sanitized[key] = _sanitize_value(item)
        return sanitized
    if isinstance(value, list):
        return [_sanitize_value(item) for item in value]
    return value


def sanitize_body(body: Any, url: str = "", auth_path_prefix: str = AUTH_PATH_PREFIX) -> Any:
    """
    Sanitize a request or response body for logging.

    Bodies of authentication-endpoint calls are redacted entirely. Otherwise
    credential-bearing keys are redacted and email addresses masked,
    recursively. The input is never mutated.

    Args:
        body: Decoded body (mapping, list, string or None)
        url: URL of the call the body belongs to
        auth_path_prefix: Path prefix identifying authentication endpoints

    Returns:
        Sanitized copy of the body
    """
    if body is None:
        return None
    if url and is_auth_endpoint(url, auth_path_prefix):
        return REDACTED
    if isinstance(body, str):
        return sanitize_error_message(body, max_length=2000)
    return _sanitize_value(body)
