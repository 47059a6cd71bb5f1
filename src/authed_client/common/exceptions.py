"""
Exception types and error classification for authed_client.

Provides:
- ErrorType enum mirroring the structured API error "type" field
- Typed exception hierarchy for API call outcomes
- HTTP status classification utilities
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class ErrorType(str, Enum):
    """
    Classification of failed API calls.

    Categories:
        VALIDATION: Request rejected as malformed (400, 422)
        AUTHENTICATION: Credential missing, invalid or expired (401)
        AUTHORIZATION: Credential valid but not permitted (403)
        NOT_FOUND: Resource does not exist (404)
        CONFLICT: Request conflicts with current resource state (409)
        RATE_LIMIT: Too many requests (429)
        SERVER_ERROR: Upstream failure (5xx)
        NETWORK_ERROR: No response received (connectivity, timeout)
        UNKNOWN: Anything else
    """

    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    """Operator-facing severity of an API error."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def severity_for_status(status_code: Optional[int]) -> Severity:
    """Map an HTTP status (or its absence) to a severity."""
    if status_code is None or status_code >= 500:
        return Severity.HIGH
    if status_code >= 400:
        return Severity.MEDIUM
    return Severity.LOW


class ApiError(Exception):
    """
    Base exception for all API call failures.

    Attributes:
        message: Human-readable error description
        status_code: HTTP status if a response was received
        code: Server error code, or the stringified status
        details: Server-provided details payload
        field: Offending field for validation errors
        request_id: Correlation id of the failed call
        cause: Original exception if wrapping
        timestamp: UTC time the error was created (ISO-8601)
    """

    error_type: ErrorType = ErrorType.UNKNOWN

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Any = None,
        field: Optional[str] = None,
        request_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code or (str(status_code) if status_code is not None else None)
        self.details = details
        self.field = field
        self.request_id = request_id
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    @property
    def severity(self) -> Severity:
        if self.error_type == ErrorType.NETWORK_ERROR:
            return Severity.HIGH
        return severity_for_status(self.status_code)

    @property
    def category(self) -> ErrorType:
        """Alias used by log helpers that extract ``error_category``."""
        return self.error_type

    def to_dict(self) -> Dict[str, Any]:
        """Structured error shape handed to application code."""
        return {
            "code": self.code,
            "message": self.message,
            "type": self.error_type.value,
            "severity": self.severity.value,
            "timestamp": self.timestamp,
            "statusCode": self.status_code,
            "details": self.details,
            "field": self.field,
            "requestId": self.request_id,
        }

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Authentication Errors
# =============================================================================


class CredentialExpired(ApiError):
    """Access credential rejected as expired; routed to the refresh coordinator."""

    error_type = ErrorType.AUTHENTICATION


class RenewalRejected(ApiError):
    """Refresh credential refused by the server; terminal, forces sign-out."""

    error_type = ErrorType.AUTHENTICATION


class AuthenticationFailure(ApiError):
    """401 that is not an expired credential (bad login, anonymous call)."""

    error_type = ErrorType.AUTHENTICATION


# =============================================================================
# Transport Errors
# =============================================================================


class TransportFailure(ApiError):
    """No response was received (connection failure or timeout)."""

    error_type = ErrorType.NETWORK_ERROR

    def __init__(
        self,
        message: str,
        timed_out: bool = False,
        request_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            message,
            code="TIMEOUT" if timed_out else "NETWORK_ERROR",
            request_id=request_id,
            cause=cause,
        )
        self.timed_out = timed_out


# =============================================================================
# Pass-through Errors
# =============================================================================


class ValidationFailure(ApiError):
    """Request rejected as invalid (400, 422)."""

    error_type = ErrorType.VALIDATION


class AuthorizationFailure(ApiError):
    """Access denied (403) - permissions issue, not an expired credential."""

    error_type = ErrorType.AUTHORIZATION


class NotFound(ApiError):
    """Resource not found (404)."""

    error_type = ErrorType.NOT_FOUND


class Conflict(ApiError):
    """Resource state conflict (409)."""

    error_type = ErrorType.CONFLICT


class RateLimited(ApiError):
    """Rate limited (429)."""

    error_type = ErrorType.RATE_LIMIT

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after  # Seconds to wait if provided


class ServerError(ApiError):
    """Upstream server failure (5xx)."""

    error_type = ErrorType.SERVER_ERROR


class UnexpectedStatus(ApiError):
    """Non-success status outside the known taxonomy."""

    error_type = ErrorType.UNKNOWN


# =============================================================================
# Classification Utilities
# =============================================================================

_STATUS_ERRORS = {
    400: ValidationFailure,
    401: AuthenticationFailure,
    403: AuthorizationFailure,
    404: NotFound,
    409: Conflict,
    422: ValidationFailure,
    429: RateLimited,
}


def classify_http_status(status_code: int) -> ErrorType:
    """
    Classify an HTTP status code into an error type.

    Args:
        status_code: HTTP response status

    Returns:
        Appropriate ErrorType (UNKNOWN for success or unmapped codes)
    """
    error_class = _STATUS_ERRORS.get(status_code)
    if error_class is not None:
        return error_class.error_type
    if status_code >= 500:
        return ErrorType.SERVER_ERROR
    return ErrorType.UNKNOWN


def _parse_retry_after(headers: Optional[Mapping[str, str]]) -> Optional[float]:
    if not headers:
        return None
    for key, value in headers.items():
        if key.lower() == "retry-after":
            try:
                return float(value)
            except (TypeError, ValueError):
                return None
    return None


def _error_fields(payload: Any) -> Dict[str, Any]:
    """Pull code/message/details/field out of a response body.

    Accepts both flat error bodies and the enveloped
    ``{"success": false, "error": {...}}`` shape.
    """
    if not isinstance(payload, Mapping):
        return {}
    source: Mapping[str, Any] = payload
    nested = payload.get("error")
    if isinstance(nested, Mapping):
        source = nested
    fields = {}
    for key in ("code", "message", "details", "field"):
        value = source.get(key)
        if value is None and source is not payload:
            value = payload.get(key)
        if value is not None:
            fields[key] = value
    return fields


def error_for_response(
    status_code: int,
    url: str,
    payload: Any = None,
    headers: Optional[Mapping[str, str]] = None,
    request_id: Optional[str] = None,
) -> ApiError:
    """
    Create the appropriate exception for a non-success response.

    Classification:
    - 400/422: ValidationFailure
    - 401: AuthenticationFailure (expiry is decided by the dispatcher)
    - 403: AuthorizationFailure
    - 404: NotFound
    - 409: Conflict
    - 429: RateLimited (with Retry-After)
    - 5xx: ServerError
    - other: UnexpectedStatus

    Args:
        status_code: HTTP status code
        url: Request URL for context (should already be sanitized)
        payload: Decoded response body
        headers: Response headers
        request_id: Correlation id of the call

    Returns:
        ApiError subclass instance
    """
    fields = _error_fields(payload)
    message = fields.get("message") or f"HTTP {status_code}: {url}"
    code = fields.get("code")
    kwargs: Dict[str, Any] = {
        "status_code": status_code,
        "code": str(code) if code is not None else None,
        "details": fields.get("details"),
        "field": fields.get("field"),
        "request_id": request_id,
    }

    if status_code == 429:
        return RateLimited(message, retry_after=_parse_retry_after(headers), **kwargs)

    error_class = _STATUS_ERRORS.get(status_code)
    if error_class is None:
        error_class = ServerError if status_code >= 500 else UnexpectedStatus
    return error_class(message, **kwargs)
