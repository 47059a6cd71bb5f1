"""
Credential pair and authentication wire schemas.

CredentialPair is the in-process representation owned by the credential
store. The Pydantic models describe what the authentication endpoints
return and are only used at the parsing boundary.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

# Treat an access credential as expired this long before its stated expiry
EXPIRY_BUFFER = timedelta(minutes=5)


@dataclass(frozen=True)
class CredentialPair:
    """
    Access/refresh credential pair.

    Either both credentials are present or the pair does not exist: a pair
    with an empty credential cannot be constructed. Credential values are
    kept out of repr() so a pair can be logged safely.

    Attributes:
        access_credential: Short-lived bearer token for individual calls
        refresh_credential: Longer-lived token used only for renewal
        expiry: When the access credential expires, if the server said so
        token_type: Authorization scheme (almost always "Bearer")
    """

    access_credential: str = field(repr=False)
    refresh_credential: str = field(repr=False)
    expiry: Optional[datetime] = None
    token_type: str = "Bearer"

    def __post_init__(self) -> None:
        if not self.access_credential or not self.refresh_credential:
            raise ValueError("CredentialPair requires both access and refresh credentials")
        if self.expiry is not None and self.expiry.tzinfo is None:
            object.__setattr__(self, "expiry", self.expiry.replace(tzinfo=timezone.utc))

    def is_expired(
        self,
        buffer: timedelta = EXPIRY_BUFFER,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Check if the access credential is expired or about to expire.

        A pair without a known expiry is reported as not expired: expiry is
        then only detected when the server rejects a call.
        """
        if self.expiry is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.expiry - buffer <= now

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for persistence."""
        return {
            "accessToken": self.access_credential,
            "refreshToken": self.refresh_credential,
            "expiresAt": self.expiry.isoformat() if self.expiry else None,
            "tokenType": self.token_type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CredentialPair":
        """Inverse of to_dict(); raises ValueError on incomplete data."""
        return AuthTokens.model_validate(data).to_pair()


class AuthTokens(BaseModel):
    """Token object as returned by login and refresh endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(..., alias="accessToken", min_length=1)
    refresh_token: str = Field(..., alias="refreshToken", min_length=1)
    token_type: str = Field(default="Bearer", alias="tokenType")
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")

    def to_pair(self) -> CredentialPair:
        return CredentialPair(
            access_credential=self.access_token,
            refresh_credential=self.refresh_token,
            expiry=self.expires_at,
            token_type=self.token_type or "Bearer",
        )


class AuthPayload(BaseModel):
    """Payload of a successful login/refresh: tokens plus optional user."""

    tokens: AuthTokens
    user: Optional[Dict[str, Any]] = None


class ApiEnvelope(BaseModel):
    """Standard response envelope: {"success", "message", "data", "error"}."""

    success: bool
    message: Optional[str] = None
    data: Any = None
    error: Optional[Dict[str, Any]] = None


def parse_auth_payload(body: Any) -> Tuple[CredentialPair, Optional[Dict[str, Any]]]:
    """
    Extract the credential pair (and user, if present) from an auth response.

    Accepted shapes:
        {"success": true, "data": {"tokens": {...}, "user": {...}}}
        {"tokens": {...}, "user": {...}}
        {"accessToken": ..., "refreshToken": ..., ...}

    Raises:
        ValueError: If the body is not a successful auth payload
    """
    if not isinstance(body, dict):
        raise ValueError("Auth response body is not an object")

    try:
        if "success" in body:
            envelope = ApiEnvelope.model_validate(body)
            if not envelope.success:
                raise ValueError(envelope.message or "Auth response reported failure")
            body = envelope.data
            if not isinstance(body, dict):
                raise ValueError("Auth response envelope has no data object")

        if "tokens" in body:
            payload = AuthPayload.model_validate(body)
            return payload.tokens.to_pair(), payload.user

        return AuthTokens.model_validate(body).to_pair(), None
    except ValidationError as e:
        raise ValueError(f"Malformed auth response: {e.error_count()} invalid field(s)") from e
