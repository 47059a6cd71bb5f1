"""API client configuration from environment variables and config.yaml."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml

# Default config path: config.yaml in the working directory
DEFAULT_CONFIG_PATH = Path("config.yaml")


def _default_headers() -> Dict[str, str]:
    return {
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


@dataclass
class ClientConfig:
    """Authenticated client configuration.

    Load from environment using ClientConfig.from_env(), or from config.yaml
    plus environment overrides using ClientConfig.load_config().
    All timing values in seconds.
    """

    # Connection
    base_url: str
    timeout_seconds: float = 30.0
    max_concurrent: int = 20
    default_headers: Dict[str, str] = field(default_factory=_default_headers)

    # Authentication endpoints
    auth_path_prefix: str = "/auth"
    login_path: str = "/auth/login"
    logout_path: str = "/auth/logout"
    refresh_path: str = "/auth/refresh"
    profile_path: str = "/users/profile"

    # Credential renewal
    renewal_timeout_seconds: float = 10.0
    max_replay_depth: int = 1  # Further renewals a replayed call may trigger

    # Diagnostics
    correlation_header: str = "X-Request-ID"

    # Persistence (None = in-memory credential slot)
    credential_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load configuration from environment variables.

        Required environment variables:
            API_BASE_URL: Base URL of the remote API

        Optional environment variables (with defaults):
            API_TIMEOUT_SECONDS: 30 (default)
            API_RENEWAL_TIMEOUT_SECONDS: 10 (default)
            API_MAX_CONCURRENT: 20 (default)
            API_MAX_REPLAY_DEPTH: 1 (default)
            API_CORRELATION_HEADER: X-Request-ID (default)
            API_CREDENTIAL_FILE: path of the persisted credential pair

        Raises:
            ValueError: If required environment variables are missing
        """
        base_url = os.getenv("API_BASE_URL")
        if not base_url:
            raise ValueError("API_BASE_URL environment variable is required")

        config = cls(
            base_url=base_url,
            timeout_seconds=float(os.getenv("API_TIMEOUT_SECONDS", "30")),
            renewal_timeout_seconds=float(os.getenv("API_RENEWAL_TIMEOUT_SECONDS", "10")),
            max_concurrent=int(os.getenv("API_MAX_CONCURRENT", "20")),
            max_replay_depth=int(os.getenv("API_MAX_REPLAY_DEPTH", "1")),
            correlation_header=os.getenv("API_CORRELATION_HEADER", "X-Request-ID"),
            credential_file=os.getenv("API_CREDENTIAL_FILE") or None,
        )
        config.validate()
        return config

    @classmethod
    def load_config(cls, config_path: Optional[Path] = None) -> "ClientConfig":
        """Load configuration from config.yaml and environment variables.

        Configuration priority (highest to lowest):
        1. Environment variables
        2. config.yaml file (under 'client:' key)
        3. Dataclass defaults

        A missing config file is not an error.

        Raises:
            ValueError: If no base URL is configured or values are invalid
        """
        config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

        client_data: Dict[str, Any] = {}
        if config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f) or {}
            client_data = yaml_data.get("client", {}) or {}

        base_url = os.getenv("API_BASE_URL", client_data.get("base_url", ""))
        if not base_url:
            raise ValueError(
                "base_url is required: set API_BASE_URL or client.base_url in config.yaml"
            )

        headers = _default_headers()
        headers.update(client_data.get("default_headers", {}) or {})

        config = cls(
            base_url=base_url,
            timeout_seconds=float(
                os.getenv("API_TIMEOUT_SECONDS", client_data.get("timeout_seconds", 30.0))
            ),
            max_concurrent=int(
                os.getenv("API_MAX_CONCURRENT", client_data.get("max_concurrent", 20))
            ),
            default_headers=headers,
            auth_path_prefix=client_data.get("auth_path_prefix", "/auth"),
            login_path=client_data.get("login_path", "/auth/login"),
            logout_path=client_data.get("logout_path", "/auth/logout"),
            refresh_path=client_data.get("refresh_path", "/auth/refresh"),
            profile_path=client_data.get("profile_path", "/users/profile"),
            renewal_timeout_seconds=float(
                os.getenv(
                    "API_RENEWAL_TIMEOUT_SECONDS",
                    client_data.get("renewal_timeout_seconds", 10.0),
                )
            ),
            max_replay_depth=int(
                os.getenv("API_MAX_REPLAY_DEPTH", client_data.get("max_replay_depth", 1))
            ),
            correlation_header=os.getenv(
                "API_CORRELATION_HEADER",
                client_data.get("correlation_header", "X-Request-ID"),
            ),
            credential_file=os.getenv(
                "API_CREDENTIAL_FILE", client_data.get("credential_file")
            ) or None,
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ValueError: On the first invalid value found
        """
        scheme = urlparse(self.base_url).scheme
        if scheme not in ("http", "https"):
            raise ValueError(f"base_url must be http(s), got: {self.base_url!r}")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.renewal_timeout_seconds <= 0:
            raise ValueError("renewal_timeout_seconds must be positive")
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if self.max_replay_depth < 0:
            raise ValueError("max_replay_depth must be >= 0")
