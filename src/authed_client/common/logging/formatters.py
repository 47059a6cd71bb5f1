"""Log formatters for JSON and console output."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from authed_client.common.logging.context import get_log_context
from authed_client.common.security import sanitize_url


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    Sanitizes URLs to remove sensitive tokens before logging.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        # Request tracking
        "correlation_id",
        "request_id",
        "api_method",
        "url",
        "body",
        "http_status",
        "replay_depth",
        "duration_ms",
        # Errors
        "error_category",
        "error_message",
        "error_code",
        # Renewal lifecycle
        "queued",
        "sequence",
        "renewal_id",
        "reason",
        "timed_out",
        # Instance context
        "base_url",
        "signal_name",
        "listener",
    ]

    # Fields that contain URLs and should be sanitized
    URL_FIELDS = ["url", "base_url"]

    def _sanitize_value(self, key: str, value: Any) -> Any:
        if key in self.URL_FIELDS and isinstance(value, str):
            return sanitize_url(value)
        return value

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON with sanitized URLs."""
        log_entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3]
            + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        ctx = get_log_context()
        if ctx["session_id"]:
            log_entry["session_id"] = ctx["session_id"]
        if ctx["correlation_id"]:
            log_entry["correlation_id"] = ctx["correlation_id"]

        # Add source location for DEBUG/ERROR
        if record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = self._sanitize_value(field, value)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter.

    Includes session and correlation ids when available.
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_log_context()

        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            record.levelname,
        ]
        if ctx["session_id"]:
            parts.append(f"[{ctx['session_id']}]")

        prefix = " - ".join(parts)

        correlation_id = getattr(record, "correlation_id", None) or ctx["correlation_id"]
        if correlation_id:
            return f"{prefix} - [{correlation_id[:8]}] {record.getMessage()}"

        return f"{prefix} - {record.getMessage()}"
