"""
Diagnostic entry point: send one authenticated request.

Usage:
    # Anonymous GET
    python -m authed_client GET /health

    # Sign in first (credentials from the environment), then call
    API_LOGIN_EMAIL=jane@example.com API_LOGIN_PASSWORD=... \\
        python -m authed_client GET /users/profile

    # POST a JSON body with human-readable logs
    python -m authed_client --no-json-logs POST /items --data '{"name": "x"}'

Environment:
    API_BASE_URL, API_* overrides: see authed_client.config
    API_LOGIN_EMAIL / API_LOGIN_PASSWORD: sign in before the request
    JSON_LOGS: true (default) for JSON log lines
    LOG_DIR: log directory (default: ./logs)

Exit codes:
    0 success, 1 API error, 2 configuration error
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from authed_client.common.exceptions import ApiError
from authed_client.common.logging.setup import setup_logging
from authed_client.common.logging.utilities import get_logger, log_exception
from authed_client.config import ClientConfig
from authed_client.session import ApiSession

EXIT_OK = 0
EXIT_API_ERROR = 1
EXIT_CONFIG_ERROR = 2

HTTP_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]

# Placeholder logger until setup_logging() is called in main()
logger = logging.getLogger(__name__)


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="python -m authed_client",
        description="Send one request through an authenticated API session",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("method", type=str.upper, choices=HTTP_METHODS, help="HTTP method")
    parser.add_argument("path", help="Path relative to the base URL, or absolute URL")
    parser.add_argument("--data", help="JSON request body")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.yaml (default: ./config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Console log level (default: WARNING)",
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Directory for log files (default: LOG_DIR env var or ./logs)",
    )
    parser.add_argument(
        "--no-log-file",
        action="store_true",
        help="Log to the console only",
    )
    json_group = parser.add_mutually_exclusive_group()
    json_group.add_argument("--json-logs", dest="json_logs", action="store_true", default=None)
    json_group.add_argument("--no-json-logs", dest="json_logs", action="store_false")
    return parser.parse_args(argv)


async def run(config: ClientConfig, method: str, path: str, body: Any) -> Any:
    """Open a session, sign in if credentials are configured, send one request."""
    async with ApiSession(config) as session:
        session.on_logout(
            lambda reason: logger.warning("Session ended", extra={"reason": reason})
        )

        email = os.getenv("API_LOGIN_EMAIL")
        password = os.getenv("API_LOGIN_PASSWORD")
        if email and password:
            await session.auth.login(email, password)

        response = await session.client.request(method, path, body=body)
        return response.body


def main(argv: Optional[list] = None) -> int:
    """Main entry point. Returns the process exit code."""
    global logger
    args = parse_args(argv)
    load_dotenv()

    json_logs = args.json_logs
    if json_logs is None:
        json_logs = os.getenv("JSON_LOGS", "true").lower() in ("true", "1", "yes")

    # Log directory: CLI arg > env var > default ./logs
    log_dir = Path(args.log_dir or os.getenv("LOG_DIR", "logs"))

    setup_logging(
        name="authed_client",
        log_dir=log_dir,
        json_format=json_logs,
        console_level=getattr(logging, args.log_level),
        log_to_file=not args.no_log_file,
    )
    logger = get_logger(__name__)

    try:
        body = json.loads(args.data) if args.data else None
    except ValueError as e:
        logger.error(f"Invalid --data JSON: {e}")
        return EXIT_CONFIG_ERROR

    try:
        config = ClientConfig.load_config(args.config)
    except (ValueError, OSError, yaml.YAMLError) as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    try:
        result = asyncio.run(run(config, args.method, args.path, body))
    except ApiError as e:
        log_exception(logger, e, "Request failed", include_traceback=False)
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return EXIT_API_ERROR
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, exiting")
        return EXIT_API_ERROR

    print(json.dumps(result, indent=2, default=str))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
