"""
Structured logging for authed_client.

Import directly from sub-modules:
    from authed_client.common.logging.setup import setup_logging
    from authed_client.common.logging.utilities import get_logger, log_with_context
    from authed_client.common.logging.decorators import LoggedClass, logged_operation
    from authed_client.common.logging.context import log_context, set_log_context
"""
