"""Logging decorators and mixins."""

import asyncio
import functools
import logging
from typing import Any, Callable, Dict, Optional, TypeVar

from authed_client.common.logging.utilities import (
    get_logger,
    log_exception,
    log_with_context,
)

F = TypeVar("F", bound=Callable[..., Any])


def _extract_instance_context(obj: Any) -> Dict[str, Any]:
    """
    Extract loggable context from instance attributes.

    Looks for common identifier fields.
    """
    ctx: Dict[str, Any] = {}
    for attr in ("base_url", "signal_name"):
        value = getattr(obj, attr, None)
        if value is not None:
            ctx[attr] = value
    return ctx


def logged_operation(
    level: int = logging.DEBUG,
    log_start: bool = False,
    operation_name: Optional[str] = None,
) -> Callable[[F], F]:
    """
    Decorator for automatic operation logging on class methods.

    Args:
        level: Log level for completion message
        log_start: Also log when operation starts
        operation_name: Override operation name (default: method_name)

    Example:
        class AuthService(LoggedClass):
            @logged_operation(level=logging.INFO)
            async def login(self, email, password):
                ...
    """

    def decorator(func: F) -> F:
        if asyncio.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(self, *args, **kwargs):
                _logger = getattr(self, "_logger", None) or get_logger(
                    self.__class__.__module__
                )
                full_op = f"{self.__class__.__name__}.{operation_name or func.__name__}"

                if log_start:
                    log_with_context(_logger, level, f"{full_op} starting")

                try:
                    result = await func(self, *args, **kwargs)
                except Exception as e:
                    log_exception(
                        _logger, e, f"{full_op} failed",
                        level=logging.WARNING, include_traceback=False,
                    )
                    raise
                log_with_context(_logger, level, f"{full_op} completed")
                return result

            return async_wrapper  # type: ignore

        @functools.wraps(func)
        def sync_wrapper(self, *args, **kwargs):
            _logger = getattr(self, "_logger", None) or get_logger(
                self.__class__.__module__
            )
            full_op = f"{self.__class__.__name__}.{operation_name or func.__name__}"

            if log_start:
                log_with_context(_logger, level, f"{full_op} starting")

            try:
                result = func(self, *args, **kwargs)
            except Exception as e:
                log_exception(
                    _logger, e, f"{full_op} failed",
                    level=logging.WARNING, include_traceback=False,
                )
                raise
            log_with_context(_logger, level, f"{full_op} completed")
            return result

        return sync_wrapper  # type: ignore

    return decorator


class LoggedClass:
    """
    Mixin providing logging infrastructure for classes.

    Provides:
    - self._logger: Logger instance
    - self._log(): Log with auto-extracted context
    - self._log_exception(): Exception logging with context

    Example:
        class RenewalClient(LoggedClass):
            log_component = "renewal"

            def __init__(self, base_url: str):
                self.base_url = base_url
                super().__init__()
    """

    log_component: Optional[str] = None  # Optional logger name suffix

    def __init__(self, *args, **kwargs):
        logger_name = self.__class__.__module__
        if self.log_component:
            logger_name = f"{logger_name}.{self.log_component}"
        self._logger = get_logger(logger_name)
        super().__init__(*args, **kwargs)

    def _log(self, level: int, msg: str, **extra: Any) -> None:
        """
        Log with automatic context extraction from instance.

        Args:
            level: Log level
            msg: Log message
            **extra: Additional context fields
        """
        context = _extract_instance_context(self)
        context.update(extra)
        log_with_context(self._logger, level, msg, **context)

    def _log_exception(
        self,
        exc: BaseException,
        msg: str,
        level: int = logging.ERROR,
        include_traceback: bool = True,
        **extra: Any,
    ) -> None:
        """
        Log exception with automatic context extraction from instance.

        Args:
            exc: Exception to log
            msg: Context message
            level: Log level (default: ERROR)
            include_traceback: Include full traceback (default: True)
            **extra: Additional context fields
        """
        context = _extract_instance_context(self)
        context.update(extra)
        log_exception(
            self._logger, exc, msg,
            level=level, include_traceback=include_traceback, **context,
        )
