"""Log context propagation via contextvars.

Context values follow asyncio tasks: a task created while a value is set
sees that value, and changes made inside a task do not leak out of it.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Dict, Iterator, Optional

_session_id: ContextVar[Optional[str]] = ContextVar("session_id", default=None)
_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

_VARS: Dict[str, ContextVar] = {
    "session_id": _session_id,
    "correlation_id": _correlation_id,
}


def set_log_context(
    session_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> None:
    """Set context fields. Only non-None arguments are applied."""
    if session_id is not None:
        _session_id.set(session_id)
    if correlation_id is not None:
        _correlation_id.set(correlation_id)


def get_log_context() -> Dict[str, Optional[str]]:
    """Return the current context fields."""
    return {name: var.get() for name, var in _VARS.items()}


def clear_log_context() -> None:
    """Reset all context fields to None."""
    for var in _VARS.values():
        var.set(None)


@contextmanager
def log_context(**fields: Optional[str]) -> Iterator[None]:
    """
    Temporarily set context fields, restoring the previous values on exit.

    Example:
        with log_context(correlation_id=cid):
            logger.debug("API request")
    """
    tokens = []
    for name, value in fields.items():
        var = _VARS.get(name)
        if var is None:
            raise KeyError(f"Unknown log context field: {name}")
        tokens.append((var, var.set(value)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)
