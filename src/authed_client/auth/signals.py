"""Session lifecycle signal (forced sign-out notification)."""

import logging
from typing import Callable, List, Optional

from authed_client.common.logging.decorators import LoggedClass

Listener = Callable[[str], None]

# Reason passed to listeners when credential renewal fails
RENEWAL_FAILED = "renewal_failed"


class SessionSignal(LoggedClass):
    """
    Synchronous one-to-many notification.

    Session/navigation code subscribes to be told the session has ended.
    Listeners are called in subscription order with the reason string.
    A listener that raises is logged and skipped; it never affects the
    other listeners or the code that emitted the signal.

    Usage:
        logout = SessionSignal("logout")
        unsubscribe = logout.subscribe(lambda reason: router.goto("/login"))
        ...
        logout.emit(RENEWAL_FAILED)
    """

    log_component = "signals"

    def __init__(self, signal_name: str = "logout"):
        self.signal_name = signal_name
        self._listeners: List[Listener] = []
        self.emit_count = 0
        self.last_reason: Optional[str] = None
        super().__init__()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(self, reason: str) -> None:
        """Notify every listener."""
        self.emit_count += 1
        self.last_reason = reason
        self._log(logging.WARNING, "Session signal emitted", reason=reason)

        for listener in list(self._listeners):
            try:
                listener(reason)
            except Exception as e:
                self._log_exception(
                    e,
                    "Error in session signal listener",
                    level=logging.WARNING,
                    listener=getattr(listener, "__name__", repr(listener)),
                )
