"""
Credential store.

Owns the current credential pair in one slot per session. The slot is the
persistence medium (memory or a JSON file); the store is the only code that
talks to it. All operations are synchronous: under asyncio they run to
completion between suspension points, so no locking is needed.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol, Union

from authed_client.auth.models import CredentialPair
from authed_client.common.logging.decorators import LoggedClass
from authed_client.common.logging.utilities import get_logger, log_with_context

logger = get_logger(__name__)


class CredentialSlot(Protocol):
    """Persistence medium for a single credential pair."""

    def load(self) -> Optional[CredentialPair]:
        ...

    def save(self, pair: CredentialPair) -> None:
        ...

    def erase(self) -> None:
        ...


class MemoryCredentialSlot:
    """Process-local slot. Lost when the process exits."""

    def __init__(self) -> None:
        self._pair: Optional[CredentialPair] = None

    def load(self) -> Optional[CredentialPair]:
        return self._pair

    def save(self, pair: CredentialPair) -> None:
        self._pair = pair

    def erase(self) -> None:
        self._pair = None


class FileCredentialSlot:
    """
    Slot persisted as a JSON file.

    Writes go to a temporary file in the same directory followed by
    os.replace(), so a reader never sees a half-written file and a read
    immediately after save() returns the saved pair.

    A missing file reads as "no credentials". An unreadable or malformed
    file also reads as "no credentials" (with a warning) rather than
    failing every call.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Optional[CredentialPair]:
        if not self.path.exists():
            return None
        try:
            content = self.path.read_text(encoding="utf-8-sig").strip()
            if not content:
                return None
            return CredentialPair.from_dict(json.loads(content))
        except (OSError, ValueError) as e:
            log_with_context(
                logger,
                logging.WARNING,
                "Ignoring unreadable credential file",
                error_message=type(e).__name__,
            )
            return None

    def save(self, pair: CredentialPair) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(pair.to_dict(), f)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def erase(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class CredentialStore(LoggedClass):
    """
    Current credential pair for one session.

    Lifecycle:
        set()   on login or successful renewal
        clear() on logout or failed renewal

    Usage:
        store = CredentialStore()
        store.set(CredentialPair("access", "refresh"))
        store.access_credential()  # "access"
    """

    log_component = "store"

    def __init__(self, slot: Optional[CredentialSlot] = None):
        self._slot = slot if slot is not None else MemoryCredentialSlot()
        super().__init__()

    def get(self) -> Optional[CredentialPair]:
        """Return the current pair, or None if signed out."""
        return self._slot.load()

    def set(self, pair: CredentialPair) -> None:
        """Replace the current pair."""
        if not isinstance(pair, CredentialPair):
            raise TypeError(f"Expected CredentialPair, got {type(pair).__name__}")
        self._slot.save(pair)
        self._log(logging.DEBUG, "Credentials stored")

    def clear(self) -> None:
        """Remove the current pair."""
        self._slot.erase()
        self._log(logging.DEBUG, "Credentials cleared")

    def access_credential(self) -> Optional[str]:
        pair = self.get()
        return pair.access_credential if pair else None

    def refresh_credential(self) -> Optional[str]:
        pair = self.get()
        return pair.refresh_credential if pair else None

    def has_credentials(self) -> bool:
        return self.get() is not None
