"""
Single-flight credential renewal coordinator.

When any number of in-flight calls fail because the access credential
expired, exactly one renewal runs. Every failed call joins a FIFO queue of
pending handles; when the renewal finishes the queue drains:

- Success: the coordinator goes idle, the new pair is stored, and each
  queued call is replayed (replays started in queue order) and settled with
  its replay's outcome.
- Failure: the coordinator goes idle, the store is cleared, every queued
  call is rejected with the same error, and one logout signal is emitted.

Concurrency model:
    Single-threaded asyncio. The only suspension point inside the
    coordinator is the renewal call itself; joining the queue, flipping the
    in-progress flag and draining all run without awaiting, which is what
    makes the single-flight guarantee hold without locks.

    The renewal and the drain run in a task owned by the coordinator, not
    in the caller that triggered them. A caller that is cancelled while
    waiting therefore never cancels the renewal; the queue always drains
    and its handle is still settled (the outcome is simply unobserved).
    There is no early removal from the queue.
"""

import asyncio
import functools
import itertools
import logging
from collections import deque
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Set

from authed_client.auth.models import CredentialPair
from authed_client.auth.renewal import RenewalClient
from authed_client.auth.signals import RENEWAL_FAILED, SessionSignal
from authed_client.auth.store import CredentialStore
from authed_client.common.exceptions import RenewalRejected, TransportFailure
from authed_client.common.logging.decorators import LoggedClass

ReplayCall = Callable[[], Awaitable[Any]]


class PendingStatus(Enum):
    """Lifecycle of a queued caller."""

    WAITING = "waiting"  # Queued, renewal not finished
    REPLAYING = "replaying"  # Renewal succeeded, replay started
    SETTLED = "settled"  # Outcome delivered


def _consume_outcome(future: asyncio.Future) -> None:
    """Mark an abandoned handle's outcome as retrieved."""
    if not future.cancelled():
        future.exception()


@dataclass
class PendingCall:
    """One caller blocked on the in-progress renewal."""

    sequence: int
    replay: ReplayCall
    future: asyncio.Future
    status: PendingStatus = PendingStatus.WAITING
    abandoned: bool = False

    def abandon(self) -> None:
        """Caller stopped waiting; the handle is still settled on drain."""
        self.abandoned = True
        self.future.add_done_callback(_consume_outcome)

    def resolve(self, value: Any) -> None:
        self.status = PendingStatus.SETTLED
        if not self.future.done():
            self.future.set_result(value)

    def reject(self, exc: BaseException) -> None:
        self.status = PendingStatus.SETTLED
        if not self.future.done():
            self.future.set_exception(exc)

    def cancel(self) -> None:
        self.status = PendingStatus.SETTLED
        if not self.future.done():
            self.future.cancel()


class RenewalState:
    """
    In-progress flag plus the ordered queue of pending callers.

    Owned by exactly one coordinator. Transitions:
        idle --join()--> in progress --release()--> idle
    """

    def __init__(self) -> None:
        self.in_progress = False
        self.queue: Deque[PendingCall] = deque()

    def join(self, pending: PendingCall) -> bool:
        """Enqueue a caller. Returns True if this caller must start the renewal."""
        self.queue.append(pending)
        if self.in_progress:
            return False
        self.in_progress = True
        return True

    def release(self) -> List[PendingCall]:
        """Go idle and hand back every queued caller in join order."""
        waiting = list(self.queue)
        self.queue.clear()
        self.in_progress = False
        return waiting


@dataclass
class RenewalStats:
    """Counters for coordinator diagnostics."""

    renewals_started: int = 0
    renewals_succeeded: int = 0
    renewals_failed: int = 0
    replays_initiated: int = 0
    callers_rejected: int = 0


class RefreshCoordinator(LoggedClass):
    """
    Coordinates credential renewal for one session.

    Usage (from the dispatcher, on an expired-credential response):
        return await coordinator.handle_expiry(lambda: self._dispatch(spec, depth + 1))

    Args:
        store: Credential store of the session
        renewal_client: Client for the refresh endpoint
        signal: Logout signal, emitted once per failed renewal
        renewal_timeout_seconds: Upper bound on one renewal call; a timeout
            is treated as a TransportFailure
    """

    log_component = "coordinator"

    def __init__(
        self,
        store: CredentialStore,
        renewal_client: RenewalClient,
        signal: SessionSignal,
        renewal_timeout_seconds: float = 10.0,
    ):
        self.renewal_timeout_seconds = renewal_timeout_seconds
        self._store = store
        self._renewal_client = renewal_client
        self._signal = signal

        self._state = RenewalState()
        self._stats = RenewalStats()
        self._sequence = itertools.count(1)
        self._renewal_task: Optional[asyncio.Task] = None
        self._replay_tasks: Set[asyncio.Task] = set()
        self._closed = False

        super().__init__()

    @property
    def in_progress(self) -> bool:
        return self._state.in_progress

    @property
    def queued(self) -> int:
        return len(self._state.queue)

    async def handle_expiry(self, original_call: ReplayCall) -> Any:
        """
        Wait for a valid credential, then settle with the replay's outcome.

        Args:
            original_call: Zero-argument callable re-issuing the failed call.
                It is invoked after a successful renewal so the replay picks
                up the new credential.

        Returns:
            Whatever the replay returns

        Raises:
            RenewalRejected: Renewal refused (or nothing to renew)
            TransportFailure: Renewal could not reach the server or timed out
            Exception: Whatever the replay raises
        """
        if self._closed:
            raise TransportFailure("Session closed; credential renewal unavailable")

        loop = asyncio.get_running_loop()
        pending = PendingCall(
            sequence=next(self._sequence),
            replay=original_call,
            future=loop.create_future(),
        )

        if self._state.join(pending):
            self._stats.renewals_started += 1
            self._renewal_task = asyncio.ensure_future(
                self._renew_and_drain(self._stats.renewals_started)
            )
            self._log(
                logging.INFO,
                "Credential renewal started",
                renewal_id=self._stats.renewals_started,
                sequence=pending.sequence,
            )
        else:
            self._log(
                logging.DEBUG,
                "Joined in-progress credential renewal",
                renewal_id=self._stats.renewals_started,
                sequence=pending.sequence,
                queued=self.queued,
            )

        try:
            return await asyncio.shield(pending.future)
        except asyncio.CancelledError:
            if not pending.future.done():
                pending.abandon()
            raise

    async def _renew_and_drain(self, renewal_id: int) -> None:
        """Run one renewal and drain the queue with its outcome."""
        waiting: List[PendingCall] = []
        try:
            current: Optional[CredentialPair] = self._store.get()
            if current is None:
                # Session already ended (store cleared); nothing to renew
                waiting = self._state.release()
                self._stats.renewals_failed += 1
                self._reject_all(
                    waiting,
                    RenewalRejected(
                        "No credentials to renew",
                        code="NO_REFRESH_CREDENTIAL",
                    ),
                    renewal_id,
                )
                return

            try:
                new_pair = await asyncio.wait_for(
                    self._renewal_client.renew(current.refresh_credential),
                    timeout=self.renewal_timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                waiting = self._state.release()
                self._fail(
                    waiting,
                    TransportFailure(
                        f"Credential renewal timed out after {self.renewal_timeout_seconds}s",
                        timed_out=True,
                        cause=e,
                    ),
                    renewal_id,
                )
                return
            except Exception as e:
                waiting = self._state.release()
                self._fail(waiting, e, renewal_id)
                return

            waiting = self._state.release()
            self._succeed(waiting, new_pair, renewal_id)

        except asyncio.CancelledError:
            self._reject_stranded(
                waiting,
                TransportFailure("Credential renewal cancelled: session closed"),
                renewal_id,
            )
            raise
        except Exception as e:
            self._log_exception(e, "Credential renewal drain failed", renewal_id=renewal_id)
            self._reject_stranded(waiting, e, renewal_id)

    def _reject_stranded(
        self,
        waiting: List[PendingCall],
        error: BaseException,
        renewal_id: int,
    ) -> None:
        """Reject handles the drain did not get to, plus anything still queued."""
        stranded = [p for p in waiting if p.status is PendingStatus.WAITING]
        stranded.extend(self._state.release())
        if stranded:
            self._reject_all(stranded, error, renewal_id)

    def _succeed(
        self,
        waiting: List[PendingCall],
        pair: CredentialPair,
        renewal_id: int,
    ) -> None:
        try:
            self._store.set(pair)
        except Exception as e:
            # Renewed pair could not be kept; the session cannot continue
            self._fail(waiting, e, renewal_id)
            return

        self._stats.renewals_succeeded += 1
        self._log(
            logging.INFO,
            "Credential renewal succeeded; replaying queued calls",
            renewal_id=renewal_id,
            queued=len(waiting),
        )

        # Replays are started strictly in join order
        for pending in waiting:
            task = asyncio.ensure_future(pending.replay())
            pending.status = PendingStatus.REPLAYING
            self._stats.replays_initiated += 1
            self._replay_tasks.add(task)
            task.add_done_callback(functools.partial(self._on_replay_done, pending))

    def _on_replay_done(self, pending: PendingCall, task: asyncio.Task) -> None:
        self._replay_tasks.discard(task)
        if task.cancelled():
            if self._closed:
                pending.reject(TransportFailure("Replay cancelled: session closed"))
            else:
                pending.cancel()
            return
        exc = task.exception()
        if exc is not None:
            pending.reject(exc)
        else:
            pending.resolve(task.result())

    def _fail(
        self,
        waiting: List[PendingCall],
        error: BaseException,
        renewal_id: int,
    ) -> None:
        self._stats.renewals_failed += 1
        try:
            self._store.clear()
        except Exception as e:
            self._log_exception(
                e,
                "Could not clear credentials after failed renewal",
                level=logging.WARNING,
                renewal_id=renewal_id,
            )
        self._log_exception(
            error,
            "Credential renewal failed; ending session",
            level=logging.WARNING,
            include_traceback=False,
            renewal_id=renewal_id,
            queued=len(waiting),
        )
        self._reject_all(waiting, error, renewal_id)
        self._signal.emit(RENEWAL_FAILED)


    def _reject_all(
        self,
        waiting: List[PendingCall],
        error: BaseException,
        renewal_id: int,
    ) -> None:
        for pending in waiting:
            pending.reject(error)
        self._stats.callers_rejected += len(waiting)
        self._log(
            logging.DEBUG,
            "Rejected queued calls",
            renewal_id=renewal_id,
            queued=len(waiting),
        )

    def get_diagnostics(self) -> Dict[str, Any]:
        """
        Get coordinator state and counters.

        Returns:
            Dict with in_progress, queued and RenewalStats fields
        """
        return {
            "in_progress": self.in_progress,
            "queued": self.queued,
            "replays_in_flight": len(self._replay_tasks),
            **asdict(self._stats),
        }

    async def aclose(self) -> None:
        """
        Stop accepting expiries, cancel an in-flight renewal and any replays.

        Queued and replaying callers are rejected with TransportFailure. The
        store is left untouched and no logout signal is emitted.
        """
        self._closed = True
        task = self._renewal_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        replays = list(self._replay_tasks)
        for replay in replays:
            replay.cancel()
        if replays:
            await asyncio.gather(*replays, return_exceptions=True)
