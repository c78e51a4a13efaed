"""Request Gate - Serializes and spaces outbound requests.

Two variants share the Gate protocol:

- UnrestrictedGate: never blocks. Used when rate limiting is disabled.
- SerializedGate: admits one holder at a time in FIFO order and spaces
  successive grants by a minimum delay.

Cancellation is cooperative: callers pass a threading.Event as a token and
set it from another thread to abandon a pending acquire().
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Protocol

logger = logging.getLogger(__name__)

# How often a cancellable waiter re-checks its cancellation token
_CANCEL_POLL_INTERVAL = 0.05


class Gate(Protocol):
    """Admission control wrapped around every transport call."""

    def acquire(self, cancel: threading.Event | None = None) -> bool:
        """Obtain permission to send a request.

        Returns:
            True once the caller may proceed, False if the wait was cancelled.
            A False return leaves the gate as if acquire() was never called.
        """
        ...

    def release(self) -> None:
        """Give up permission. Safe to call when not held."""
        ...


class UnrestrictedGate:
    """Gate that admits every caller immediately."""

    def acquire(self, cancel: threading.Event | None = None) -> bool:
        return True

    def release(self) -> None:
        pass


class _Waiter:
    __slots__ = ("owner", "turn")

    def __init__(self, owner: int) -> None:
        self.owner = owner
        self.turn = threading.Event()


class SerializedGate:
    """Gate that admits one caller at a time and spaces grants apart.

    Ownership is handed directly from the releasing caller to the oldest
    waiter, so waiters are served first-come-first-served. After obtaining
    ownership, acquire() sleeps until at least delay_ms have passed since the
    previous grant.

    Ownership is tracked per thread: release() from a thread that does not
    hold the gate does nothing. The gate is not re-entrant; acquire() from the
    thread that already holds it raises RuntimeError.

    Usage:
        gate = SerializedGate(delay_ms=250)
        if gate.acquire(cancel=token):
            try:
                send_request()
            finally:
                gate.release()
    """

    def __init__(self, delay_ms: int) -> None:
        """Initialize the gate.

        Args:
            delay_ms: Minimum milliseconds between successive grants.

        Raises:
            ValueError: If delay_ms is negative.
        """
        if delay_ms < 0:
            raise ValueError(f"delay_ms must be >= 0, got {delay_ms}")
        self._delay = delay_ms / 1000.0
        self._mutex = threading.Lock()
        self._owner: int | None = None
        self._waiters: deque[_Waiter] = deque()
        self._last_grant_time: float | None = None

    @property
    def delay_ms(self) -> int:
        return round(self._delay * 1000)

    @property
    def held(self) -> bool:
        with self._mutex:
            return self._owner is not None

    def acquire(self, cancel: threading.Event | None = None) -> bool:
        if cancel is not None and cancel.is_set():
            return False

        me = threading.get_ident()
        waiter: _Waiter | None = None

        with self._mutex:
            if self._owner == me:
                raise RuntimeError("SerializedGate is not re-entrant; release it before acquiring again")
            if self._owner is None and not self._waiters:
                self._owner = me
            else:
                waiter = _Waiter(me)
                self._waiters.append(waiter)

        if waiter is not None and not self._wait_for_turn(waiter, cancel):
            logger.warning("Cancelled while waiting for the request gate")
            return False

        if not self._wait_for_spacing(cancel):
            self.release()
            logger.warning("Cancelled during request spacing delay")
            return False

        with self._mutex:
            self._last_grant_time = time.monotonic()
        return True

    def release(self) -> None:
        with self._mutex:
            if self._owner != threading.get_ident():
                logger.debug("release() called by a thread that does not hold the gate")
                return
            self._hand_off_locked()

    def _hand_off_locked(self) -> None:
        """Pass ownership to the next waiter, or mark the gate free."""
        if self._waiters:
            waiter = self._waiters.popleft()
            self._owner = waiter.owner
            waiter.turn.set()
        else:
            self._owner = None

    def _wait_for_turn(self, waiter: _Waiter, cancel: threading.Event | None) -> bool:
        if cancel is None:
            waiter.turn.wait()
            return True

        while not waiter.turn.wait(_CANCEL_POLL_INTERVAL):
            if cancel.is_set():
                with self._mutex:
                    if waiter.turn.is_set():
                        # Ownership arrived while cancelling; pass it on
                        self._hand_off_locked()
                    else:
                        self._waiters.remove(waiter)
                return False
        return True

    def _wait_for_spacing(self, cancel: threading.Event | None) -> bool:
        with self._mutex:
            last = self._last_grant_time
        if last is None:
            return True

        remaining = self._delay - (time.monotonic() - last)
        if remaining <= 0:
            return True

        if cancel is None:
            time.sleep(remaining)
            return True
        return not cancel.wait(remaining)


def make_gate(wait_millis: int) -> Gate:
    """Select the gate variant for a configured delay.

    Args:
        wait_millis: Minimum milliseconds between request starts. 0 disables
            rate limiting.

    Raises:
        ValueError: If wait_millis is negative.
    """
    if wait_millis < 0:
        raise ValueError(f"wait_millis must be >= 0, got {wait_millis}")
    if wait_millis == 0:
        return UnrestrictedGate()
    return SerializedGate(wait_millis)
