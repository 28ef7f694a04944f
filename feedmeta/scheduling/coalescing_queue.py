# ==============================================
# CoalescingQueue
# ==============================================
#
# PURPOSE:
#   Merge many "please save" signals into one deferred call.
#   Callers register (key, action); the action runs once after
#   `interval` seconds, however many times it was added meanwhile.
#
# WINDOW RULE:
#   First pending call wins. The window is measured from the first
#   add() for a key; later adds while that call is pending are no-ops
#   (the window is NOT extended and the action is NOT replaced).
#   The slot is released before the action runs, so an add() made
#   while the action is running opens a new window.
#
# CLASS: CoalescingQueue
# ----------------------
#   Constructor:
#   ------------
#   - __init__(name: str, interval: float = 0.5, logger=None)
#
#   Methods:
#   --------
#   - add(key, action) -> bool
#       Schedule action for key. True if a new window was opened.
#   - is_pending(key) -> bool
#   - cancel(key) -> bool
#   - perform_calls_immediately() -> int
#       Run every pending action now, on the caller's thread.
#   - shutdown(perform_pending: bool = True) -> None
#
# ==============================================

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Optional


@dataclass
class _PendingCall:
    action: Callable[[], None]
    timer: Optional[threading.Timer] = None


class CoalescingQueue:
    """
    Time-windowed, per-key call coalescer backed by threading.Timer.

    At most one timer is outstanding per key. Actions run on the timer
    thread; exceptions they raise are logged and never propagate.
    """

    def __init__(self, name: str, interval: float = 0.5, logger: Optional[logging.Logger] = None):
        """
        Args:
            name: Label used in log messages and timer thread names
            interval: Coalescing window in seconds (must be > 0)
            logger: Logger to report action failures to
        """
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")

        self.name = name
        self.interval = interval
        self._logger = logger or logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._pending: Dict[Hashable, _PendingCall] = {}
        self._is_shut_down = False

    def add(self, key: Hashable, action: Callable[[], None]) -> bool:
        """
        Register that `action` should run once within the next window for `key`.

        Args:
            key: Coalescing key (usually the object that owns the action)
            action: Zero-argument callable; must re-check its own state

        Returns:
            True if a new window was opened, False if one was already pending
        """
        with self._lock:
            if self._is_shut_down:
                self._logger.warning("⚠ %s: add() after shutdown ignored", self.name)
                return False

            if key in self._pending:
                return False

            call = _PendingCall(action=action)
            # The timer carries its own call so a stale timer can't pop a newer slot
            call.timer = threading.Timer(self.interval, self._fire, args=(key, call))
            call.timer.daemon = True
            call.timer.name = f"{self.name}-timer"
            self._pending[key] = call
            call.timer.start()

        return True

    def is_pending(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._pending

    def cancel(self, key: Hashable) -> bool:
        """Drop the pending call for key without running it."""
        with self._lock:
            call = self._pending.pop(key, None)
        if call is None:
            return False
        call.timer.cancel()
        return True

    def perform_calls_immediately(self) -> int:
        """
        Run every pending action now instead of waiting for its timer.

        Returns:
            Number of actions performed
        """
        with self._lock:
            calls = list(self._pending.items())
            self._pending.clear()

        for _, call in calls:
            call.timer.cancel()
        for key, call in calls:
            self._perform(key, call.action)

        return len(calls)

    def shutdown(self, perform_pending: bool = True) -> None:
        """
        Stop accepting new calls.

        Args:
            perform_pending: Run pending actions now (True) or drop them (False)
        """
        with self._lock:
            self._is_shut_down = True

        if perform_pending:
            self.perform_calls_immediately()
            return

        with self._lock:
            calls = list(self._pending.values())
            self._pending.clear()
        for call in calls:
            call.timer.cancel()

    def _fire(self, key: Hashable, call: _PendingCall) -> None:
        with self._lock:
            if self._pending.get(key) is not call:
                # Cancelled or already performed immediately
                return
            del self._pending[key]

        self._perform(key, call.action)

    def _perform(self, key: Hashable, action: Callable[[], None]) -> None:
        try:
            action()
        except Exception:
            self._logger.exception("⚠ %s: coalesced call for %r failed", self.name, key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)
