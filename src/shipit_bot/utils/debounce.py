"""
Pull Request Debouncer

Coalesces bursts of webhook events into one evaluation per pull request.
Pending calls are keyed by pull request identity, so events for different
pull requests never cancel each other.
"""

import logging
import threading
from typing import Callable, Dict, Hashable, Tuple


logger = logging.getLogger(__name__)


class PullRequestDebouncer:
    """
    Runs ``callback(*args)`` once per key after ``delay_seconds`` of quiet.

    Scheduling again for the same key before the delay elapses cancels the
    pending call and restarts the timer with the newest arguments.
    """

    def __init__(self, callback: Callable[..., None], delay_seconds: float = 0.1):
        self.callback = callback
        self.delay_seconds = delay_seconds
        self._timers: Dict[Hashable, threading.Timer] = {}
        self._lock = threading.Lock()

    def schedule(self, key: Hashable, *args) -> None:
        """Schedule (or reschedule) the callback for a key."""
        with self._lock:
            existing = self._timers.pop(key, None)
            if existing is not None:
                existing.cancel()
                logger.debug(f"Debounced pending evaluation for {key}")

            timer = threading.Timer(self.delay_seconds, self._fire, args=(key, args))
            timer.daemon = True
            self._timers[key] = timer
            timer.start()

    def _fire(self, key: Hashable, args: Tuple) -> None:
        with self._lock:
            timer = self._timers.get(key)
            if timer is None or timer is not threading.current_thread():
                return
            del self._timers[key]

        try:
            self.callback(*args)
        except Exception as e:
            logger.exception(f"Debounced call for {key} failed: {e}")

    def pending(self) -> int:
        """Number of keys with a scheduled call."""
        with self._lock:
            return len(self._timers)

    def cancel_all(self) -> None:
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
