"""
REFLEX — Debounced Writer
Coalesces bursts of write requests into one trailing write.

schedule() restarts the window every time it is called, so a run of rapid
calls produces a single write of whatever state exists when the timer
fires. Intermediate states are never guaranteed to reach storage.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 1.0


class DebouncedWriter:

    def __init__(self, write_fn: Callable[[], None],
                 delay: float = DEFAULT_DELAY_SECONDS):
        self._write_fn = write_fn
        self.delay     = delay
        self._timer: Optional[threading.Timer] = None
        self._lock     = threading.Lock()
        self.writes    = 0      # completed writes, for stats/tests

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self):
        """(Re)start the trailing window. Any pending write is replaced."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> bool:
        """Drop the pending write, if any. Returns True if one was dropped."""
        with self._lock:
            if self._timer is None:
                return False
            self._timer.cancel()
            self._timer = None
            return True

    def flush(self) -> bool:
        """Run the pending write now on the calling thread."""
        if not self.cancel():
            return False
        self._run()
        return True

    def _fire(self):
        with self._lock:
            # a newer schedule() or a flush() may have replaced this timer
            if self._timer is None or self._timer is not threading.current_thread():
                return
            self._timer = None
        self._run()

    def _run(self):
        try:
            self._write_fn()
            self.writes += 1
        except Exception as e:
            logger.error("Debounced write failed: %s", e)
