"""
Flush Ticker.

Runs as a daemon thread and emits a Tick once per interval so that a
partially filled batch never waits longer than one interval to be
persisted. The loop ends when the shared shutdown event is set or when
stop() is called; stop() never sets the shared event.
"""

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)

# Longest wait before the shared shutdown signal is rechecked.
WAIT_SLICE = 0.1


class Ticker:
    def __init__(
        self,
        emit: Callable[[], None],
        interval: float = 1.0,
        shutdown: threading.Event | None = None,
    ):
        """
        Args:
            emit: Called once per interval. Should not block.
            interval: Seconds between ticks.
            shutdown: Shared cancellation signal; a private one is created if omitted.
        """
        self._emit = emit
        self._interval = interval
        self._shutdown = shutdown or threading.Event()
        # Ends this ticker only; the shared shutdown signal is left alone.
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.ticks = 0

    def start(self) -> threading.Thread:
        if self._thread and self._thread.is_alive():
            logger.warning("Ticker already running")
            return self._thread
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="FlushTicker", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _should_stop(self) -> bool:
        return self._stop.is_set() or self._shutdown.is_set()

    def _sleep(self) -> bool:
        """Waits one interval; returns True as soon as either signal is set."""
        remaining = self._interval
        while remaining > 0:
            step = min(remaining, WAIT_SLICE)
            if self._stop.wait(step) or self._shutdown.is_set():
                return True
            remaining -= step
        return self._should_stop()

    def _loop(self) -> None:
        logger.debug(f"Ticker started ({self._interval}s interval)")
        while True:
            if self._should_stop():
                break
            try:
                self._emit()
                self.ticks += 1
            except Exception as e:
                logger.error(f"Tick emit failed: {e}", exc_info=True)
            if self._sleep():
                break
        logger.info("Ticker stopped")
