"""Fixed-interval background loop.

Both external drivers of semantic-spine run on this: the job driver
(tick every runnable job every 2 s) and the anomaly monitor (sweep every
5 min). The callback is synchronous; one failing tick is logged and the
loop carries on.

::

    IntervalLoop("job-driver", driver.tick_once, interval_seconds=2.0)
      start()  → daemon thread: while not stop_event.wait(interval): callback()
      stop()   → stop_event.set(); join(timeout)
      health() → {healthy, name, tick_count, last_tick, interval_seconds, errors}
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any

from semspine.core.logging import get_logger
from semspine.core.timestamps import to_iso8601, utc_now

logger = get_logger(__name__)


class IntervalLoop:
    """Run ``callback`` every ``interval_seconds`` in a daemon thread."""

    def __init__(
        self,
        name: str,
        callback: Callable[[], Any],
        *,
        interval_seconds: float,
        run_immediately: bool = False,
    ) -> None:
        self.name = name
        self._callback = callback
        self._interval = interval_seconds
        self._run_immediately = run_immediately
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._tick_count = 0
        self._error_count = 0
        self._last_tick: datetime | None = None

    def start(self) -> None:
        if self.is_running:
            logger.warning("loop_already_started", loop=self.name)
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name=self.name)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("loop_did_not_stop", loop=self.name)
        self._thread = None

    def run_once(self) -> Any:
        """Invoke the callback on the calling thread, counting it as a tick."""
        with self._lock:
            self._tick_count += 1
            self._last_tick = utc_now()
        try:
            return self._callback()
        except Exception as exc:
            with self._lock:
                self._error_count += 1
            logger.exception("loop_tick_failed", loop=self.name, error=str(exc))
            return None

    def _run(self) -> None:
        logger.info("loop_started", loop=self.name, interval_seconds=self._interval)
        if self._run_immediately:
            self.run_once()
        while not self._stop_event.wait(self._interval):
            self.run_once()
        logger.info("loop_stopped", loop=self.name, tick_count=self._tick_count)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    def health(self) -> dict[str, Any]:
        return {
            "healthy": self.is_running,
            "name": self.name,
            "tick_count": self._tick_count,
            "errors": self._error_count,
            "last_tick": to_iso8601(self._last_tick),
            "interval_seconds": self._interval,
        }
