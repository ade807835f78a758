"""Background driver that ticks every runnable job on a fixed interval."""

from __future__ import annotations

from typing import Any

from semspine.core.logging import get_logger
from semspine.core.loop import IntervalLoop
from semspine.jobs.orchestrator import JobOrchestrator, TickOutcome, TickResult

logger = get_logger(__name__)


class JobDriver:
    """Run :meth:`JobOrchestrator.tick_runnable` every ``interval_seconds``.

    A crash of the driver process loses nothing: the next driver resumes
    each job from its persisted cursor. Two drivers over the same store
    are safe because every chunk commit is a compare-and-set.

    Example:
        >>> driver = JobDriver(orchestrator, interval_seconds=2.0)
        >>> driver.start()
        >>> driver.health()["tick_count"]
        >>> driver.stop()
    """

    def __init__(self, orchestrator: JobOrchestrator, *, interval_seconds: float = 2.0) -> None:
        self.orchestrator = orchestrator
        self._loop = IntervalLoop("job-driver", self.tick_once, interval_seconds=interval_seconds)

    def tick_once(self) -> list[TickResult]:
        results = self.orchestrator.tick_runnable()
        advanced = sum(1 for r in results if r.outcome == TickOutcome.ADVANCED)
        if results:
            logger.debug("driver_tick", jobs=len(results), advanced=advanced)
        return results

    def start(self) -> None:
        self._loop.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._loop.stop(timeout)

    @property
    def is_running(self) -> bool:
        return self._loop.is_running

    def health(self) -> dict[str, Any]:
        return self._loop.health()
