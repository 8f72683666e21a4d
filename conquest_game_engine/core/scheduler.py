"""
Cooperative scheduler for the conquest game engine.
A time-ordered queue of one-shot and periodic callbacks driven by the match
clock, so that resetting a match can cancel every pending callback at once.
"""

import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass(order=True)
class ScheduledJob:
    due_ms: float
    sequence: int
    callback: Callable[[], None] = field(compare=False)
    period_ms: Optional[float] = field(default=None, compare=False)
    name: str = field(default="", compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class Scheduler:
    """
    Runs callbacks when the match clock passes their due time.

    Jobs run in (due time, insertion order). A periodic job that fell behind
    runs once per missed period so time-based accumulation stays exact.
    """

    def __init__(self):
        self._queue: List[ScheduledJob] = []
        self._sequence = itertools.count()
        self.now_ms = 0.0
        self._running: Optional[ScheduledJob] = None

    def schedule_at(self, due_ms: float, callback: Callable[[], None], name: str = "") -> ScheduledJob:
        """Run ``callback`` once when the clock reaches ``due_ms``."""
        job = ScheduledJob(float(due_ms), next(self._sequence), callback, None, name)
        heapq.heappush(self._queue, job)
        return job

    def schedule_after(self, delay_ms: float, callback: Callable[[], None], name: str = "") -> ScheduledJob:
        return self.schedule_at(self.now_ms + delay_ms, callback, name)

    def schedule_every(
        self,
        period_ms: float,
        callback: Callable[[], None],
        start_ms: Optional[float] = None,
        name: str = ""
    ) -> ScheduledJob:
        """
        Run ``callback`` every ``period_ms``.

        Args:
            period_ms: Interval between runs (must be positive)
            callback: Function to call
            start_ms: First due time; defaults to one period from now
            name: Label used in logs
        """
        if period_ms <= 0:
            raise ValueError("Period must be positive")
        first = self.now_ms + period_ms if start_ms is None else start_ms
        job = ScheduledJob(float(first), next(self._sequence), callback, float(period_ms), name)
        heapq.heappush(self._queue, job)
        return job

    def run_due(self, now_ms: float) -> int:
        """
        Run every job due at or before ``now_ms``.

        Returns:
            Number of callbacks executed
        """
        executed = 0
        while self._queue and self._queue[0].due_ms <= now_ms:
            job = heapq.heappop(self._queue)
            if job.cancelled:
                continue
            self.now_ms = max(self.now_ms, job.due_ms)
            self._running = job
            try:
                job.callback()
            finally:
                self._running = None
            executed += 1
            if job.period_ms is not None and not job.cancelled:
                job.due_ms += job.period_ms
                job.sequence = next(self._sequence)
                heapq.heappush(self._queue, job)
        self.now_ms = max(self.now_ms, now_ms)
        return executed

    def clear(self) -> None:
        """Cancel every pending job."""
        for job in self._queue:
            job.cancelled = True
        if self._running is not None:
            self._running.cancelled = True
        self._queue = []
        logger.debug("Scheduler cleared")

    def reset(self) -> None:
        self.clear()
        self.now_ms = 0.0

    @property
    def pending_count(self) -> int:
        return sum(1 for job in self._queue if not job.cancelled)

    def next_due(self) -> Optional[float]:
        pending = [job.due_ms for job in self._queue if not job.cancelled]
        return min(pending) if pending else None
