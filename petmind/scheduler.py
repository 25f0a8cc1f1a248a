"""
Maintenance Scheduler

Runs every periodic sweep (decay, consolidation, reflection, ...) from
one place, one after another, so all state is mutated by a single
writer. Each task has its own interval; the caller decides when to ask
which tasks are due.

A failing task is logged and skipped until its next interval. It never
stops the other tasks.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class PeriodicTask:
    """A named sweep with a fixed interval (seconds)."""
    name: str
    interval: float
    action: Callable[[], Any]
    last_run: Optional[float] = None
    runs: int = 0
    failures: int = 0
    enabled: bool = True

    def is_due(self, now: float) -> bool:
        if not self.enabled:
            return False
        if self.last_run is None:
            return True
        return now - self.last_run >= self.interval

    def next_due(self, now: float) -> float:
        if self.last_run is None:
            return now
        return self.last_run + self.interval


class MaintenanceScheduler:
    """
    Ordered set of periodic tasks.

    Usage:
        scheduler = MaintenanceScheduler()
        scheduler.add("pattern_decay", 5.0, engine.decay)
        scheduler.run_due(clock())
    """

    def __init__(self, start: Optional[float] = None):
        self.tasks: Dict[str, PeriodicTask] = {}
        self.start = start

    def add(self, name: str, interval: float, action: Callable[[], Any]) -> PeriodicTask:
        task = PeriodicTask(name=name, interval=interval, action=action, last_run=self.start)
        self.tasks[name] = task
        return task

    def set_interval(self, name: str, interval: float) -> bool:
        task = self.tasks.get(name)
        if task is None:
            return False
        task.interval = interval
        return True

    def run_due(self, now: float) -> List[str]:
        """Run every due task in registration order. Returns names that ran."""
        ran = []
        for task in self.tasks.values():
            if not task.is_due(now):
                continue
            task.last_run = now
            try:
                task.action()
                task.runs += 1
            except Exception:
                task.failures += 1
                logger.exception("Maintenance task %s failed", task.name)
            ran.append(task.name)
        return ran

    def run(self, name: str) -> bool:
        """Run one task immediately regardless of its interval."""
        task = self.tasks.get(name)
        if task is None:
            return False
        try:
            task.action()
            task.runs += 1
        except Exception:
            task.failures += 1
            logger.exception("Maintenance task %s failed", task.name)
            return False
        return True

    def seconds_until_next(self, now: float) -> float:
        enabled = [t for t in self.tasks.values() if t.enabled]
        if not enabled:
            return float('inf')
        return max(0.0, min(t.next_due(now) for t in enabled) - now)

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        return {
            name: {'interval': t.interval, 'runs': t.runs, 'failures': t.failures, 'last_run': t.last_run}
            for name, t in self.tasks.items()
        }
