"""
Lightweight helpers for measuring per-stage timings of a generation job.

Stage timers accumulate elapsed wall-clock seconds per named stage so the
orchestrator can log durations and feed the stage histogram.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Dict

from printgen.core import metrics


class StageTimers:
    """
    Accumulate elapsed time per logical stage name.

    Use `timer(name)` as a context manager around stage blocks;
    each exit adds the elapsed seconds to `totals[name]`.
    """

    def __init__(self) -> None:
        self.totals: Dict[str, float] = {}

    @contextmanager
    def timer(self, name: str):
        """
        Measure and accumulate elapsed time for the given stage name.

        Args:
          name: Logical stage identifier (e.g. "render" or "merge").
        """
        start_time = time.perf_counter()
        try:
            yield
        finally:
            elapsed_time = time.perf_counter() - start_time
            self.totals[name] = self.totals.get(name, 0.0) + elapsed_time
            metrics.record_stage_duration(name, elapsed_time)

    def as_millis(self) -> Dict[str, int]:
        return {name: int(seconds * 1000) for name, seconds in self.totals.items()}
