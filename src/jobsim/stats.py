from __future__ import annotations

import threading
from collections import Counter

from .models import SUCCESS_CODE, RunStats


class StatsAggregator:
    """Success and per-error-code failure tallies shared by all workers.

    ``record_outcome`` is safe to call from any thread. ``summary`` is meant
    to be read once every worker has been joined.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._success = 0
        self._failures: Counter[int] = Counter()

    def record_outcome(self, error_code: int) -> None:
        with self._lock:
            if error_code == SUCCESS_CODE:
                self._success += 1
            else:
                self._failures[error_code] += 1

    def summary(self) -> RunStats:
        with self._lock:
            return RunStats(total_success=self._success, failures=dict(self._failures))
