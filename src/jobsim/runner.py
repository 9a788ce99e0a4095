from __future__ import annotations

import logging
import random
import threading
from collections.abc import Iterable

from .app_logging import log_with_fields
from .channel import WorkerQueue
from .clock import VirtualClock, build_clock
from .config import AppConfig
from .dispatcher import Dispatcher
from .history import ErrorDistribution
from .models import RunSummary
from .stats import StatsAggregator
from .utils import utc_now_iso, worker_name
from .worker import Worker


class DispatchError(RuntimeError):
    pass


class Runner:
    """Owns the worker pool for one run: start everything, join, summarise."""

    def __init__(
        self,
        config: AppConfig,
        logger: logging.Logger,
        *,
        distribution: ErrorDistribution | None = None,
        stats: StatsAggregator | None = None,
        clock: VirtualClock | None = None,
        loads: Iterable[float] | None = None,
    ) -> None:
        self.config = config
        self.logger = logger
        self.distribution = distribution
        self.stats = stats or StatsAggregator()
        self.clock = clock or build_clock(config.execution.clock, config.execution.time_scale)
        self.loads = loads
        self.queues: list[WorkerQueue] = []
        self.workers: list[Worker] = []
        self._dispatch_error: BaseException | None = None

    def _worker_rng(self, index: int) -> random.Random:
        seed = self.config.history.seed
        return random.Random(None if seed is None else seed + index)

    def build_workers(self) -> list[Worker]:
        self.queues = [WorkerQueue(worker_name(index)) for index in range(self.config.pool.workers)]
        self.workers = [
            Worker(
                queue.name,
                queue,
                self.stats,
                self.clock,
                self.logger,
                execution=self.config.execution,
                history=self.config.history,
                distribution=self.distribution,
                rng=self._worker_rng(index),
            )
            for index, queue in enumerate(self.queues)
        ]
        return self.workers

    def _dispatch(self, dispatcher: Dispatcher) -> None:
        try:
            dispatcher.run()
        except Exception as exc:
            self._dispatch_error = exc
            log_with_fields(self.logger, logging.ERROR, "dispatch_failed", error=str(exc))
            for queue in self.queues:
                queue.abort()

    def run(self) -> RunSummary:
        started_at = utc_now_iso()
        workers = self.build_workers()
        dispatcher = Dispatcher(
            self.queues,
            self.config.run.num_jobs,
            self.logger,
            config=self.config.dispatch,
            loads=self.loads,
        )

        threads = [threading.Thread(target=worker.run, name=worker.name) for worker in workers]
        for thread in threads:
            thread.start()
        master = threading.Thread(target=self._dispatch, args=(dispatcher,), name="master")
        master.start()

        master.join()
        for thread in threads:
            thread.join()

        if self._dispatch_error is not None:
            raise DispatchError(f"dispatch failed: {self._dispatch_error}") from self._dispatch_error

        summary = RunSummary(
            total_jobs=self.config.run.num_jobs,
            stats=self.stats.summary(),
            simulated_seconds=self.clock.now(),
            started_at=started_at,
        )
        log_with_fields(
            self.logger,
            logging.INFO,
            "run_finished",
            started_at=summary.started_at,
            jobs=summary.total_jobs,
            success=summary.total_success,
            failed=summary.total_failures,
            simulated_seconds=round(summary.simulated_seconds, 6),
        )
        return summary


def render_summary(summary: RunSummary) -> str:
    lines = [
        "=== Simulation Summary ===",
        f"Total jobs: {summary.total_jobs}",
        f"Successful jobs: {summary.total_success}",
        f"Failed jobs: {summary.total_failures}",
    ]
    if summary.total_failures > 0:
        lines.append("Failure details:")
        for code, count in sorted(summary.failures.items()):
            lines.append(f"  Error code {code}: {count}")
    lines.append(f"Simulated time: {summary.simulated_seconds:.1f} s")
    lines.append("==========================")
    return "\n".join(lines)
