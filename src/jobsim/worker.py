from __future__ import annotations

import logging
import random

from .app_logging import log_with_fields
from .channel import WorkerQueue
from .clock import VirtualClock
from .config import ExecutionConfig, HistoryConfig
from .history import ErrorDistribution
from .models import SUCCESS_CODE, ErrorPolicy, Terminate, WorkItem
from .stats import StatsAggregator

# Absorbs float drift from summing many 0.1 slices.
EPSILON = 1e-9


class Worker:
    def __init__(
        self,
        name: str,
        queue: WorkerQueue,
        stats: StatsAggregator,
        clock: VirtualClock,
        logger: logging.Logger,
        *,
        execution: ExecutionConfig | None = None,
        history: HistoryConfig | None = None,
        distribution: ErrorDistribution | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.name = name
        self.queue = queue
        self.stats = stats
        self.clock = clock
        self.logger = logger
        self.execution = execution or ExecutionConfig()
        self.history = history or HistoryConfig()
        self.distribution = distribution
        self.rng = rng or random.Random()
        self.handled = 0
        self.terminated = False

    def run(self) -> None:
        log_with_fields(self.logger, logging.INFO, "worker_started", worker=self.name)
        while True:
            job = self.queue.get()
            if isinstance(job, Terminate):
                log_with_fields(
                    self.logger,
                    logging.INFO,
                    "worker_exiting",
                    worker=self.name,
                    signal=job.name,
                    handled=self.handled,
                )
                self.terminated = True
                return
            log_with_fields(
                self.logger,
                logging.INFO,
                "job_received",
                worker=self.name,
                job=job.name,
                load=round(job.load, 6),
            )
            self.handle(job)

    def handle(self, job: WorkItem) -> int:
        elapsed, timed_out = self.execute(job)
        if timed_out:
            log_with_fields(
                self.logger,
                logging.INFO,
                "job_timeout",
                worker=self.name,
                job=job.name,
                after_seconds=round(elapsed, 6),
            )
        job.set_outcome(self.resolve_outcome(job, timed_out))
        self.stats.record_outcome(job.error_code)
        self.handled += 1

        if job.error_code == SUCCESS_CODE:
            log_with_fields(
                self.logger,
                logging.INFO,
                "job_completed",
                worker=self.name,
                job=job.name,
                seconds=round(elapsed, 6),
            )
        else:
            log_with_fields(
                self.logger,
                logging.INFO,
                "job_failed",
                worker=self.name,
                job=job.name,
                error_code=job.error_code,
            )
        return job.error_code

    def execute(self, job: WorkItem) -> tuple[float, bool]:
        """Advance ``job`` slice by slice; return ``(elapsed, timed_out)``.

        Only a load at or above the timeout can abort; the ceiling is checked
        before completion, so a load equal to the timeout still aborts.
        """
        timeout = self.execution.timeout_seconds
        slice_seconds = self.execution.slice_seconds
        can_time_out = job.load >= timeout
        elapsed = 0.0
        while True:
            if can_time_out and elapsed >= timeout - EPSILON:
                return elapsed, True
            remaining = job.load - elapsed
            if remaining <= EPSILON:
                return elapsed, False
            step = min(slice_seconds, remaining)
            self.clock.sleep(step)
            elapsed += step

    def resolve_outcome(self, job: WorkItem, timed_out: bool) -> int:
        code = self.execution.timeout_code if timed_out else SUCCESS_CODE
        distribution = self.distribution
        if distribution is None or not distribution.enabled:
            return code

        policy = self.history.policy
        if policy is ErrorPolicy.REFINE:
            if timed_out:
                sampled = distribution.sample_error_code()
                if sampled != SUCCESS_CODE:
                    code = sampled
        elif policy is ErrorPolicy.OVERRIDE:
            if self.rng.random() < self.history.override_rate:
                code = distribution.sample_error_code()
        elif timed_out:
            log_with_fields(
                self.logger,
                logging.INFO,
                "historical_sample",
                worker=self.name,
                job=job.name,
                sampled_code=distribution.sample_error_code(),
            )
        return code
