from __future__ import annotations

import logging
import random
from collections.abc import Iterable, Iterator, Sequence

from .app_logging import log_with_fields
from .channel import WorkerQueue
from .config import DispatchConfig
from .models import Terminate, WorkItem
from .utils import job_name


class Dispatcher:
    """Generates the job stream and deals it round-robin across worker queues."""

    def __init__(
        self,
        queues: Sequence[WorkerQueue],
        num_jobs: int,
        logger: logging.Logger,
        *,
        config: DispatchConfig | None = None,
        loads: Iterable[float] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        if not queues:
            raise ValueError("Dispatcher needs at least one worker queue")
        if num_jobs < 0:
            raise ValueError("num_jobs must be >= 0")
        self.queues = list(queues)
        self.num_jobs = num_jobs
        self.logger = logger
        self.config = config or DispatchConfig()
        self.rng = rng or random.Random(self.config.seed)
        self._loads = iter(loads) if loads is not None else None

    def next_load(self) -> float:
        if self._loads is not None:
            try:
                load = float(next(self._loads))
            except StopIteration as exc:
                raise ValueError("load source exhausted before all jobs were generated") from exc
            if load <= 0:
                raise ValueError(f"job load must be positive, got {load}")
            return load
        span = self.config.max_load - self.config.min_load
        return self.config.min_load + self.rng.random() * span

    def generate(self) -> Iterator[WorkItem]:
        for index in range(self.num_jobs):
            yield WorkItem(name=job_name(index), load=self.next_load())

    def queue_for(self, index: int) -> WorkerQueue:
        return self.queues[index % len(self.queues)]

    def run(self) -> None:
        log_with_fields(
            self.logger,
            logging.INFO,
            "master_started",
            jobs=self.num_jobs,
            workers=len(self.queues),
        )
        for index, job in enumerate(self.generate()):
            target = self.queue_for(index)
            name, load = job.name, job.load
            target.put(job)
            log_with_fields(
                self.logger,
                logging.INFO,
                "job_sent",
                job=name,
                load=round(load, 6),
                worker=target.name,
            )

        for target in self.queues:
            target.put(Terminate())
            log_with_fields(self.logger, logging.INFO, "termination_sent", worker=target.name)
