from __future__ import annotations

import logging
import random
import unittest

from jobsim.clock import VirtualClock
from jobsim.config import AppConfig, DispatchConfig, PoolConfig, RunConfig
from jobsim.history import ErrorDistribution
from jobsim.models import RunStats, RunSummary
from jobsim.runner import DispatchError, Runner, render_summary


def quiet_logger() -> logging.Logger:
    logger = logging.getLogger("test_jobsim.runner")
    logger.handlers.clear()
    logger.addHandler(logging.NullHandler())
    logger.propagate = False
    return logger


def received_by_worker(records: list[logging.LogRecord]) -> dict[str, list[str]]:
    received: dict[str, list[str]] = {}
    for record in records:
        if record.getMessage() == "job_received":
            fields = record.extra_fields
            received.setdefault(fields["worker"], []).append(fields["job"])
    return received


def make_config(workers: int, jobs: int, seed: int | None = None) -> AppConfig:
    return AppConfig(
        run=RunConfig(num_jobs=jobs, queue="siteA"),
        pool=PoolConfig(workers=workers),
        dispatch=DispatchConfig(seed=seed),
    )


class RunnerTest(unittest.TestCase):
    def test_two_worker_scenario(self) -> None:
        clock = VirtualClock()
        runner = Runner(make_config(2, 4), quiet_logger(), clock=clock, loads=[2.0, 11.0, 3.0, 9.5])
        with self.assertLogs(runner.logger, level="INFO") as captured:
            summary = runner.run()

        self.assertEqual(summary.total_jobs, 4)
        self.assertEqual(summary.total_success, 3)
        self.assertEqual(summary.failures, {-1: 1})
        received = received_by_worker(captured.records)
        self.assertEqual(received["worker0"], ["job0", "job2"])
        self.assertEqual(received["worker1"], ["job1", "job3"])
        finished = [r.extra_fields for r in captured.records if r.getMessage() == "run_finished"]
        self.assertEqual(finished[0]["started_at"], summary.started_at)
        self.assertEqual(finished[0]["failed"], 1)
        # worker1 spends 10.0 on the aborted job and 9.5 on the next one
        self.assertAlmostEqual(summary.simulated_seconds, 19.5, places=6)

    def test_every_job_yields_one_outcome(self) -> None:
        summary = Runner(make_config(4, 60, seed=21), quiet_logger()).run()
        self.assertEqual(summary.stats.total_recorded, 60)
        self.assertEqual(summary.total_success + sum(summary.failures.values()), 60)
        self.assertTrue(set(summary.failures) <= {-1})

    def test_round_robin_assignment(self) -> None:
        runner = Runner(make_config(3, 10, seed=2), quiet_logger())
        with self.assertLogs(runner.logger, level="INFO") as captured:
            runner.run()
        received = received_by_worker(captured.records)
        for index, worker in enumerate(runner.workers):
            self.assertEqual(received[worker.name], [f"job{i}" for i in range(10) if i % 3 == index])
            self.assertEqual(worker.handled, len(received[worker.name]))

    def test_zero_jobs_terminates_all_workers(self) -> None:
        runner = Runner(make_config(5, 0), quiet_logger())
        summary = runner.run()
        self.assertTrue(all(worker.terminated for worker in runner.workers))
        self.assertEqual(summary.total_success, 0)
        self.assertEqual(summary.failures, {})

    def test_refined_failures_come_from_history(self) -> None:
        distribution = ErrorDistribution("siteA", {-1: 9, -2: 1}, random.Random(8))
        runner = Runner(
            make_config(2, 6),
            quiet_logger(),
            distribution=distribution,
            loads=[12.0, 12.0, 2.0, 12.0, 12.0, 5.0],
        )
        summary = runner.run()
        self.assertEqual(summary.total_success, 2)
        self.assertEqual(sum(summary.failures.values()), 4)
        self.assertTrue(set(summary.failures) <= {-1, -2})

    def test_dispatch_failure_stops_workers(self) -> None:
        runner = Runner(make_config(2, 3), quiet_logger(), loads=[2.0])
        with self.assertRaises(DispatchError):
            runner.run()
        self.assertTrue(all(worker.terminated for worker in runner.workers))
        self.assertEqual([worker.handled for worker in runner.workers], [1, 0])


class RenderSummaryTest(unittest.TestCase):
    def test_with_failures(self) -> None:
        summary = RunSummary(
            total_jobs=4,
            stats=RunStats(total_success=3, failures={-1: 1}),
            simulated_seconds=19.5,
            started_at="2026-01-01T00:00:00+00:00",
        )
        text = render_summary(summary)
        self.assertIn("Total jobs: 4", text)
        self.assertIn("Successful jobs: 3", text)
        self.assertIn("Failed jobs: 1", text)
        self.assertIn("  Error code -1: 1", text)

    def test_without_failures(self) -> None:
        summary = RunSummary(
            total_jobs=2,
            stats=RunStats(total_success=2, failures={}),
            simulated_seconds=4.0,
            started_at="2026-01-01T00:00:00+00:00",
        )
        self.assertNotIn("Failure details", render_summary(summary))


if __name__ == "__main__":
    unittest.main()
