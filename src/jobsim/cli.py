from __future__ import annotations

import argparse
import logging
import random
import sys

from .app_logging import log_with_fields, setup_logger
from .config import CLOCK_KINDS, AppConfig, ConfigError, apply_overrides, ensure_local_paths, load_config
from .history import DataFormatError, ErrorDistribution, load_error_table
from .models import ErrorPolicy
from .runner import DispatchError, Runner, render_summary


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jobsim",
        description="Simulate a fixed worker pool with job timeouts and historical error rates",
    )
    parser.add_argument("--input", required=True, help="Path to the historical error dataset (JSON or YAML)")
    parser.add_argument("--queue", required=True, help="Site/queue name to select from the dataset")
    parser.add_argument("--n", required=True, type=int, help="Number of jobs to generate")
    parser.add_argument("--mute", action="store_true", help="Suppress progress logging")
    parser.add_argument("--config", help="Optional jobsim YAML config")
    parser.add_argument("--workers", type=int, help="Number of workers in the pool")
    parser.add_argument("--seed", type=int, help="Seed for job load generation")
    parser.add_argument(
        "--policy",
        choices=[policy.value for policy in ErrorPolicy],
        help="How historical error codes feed into job outcomes",
    )
    parser.add_argument("--override-rate", type=float, help="Override probability for the `override` policy")
    parser.add_argument("--clock", choices=sorted(CLOCK_KINDS), help="Virtual (instant) or wall-clock time")
    parser.add_argument("--time-scale", type=float, help="Wall seconds per simulated second")
    parser.add_argument("--log-file", help="Also write JSON log lines to this file")
    return parser


def resolve_config(args: argparse.Namespace) -> AppConfig:
    config = load_config(args.config)
    return apply_overrides(
        config,
        input_path=args.input,
        queue=args.queue,
        num_jobs=args.n,
        workers=args.workers,
        seed=args.seed,
        policy=args.policy,
        override_rate=args.override_rate,
        clock=args.clock,
        time_scale=args.time_scale,
        log=args.log_file,
        mute=args.mute,
    )


def cmd_run(config: AppConfig) -> int:
    print(f"Input File: {config.run.input_path}")
    print(f"Number of jobs: {config.run.num_jobs}")
    print(f"Queue Name: {config.run.queue}")

    try:
        table = load_error_table(config.run.input_path)
    except DataFormatError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    ensure_local_paths(config)
    logger = setup_logger(config.logging.log, mute=config.logging.mute)
    distribution = ErrorDistribution.for_queue(
        table,
        str(config.run.queue),
        rng=random.Random(config.history.seed),
        logger=logger,
    )
    log_with_fields(
        logger,
        logging.INFO,
        "history_loaded",
        queue=config.run.queue,
        enabled=distribution.enabled,
        total_weight=distribution.total_weight,
        probabilities=distribution.probabilities(),
        policy=config.history.policy.value,
    )

    runner = Runner(config, logger, distribution=distribution)
    try:
        summary = runner.run()
    except DispatchError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print()
    print(render_summary(summary))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = resolve_config(args)
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    return cmd_run(config)


if __name__ == "__main__":
    raise SystemExit(main())
