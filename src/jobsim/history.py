from __future__ import annotations

import json
import logging
import random
import threading
from pathlib import Path

import yaml

from .app_logging import log_with_fields
from .utils import parse_error_code

ErrorFrequencyTable = dict[str, dict[int, int]]

YAML_SUFFIXES = {".yaml", ".yml"}


class DataFormatError(ValueError):
    pass


class DistributionDisabledError(RuntimeError):
    pass


def _decode(path: Path) -> object:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise DataFormatError(f"Could not open {path}: file not found") from exc
    except OSError as exc:
        raise DataFormatError(f"Could not open {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise DataFormatError(f"Could not read {path}: not valid UTF-8 ({exc.reason})") from exc

    try:
        if path.suffix.lower() in YAML_SUFFIXES:
            return yaml.safe_load(text)
        return json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise DataFormatError(f"Failed to parse {path}: {exc}") from exc


def parse_error_table(raw: object, source: str = "<data>") -> ErrorFrequencyTable:
    if not isinstance(raw, dict):
        raise DataFormatError(f"{source}: root must map site names to error-code counts")

    table: ErrorFrequencyTable = {}
    for site, codes in raw.items():
        if not isinstance(codes, dict):
            raise DataFormatError(f"{source}: entry for site {site!r} must be a mapping")
        counts: dict[int, int] = {}
        for raw_code, raw_count in codes.items():
            try:
                code = parse_error_code(raw_code)
            except ValueError as exc:
                raise DataFormatError(f"{source}: site {site!r}: {exc}") from exc
            if isinstance(raw_count, bool) or not isinstance(raw_count, int):
                raise DataFormatError(
                    f"{source}: site {site!r} code {raw_code!r}: count must be an integer, got {raw_count!r}"
                )
            if raw_count < 0:
                raise DataFormatError(f"{source}: site {site!r} code {raw_code!r}: count must be >= 0")
            counts[code] = counts.get(code, 0) + raw_count
        table[str(site)] = counts
    return table


def load_error_table(path: str | Path) -> ErrorFrequencyTable:
    """Read the historical dataset ``{site: {code: count}}`` from JSON or YAML."""
    data_path = Path(path).expanduser()
    return parse_error_table(_decode(data_path), source=str(data_path))


class ErrorDistribution:
    def __init__(
        self,
        queue: str,
        weights: dict[int, int],
        rng: random.Random | None = None,
    ) -> None:
        self.queue = queue
        self._codes = [code for code, count in sorted(weights.items()) if count > 0]
        self._weights = [weights[code] for code in self._codes]
        self._rng = rng or random.Random()
        self._lock = threading.Lock()

    @classmethod
    def disabled(cls, queue: str = "") -> ErrorDistribution:
        return cls(queue, {})

    @classmethod
    def for_queue(
        cls,
        table: ErrorFrequencyTable,
        queue: str,
        *,
        rng: random.Random | None = None,
        logger: logging.Logger | None = None,
    ) -> ErrorDistribution:
        weights = table.get(queue)
        if weights is None:
            if logger is not None:
                log_with_fields(
                    logger,
                    logging.WARNING,
                    "queue_not_found",
                    queue=queue,
                    known_queues=sorted(table),
                )
            return cls(queue, {}, rng)
        distribution = cls(queue, weights, rng)
        if logger is not None and not distribution.enabled:
            log_with_fields(logger, logging.WARNING, "queue_without_history", queue=queue)
        return distribution

    @property
    def enabled(self) -> bool:
        return self.total_weight > 0

    @property
    def total_weight(self) -> int:
        return sum(self._weights)

    def probabilities(self) -> dict[int, float]:
        total = self.total_weight
        if total <= 0:
            return {}
        return {code: weight / total for code, weight in zip(self._codes, self._weights)}

    def sample_error_code(self) -> int:
        if not self.enabled:
            raise DistributionDisabledError(f"no historical errors recorded for queue {self.queue!r}")
        with self._lock:
            return self._rng.choices(self._codes, weights=self._weights, k=1)[0]
