from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

SUCCESS_CODE = 0
TIMEOUT_CODE = -1
TERMINATE_NAME = "exit"


class ErrorPolicy(str, Enum):
    REFINE = "refine"
    OVERRIDE = "override"
    INFORMATIONAL = "informational"


@dataclass(slots=True)
class WorkItem:
    name: str
    load: float
    _error_code: int | None = field(default=None, repr=False)

    @property
    def error_code(self) -> int:
        return SUCCESS_CODE if self._error_code is None else self._error_code

    @property
    def finished(self) -> bool:
        return self._error_code is not None

    def set_outcome(self, error_code: int) -> None:
        if self._error_code is not None:
            raise RuntimeError(f"outcome of {self.name} already set to {self._error_code}")
        self._error_code = int(error_code)


@dataclass(frozen=True, slots=True)
class Terminate:
    name: str = TERMINATE_NAME
    load: float = 0.0


Job = Union[WorkItem, Terminate]


@dataclass(slots=True)
class RunStats:
    total_success: int
    failures: dict[int, int]

    @property
    def total_failures(self) -> int:
        return sum(self.failures.values())

    @property
    def total_recorded(self) -> int:
        return self.total_success + self.total_failures


@dataclass(slots=True)
class RunSummary:
    total_jobs: int
    stats: RunStats
    simulated_seconds: float
    started_at: str

    @property
    def total_success(self) -> int:
        return self.stats.total_success

    @property
    def total_failures(self) -> int:
        return self.total_jobs - self.stats.total_success

    @property
    def failures(self) -> dict[int, int]:
        return self.stats.failures
