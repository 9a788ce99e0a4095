from __future__ import annotations

from datetime import UTC, datetime
import re

ERROR_CODE_REGEX = re.compile(r"^[+-]?\d+$")


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def job_name(index: int) -> str:
    return f"job{index}"


def worker_name(index: int) -> str:
    return f"worker{index}"


def parse_error_code(raw: object) -> int:
    """Decode a dataset error code such as ``"-1"`` into an int.

    Raises ValueError for anything that is not an integer literal; bools are
    rejected even though they are ints in Python.
    """
    if isinstance(raw, bool):
        raise ValueError(f"not an error code: {raw!r}")
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    if not ERROR_CODE_REGEX.match(text):
        raise ValueError(f"not an error code: {raw!r}")
    return int(text)
