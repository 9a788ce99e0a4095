from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

LOGGER_NAME = "jobsim"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            payload.update(extra_fields)
        return json.dumps(payload, sort_keys=True)


class FieldsFormatter(logging.Formatter):
    """Plain stream format with the structured fields appended as key=value."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict) and extra_fields:
            rendered = " ".join(f"{key}={value}" for key, value in extra_fields.items())
            line = f"{line} {rendered}"
        return line


def setup_logger(log_path: Path | None = None, *, mute: bool = False) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    # Muting drops progress and per-job lines; dataset warnings and errors still surface.
    logger.setLevel(logging.WARNING if mute else logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    if log_path is not None:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(JsonFormatter())
        logger.addHandler(file_handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(FieldsFormatter("%(asctime)s %(levelname)s [%(threadName)s] %(message)s"))
    logger.addHandler(stream_handler)
    return logger


def log_with_fields(logger: logging.Logger, level: int, message: str, **fields: object) -> None:
    logger.log(level, message, extra={"extra_fields": fields})
