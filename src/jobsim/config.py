from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .models import TIMEOUT_CODE, ErrorPolicy

DEFAULT_WORKERS = 20
CLOCK_KINDS = {"virtual", "wall"}


class ConfigError(ValueError):
    pass


@dataclass(slots=True)
class PoolConfig:
    workers: int = DEFAULT_WORKERS


@dataclass(slots=True)
class DispatchConfig:
    min_load: float = 1.0
    max_load: float = 15.0
    seed: int | None = None


@dataclass(slots=True)
class ExecutionConfig:
    slice_seconds: float = 0.1
    timeout_seconds: float = 10.0
    timeout_code: int = TIMEOUT_CODE
    clock: str = "virtual"
    time_scale: float = 1.0


@dataclass(slots=True)
class HistoryConfig:
    policy: ErrorPolicy = ErrorPolicy.REFINE
    override_rate: float = 0.0
    seed: int | None = None


@dataclass(slots=True)
class LoggingConfig:
    log: Path | None = None
    mute: bool = False


@dataclass(slots=True)
class RunConfig:
    input_path: Path | None = None
    queue: str | None = None
    num_jobs: int = 0


@dataclass(slots=True)
class AppConfig:
    run: RunConfig = field(default_factory=RunConfig)
    pool: PoolConfig = field(default_factory=PoolConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _section(raw: dict, key: str) -> dict:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"`{key}` must be a mapping")
    return value


def _number(mapping: dict, key: str, section: str, default: Any, kind: type) -> Any:
    value = mapping.get(key, default)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigError(f"`{section}.{key}` must be a number")
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"`{section}.{key}` must be a number") from exc


def _policy(value: object) -> ErrorPolicy:
    try:
        return ErrorPolicy(str(value).lower())
    except ValueError as exc:
        choices = ", ".join(policy.value for policy in ErrorPolicy)
        raise ConfigError(f"`history.policy` must be one of: {choices}") from exc


def load_config(path: str | Path | None = None) -> AppConfig:
    if path is None:
        config = AppConfig()
        validate_config(config)
        return config

    config_path = Path(path).expanduser().resolve()
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except OSError as exc:
        raise ConfigError(f"cannot read config {config_path}: {exc}") from exc
    except (UnicodeDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"invalid YAML in config {config_path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")

    pool_raw = _section(raw, "pool")
    dispatch_raw = _section(raw, "dispatch")
    execution_raw = _section(raw, "execution")
    history_raw = _section(raw, "history")
    logging_raw = _section(raw, "logging")

    log_path: Path | None = None
    if logging_raw.get("log"):
        log_path = Path(str(logging_raw["log"])).expanduser()
        if not log_path.is_absolute():
            log_path = config_path.parent / log_path

    config = AppConfig(
        pool=PoolConfig(workers=_number(pool_raw, "workers", "pool", DEFAULT_WORKERS, int)),
        dispatch=DispatchConfig(
            min_load=_number(dispatch_raw, "min_load", "dispatch", 1.0, float),
            max_load=_number(dispatch_raw, "max_load", "dispatch", 15.0, float),
            seed=_number(dispatch_raw, "seed", "dispatch", None, int),
        ),
        execution=ExecutionConfig(
            slice_seconds=_number(execution_raw, "slice_seconds", "execution", 0.1, float),
            timeout_seconds=_number(execution_raw, "timeout_seconds", "execution", 10.0, float),
            timeout_code=_number(execution_raw, "timeout_code", "execution", TIMEOUT_CODE, int),
            clock=str(execution_raw.get("clock", "virtual")).lower(),
            time_scale=_number(execution_raw, "time_scale", "execution", 1.0, float),
        ),
        history=HistoryConfig(
            policy=_policy(history_raw.get("policy", ErrorPolicy.REFINE.value)),
            override_rate=_number(history_raw, "override_rate", "history", 0.0, float),
            seed=_number(history_raw, "seed", "history", None, int),
        ),
        logging=LoggingConfig(log=log_path, mute=bool(logging_raw.get("mute", False))),
    )
    validate_config(config)
    return config


def apply_overrides(config: AppConfig, **overrides: Any) -> AppConfig:
    """Fold CLI values into ``config``; ``None`` leaves the file value alone."""
    targets = {
        "input_path": (config.run, "input_path"),
        "queue": (config.run, "queue"),
        "num_jobs": (config.run, "num_jobs"),
        "workers": (config.pool, "workers"),
        "seed": (config.dispatch, "seed"),
        "policy": (config.history, "policy"),
        "override_rate": (config.history, "override_rate"),
        "clock": (config.execution, "clock"),
        "time_scale": (config.execution, "time_scale"),
        "log": (config.logging, "log"),
    }
    if overrides.pop("mute", False):
        config.logging.mute = True
    for key, value in overrides.items():
        if key not in targets:
            raise ConfigError(f"Unknown override: {key}")
        if value is None:
            continue
        section, attr = targets[key]
        if key == "policy":
            value = _policy(value)
        elif key in {"input_path", "log"}:
            value = Path(value).expanduser()
        setattr(section, attr, value)
    validate_config(config)
    return config


def validate_config(config: AppConfig) -> None:
    if config.run.num_jobs < 0:
        raise ConfigError("`--n` must be >= 0")
    if config.pool.workers < 1:
        raise ConfigError("`pool.workers` must be >= 1")
    if config.dispatch.min_load <= 0:
        raise ConfigError("`dispatch.min_load` must be > 0")
    if config.dispatch.min_load >= config.dispatch.max_load:
        raise ConfigError("`dispatch.min_load` must be < `dispatch.max_load`")
    if config.execution.slice_seconds <= 0:
        raise ConfigError("`execution.slice_seconds` must be > 0")
    if config.execution.timeout_seconds <= 0:
        raise ConfigError("`execution.timeout_seconds` must be > 0")
    if config.execution.timeout_code == 0:
        raise ConfigError("`execution.timeout_code` must be nonzero")
    if config.execution.clock not in CLOCK_KINDS:
        raise ConfigError("`execution.clock` must be either `virtual` or `wall`")
    if config.execution.time_scale < 0:
        raise ConfigError("`execution.time_scale` must be >= 0")
    if not 0.0 <= config.history.override_rate <= 1.0:
        raise ConfigError("`history.override_rate` must be within [0, 1]")


def ensure_local_paths(config: AppConfig) -> None:
    if config.logging.log is not None:
        config.logging.log.parent.mkdir(parents=True, exist_ok=True)
