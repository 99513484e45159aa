"""
CONTRACT: inline
ROLE: Load YAML config, apply env overrides, clamp, and expose a typed LoggerConfig.

INPUTS:
  - Topic: n/a  Type: n/a
OUTPUTS:
  - LoggerConfig (frozen, read-only for the engine)

CONFIG KEYS:
  - log_dir, filename_pattern, verbosity, excluded_events, timestamp_format
  - include_session_context, max_output_chars
  - rotation.enabled, rotation.max_size_mb, rotation.max_files, rotation.max_age_days
  - rotation.compress, rotation.compression_level, rotation.check_every_events
  - buffering.enabled, buffering.flush_interval_ms, buffering.high_watermark_bytes

PERF / TIMING:
  - load once at startup

FAILURE MODES:
  - unreadable / invalid file -> defaults -> log config_load_failed
  - out-of-range value -> clamped -> log config_adjusted
  - non-finite number (.inf / .nan) -> default -> log config_adjusted

LOG EVENTS:
  - module=core.config, event=config_load_failed, payload keys=path, error
  - module=core.config, event=config_adjusted, payload keys=changes

TESTS:
  - tests/test_config.py

CONTRACT DETAILS:
# Config contract

- Precedence: defaults < config file < environment.
- A top-level "agentlog" section is used when present, else the whole file.
- Numeric fields are clamped to positive minimums, never rejected.
- Unknown verbosity falls back to info; unknown timestamp format to iso.
"""

from __future__ import annotations

import copy
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

import yaml

from agentlog.core.clock import TIMESTAMP_FORMATS
from agentlog.contracts.records import LogLevel


DEFAULT_LOG_DIR = ".agentlog/logs"
ENV_PREFIX = "AGENTLOG_"


@dataclass(frozen=True)
class RotationPolicy:
    enabled: bool = True
    max_size_mb: float = 100.0
    max_files: int = 10
    max_age_days: float = 30.0
    compress: bool = False
    compression_level: int = 6
    check_every_events: int = 100


@dataclass(frozen=True)
class BufferingPolicy:
    enabled: bool = True
    flush_interval_ms: float = 100.0
    high_watermark_bytes: int = 16384


@dataclass(frozen=True)
class LoggerConfig:
    log_dir: str = DEFAULT_LOG_DIR
    filename_pattern: str = "agent-{YYYY-MM-DD}.ndjson"
    rotation: RotationPolicy = field(default_factory=RotationPolicy)
    verbosity: LogLevel = LogLevel.INFO
    excluded_events: FrozenSet[str] = frozenset({"token_usage", "heartbeat"})
    timestamp_format: str = "iso"
    include_session_context: bool = True
    buffering: BufferingPolicy = field(default_factory=BufferingPolicy)
    max_output_chars: int = 10000


def default_config_path(env: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if env is None else env
    explicit = env.get(ENV_PREFIX + "CONFIG")
    if explicit:
        return Path(explicit)
    config_home = env.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(config_home) / "agentlog" / "config.yaml"


def load_config(
    path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    logger: Any = None,
) -> LoggerConfig:
    """Load the config file (if any), apply env overrides and clamp."""
    env = os.environ if env is None else env
    merged = _default_config()
    config_path = Path(path) if path else default_config_path(env)
    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
            if not isinstance(data, dict):
                raise ValueError("top-level config must be a mapping")
            section = data.get("agentlog", data)
            if not isinstance(section, dict):
                raise ValueError("agentlog section must be a mapping")
            merged = _merge_dicts(merged, section)
        except Exception as exc:  # noqa: BLE001
            if logger is not None:
                logger.emit("warning", "core.config", "config_load_failed", {"path": str(config_path), "error": str(exc)})
    notes: List[str] = []
    _apply_env_overrides(merged, env, notes)
    try:
        config = build_config(merged, notes)
    except Exception as exc:  # noqa: BLE001
        if logger is not None:
            logger.emit("warning", "core.config", "config_load_failed", {"path": str(config_path), "error": str(exc)})
        return LoggerConfig()
    if notes and logger is not None:
        logger.emit("warning", "core.config", "config_adjusted", {"changes": notes})
    return config


def get_path(config: Dict[str, Any], dotted_path: str, default: Any = None) -> Any:
    """Get a nested config value by dotted path."""
    node: Any = config
    for key in dotted_path.split("."):
        if not isinstance(node, dict) or key not in node:
            return default
        node = node[key]
    return node


def _default_config() -> Dict[str, Any]:
    return {
        "log_dir": DEFAULT_LOG_DIR,
        "filename_pattern": "agent-{YYYY-MM-DD}.ndjson",
        "rotation": {
            "enabled": True,
            "max_size_mb": 100,
            "max_files": 10,
            "max_age_days": 30,
            "compress": False,
            "compression_level": 6,
            "check_every_events": 100,
        },
        "verbosity": "info",
        "excluded_events": ["token_usage", "heartbeat"],
        "timestamp_format": "iso",
        "include_session_context": True,
        "buffering": {
            "enabled": True,
            "flush_interval_ms": 100,
            "high_watermark_bytes": 16384,
        },
        "max_output_chars": 10000,
    }


def _merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge_dicts(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


_ENV_KEYS = {
    "LOG_DIR": ("log_dir", "str"),
    "FILENAME_PATTERN": ("filename_pattern", "str"),
    "VERBOSITY": ("verbosity", "str"),
    "EXCLUDED_EVENTS": ("excluded_events", "list"),
    "TIMESTAMP_FORMAT": ("timestamp_format", "str"),
    "ROTATION_ENABLED": ("rotation.enabled", "bool"),
    "ROTATION_MAX_SIZE_MB": ("rotation.max_size_mb", "float"),
    "ROTATION_MAX_FILES": ("rotation.max_files", "int"),
    "ROTATION_MAX_AGE_DAYS": ("rotation.max_age_days", "float"),
    "ROTATION_COMPRESS": ("rotation.compress", "bool"),
    "BUFFERING_ENABLED": ("buffering.enabled", "bool"),
    "BUFFERING_FLUSH_INTERVAL_MS": ("buffering.flush_interval_ms", "float"),
}


def _apply_env_overrides(config: Dict[str, Any], env: Mapping[str, str], notes: List[str]) -> None:
    for suffix, (dotted, kind) in _ENV_KEYS.items():
        raw = env.get(ENV_PREFIX + suffix)
        if raw is None or raw == "":
            continue
        try:
            if kind == "bool":
                value: Any = _parse_bool(raw)
            elif kind == "int":
                value = int(raw)
            elif kind == "float":
                value = float(raw)
            elif kind == "list":
                value = [item.strip() for item in raw.split(",") if item.strip()]
            else:
                value = raw
        except ValueError:
            notes.append(f"{ENV_PREFIX}{suffix}={raw!r} ignored (not a {kind})")
            continue
        _set_path(config, dotted, value)


def _set_path(config: Dict[str, Any], dotted_path: str, value: Any) -> None:
    keys = dotted_path.split(".")
    node = config
    for key in keys[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    node[keys[-1]] = value


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _number(config: Dict[str, Any], dotted: str, default: float, minimum: float, notes: List[str]) -> float:
    raw = get_path(config, dotted, default)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        value = math.nan
    if not math.isfinite(value):
        notes.append(f"{dotted}={raw!r} is not a finite number; using {default}")
        value = float(default)
    if value < minimum:
        notes.append(f"{dotted}={value:g} clamped to {minimum:g}")
        value = float(minimum)
    return value


def build_config(raw: Dict[str, Any], notes: Optional[List[str]] = None) -> LoggerConfig:
    """Validate a merged config dict into a LoggerConfig, clamping bad values."""
    notes = notes if notes is not None else []
    defaults = LoggerConfig()

    log_dir = str(raw.get("log_dir") or "").strip()
    if not log_dir or "\x00" in log_dir:
        notes.append(f"log_dir={raw.get('log_dir')!r} invalid; using {DEFAULT_LOG_DIR}")
        log_dir = DEFAULT_LOG_DIR

    pattern = str(raw.get("filename_pattern") or "").strip()
    if not pattern or "/" in pattern or "\\" in pattern:
        notes.append(f"filename_pattern={raw.get('filename_pattern')!r} invalid; using default")
        pattern = defaults.filename_pattern

    verbosity = LogLevel.parse(raw.get("verbosity"))
    if verbosity is None:
        notes.append(f"verbosity={raw.get('verbosity')!r} unknown; using info")
        verbosity = LogLevel.INFO

    ts_format = str(raw.get("timestamp_format") or "").strip().lower()
    if ts_format not in TIMESTAMP_FORMATS:
        notes.append(f"timestamp_format={raw.get('timestamp_format')!r} unknown; using iso")
        ts_format = "iso"

    excluded = raw.get("excluded_events") or []
    if isinstance(excluded, str):
        excluded = [excluded]
    if not isinstance(excluded, (list, tuple, set, frozenset)):
        notes.append("excluded_events must be a list; ignoring")
        excluded = []

    level = int(_number(raw, "rotation.compression_level", 6, 1, notes))
    if level > 9:
        notes.append(f"rotation.compression_level={level} clamped to 9")
        level = 9

    rotation = RotationPolicy(
        enabled=_parse_bool(get_path(raw, "rotation.enabled", True)),
        max_size_mb=_number(raw, "rotation.max_size_mb", 100, 1, notes),
        max_files=int(_number(raw, "rotation.max_files", 10, 1, notes)),
        max_age_days=_number(raw, "rotation.max_age_days", 30, 1, notes),
        compress=_parse_bool(get_path(raw, "rotation.compress", False)),
        compression_level=level,
        check_every_events=int(_number(raw, "rotation.check_every_events", 100, 1, notes)),
    )
    buffering = BufferingPolicy(
        enabled=_parse_bool(get_path(raw, "buffering.enabled", True)),
        flush_interval_ms=_number(raw, "buffering.flush_interval_ms", 100, 10, notes),
        high_watermark_bytes=int(_number(raw, "buffering.high_watermark_bytes", 16384, 1024, notes)),
    )
    return LoggerConfig(
        log_dir=log_dir,
        filename_pattern=pattern,
        rotation=rotation,
        verbosity=verbosity,
        excluded_events=frozenset(str(item) for item in excluded),
        timestamp_format=ts_format,
        include_session_context=_parse_bool(raw.get("include_session_context", True)),
        buffering=buffering,
        max_output_chars=int(_number(raw, "max_output_chars", 10000, 100, notes)),
    )


def validate_config(raw: Dict[str, Any]) -> List[str]:
    """Return the adjustments build_config would make to the merged config."""
    notes: List[str] = []
    build_config(_merge_dicts(_default_config(), raw), notes)
    return notes
