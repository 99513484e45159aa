"""
CONTRACT: inline
ROLE: Typed LogRecord model written to disk as one NDJSON line.

INPUTS:
  - Topic: n/a  Type: n/a
OUTPUTS:
  - LogRecord.to_line() -> one JSON object terminated by "\\n"

CONFIG KEYS:
  - n/a

FAILURE MODES:
  - non-JSON values in payloads -> encoded with str()

TESTS:
  - tests/test_records.py

CONTRACT DETAILS:
# Record contract

- Levels are ordered: debug < info < warn < error.
- kind is one of system, tool_use, llm, error and is written under "type".
- data is one of the payload variants below; unset fields are omitted.
- A record is immutable and always serializes to exactly one line.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]

    @classmethod
    def parse(cls, value: Any) -> Optional["LogLevel"]:
        if isinstance(value, LogLevel):
            return value
        name = str(value or "").strip().lower()
        if name == "warning":
            name = "warn"
        try:
            return cls(name)
        except ValueError:
            return None


_LEVEL_RANK = {LogLevel.DEBUG: 0, LogLevel.INFO: 1, LogLevel.WARN: 2, LogLevel.ERROR: 3}


def level_enabled(threshold: LogLevel, level: LogLevel) -> bool:
    return level.rank >= threshold.rank


class RecordKind(str, Enum):
    SYSTEM = "system"
    TOOL_USE = "tool_use"
    LLM = "llm"
    ERROR = "error"


def _compact(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


@dataclass(frozen=True)
class SystemPayload:
    event: str
    payload: Any = None
    model: Optional[str] = None
    cwd: Optional[str] = None
    argv: Optional[Tuple[str, ...]] = None
    python_version: Optional[str] = None
    platform: Optional[str] = None
    exit_code: Optional[int] = None
    uptime_seconds: Optional[float] = None
    new_path: Optional[str] = None
    initialized_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "event": self.event,
                "payload": self.payload,
                "model": self.model,
                "cwd": self.cwd,
                "argv": list(self.argv) if self.argv is not None else None,
                "python_version": self.python_version,
                "platform": self.platform,
                "exit_code": self.exit_code,
                "uptime_seconds": self.uptime_seconds,
                "new_path": self.new_path,
                "initialized_at": self.initialized_at,
            }
        )


@dataclass(frozen=True)
class ToolUsePayload:
    tool: str
    direction: str
    status: str
    duration_ms: Optional[float] = None
    input: Any = None
    output: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "tool": self.tool,
                "direction": self.direction,
                "status": self.status,
                "duration_ms": self.duration_ms,
                "input": self.input,
                "output": self.output,
            }
        )


@dataclass(frozen=True)
class LlmPayload:
    event_type: str
    model: Optional[str] = None
    tokens: Any = None
    latency_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "event_type": self.event_type,
                "model": self.model,
                "tokens": self.tokens,
                "latency_ms": self.latency_ms,
            }
        )


@dataclass(frozen=True)
class ErrorPayload:
    context: str
    error_name: str
    error_message: str
    error_stack: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "context": self.context,
                "error_name": self.error_name,
                "error_message": self.error_message,
                "error_stack": self.error_stack,
            }
        )


@dataclass(frozen=True)
class ExtensionPayload:
    """Ordered key/value body for payload shapes not modeled above."""

    fields: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def from_mapping(cls, values: Dict[str, Any]) -> "ExtensionPayload":
        return cls(tuple((str(k), v) for k, v in values.items()))

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in self.fields}


Payload = Union[SystemPayload, ToolUsePayload, LlmPayload, ErrorPayload, ExtensionPayload]


@dataclass(frozen=True)
class LogRecord:
    level: LogLevel
    kind: RecordKind
    data: Payload = field(default_factory=ExtensionPayload)
    timestamp: Optional[Union[str, int]] = None
    session_id: Optional[str] = None

    def with_timestamp(self, timestamp: Union[str, int]) -> "LogRecord":
        return LogRecord(
            level=self.level,
            kind=self.kind,
            data=self.data,
            timestamp=timestamp,
            session_id=self.session_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "type": self.kind.value,
        }
        if self.session_id is not None:
            out["session_id"] = self.session_id
        out["data"] = self.data.to_dict()
        return out

    def to_line(self) -> str:
        # json.dumps escapes control characters, so the line never splits.
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str) + "\n"

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "LogRecord":
        level = LogLevel.parse(values.get("level")) or LogLevel.INFO
        try:
            kind = RecordKind(values.get("type"))
        except ValueError:
            kind = RecordKind.SYSTEM
        data = values.get("data")
        return cls(
            level=level,
            kind=kind,
            data=ExtensionPayload.from_mapping(data if isinstance(data, dict) else {}),
            timestamp=values.get("timestamp"),
            session_id=values.get("session_id"),
        )
