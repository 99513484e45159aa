"""
CONTRACT: inline
ROLE: Turn typed host events into LogRecords, or drop them.

INPUTS:
  - ToolCall, HostEvent, LlmEvent, ErrorEvent, SessionStart, SessionEnd, ClientInit
OUTPUTS:
  - LogRecord | None

CONFIG KEYS:
  - verbosity: minimum level
  - excluded_events: logical event names to drop
  - timestamp_format: iso | epoch | local
  - include_session_context: attach session_id
  - max_output_chars: truncation threshold for tool output

PERF / TIMING:
  - pure functions; noise names are rejected before any payload walk

FAILURE MODES:
  - missing / None fields -> treated as absent

TESTS:
  - tests/test_serializers.py

CONTRACT DETAILS:
# Gates, in order

1. Verbosity: level below config.verbosity -> dropped.
2. Exclusion: logical name in config.excluded_events -> dropped.
   Errors and session lifecycle records skip this gate.
3. Host events only: NOISE_EVENTS -> dropped, then redaction, then
   empty payload -> dropped.

# Tool calls

- before: status pending, input = sanitized args, level info.
- after: status error|success from result.error, output = truncated
  sanitized result, duration_ms, level error|info.
"""

from __future__ import annotations

import os
import platform
import sys
import time
from dataclasses import replace
from typing import Optional

from agentlog.contracts.events import (
    ClientContext,
    ClientInit,
    ErrorEvent,
    HostEvent,
    InputEvent,
    LlmEvent,
    SessionEnd,
    SessionStart,
    ToolCall,
)
from agentlog.contracts.records import (
    ErrorPayload,
    LlmPayload,
    LogLevel,
    LogRecord,
    Payload,
    RecordKind,
    SystemPayload,
    ToolUsePayload,
    level_enabled,
)
from agentlog.core.clock import iso_utc, render_timestamp
from agentlog.core.config import LoggerConfig
from agentlog.serialize.redaction import is_empty_payload, sanitize, truncate_output


# High-frequency host chatter that never carries signal.
NOISE_EVENTS = frozenset(
    {
        "heartbeat",
        "ping",
        "pong",
        "keepalive",
        "tick",
        "idle",
        "mouse_move",
        "mousemove",
        "pointer_move",
        "pointermove",
        "cursor_move",
        "hover",
        "focus",
        "blur",
        "focus_change",
        "keypress",
        "keydown",
        "keyup",
        "key_press",
        "scroll",
        "resize",
        "viewport_change",
        "viewport_resize",
        "selection_change",
    }
)

_PROCESS_START = time.monotonic()


def _record(
    config: LoggerConfig,
    level: LogLevel,
    kind: RecordKind,
    data: Payload,
    session_id: Optional[str],
) -> LogRecord:
    return LogRecord(
        level=level,
        kind=kind,
        data=data,
        timestamp=render_timestamp(config.timestamp_format),
        session_id=session_id if config.include_session_context else None,
    )


def _excluded(config: LoggerConfig, *names: Optional[str]) -> bool:
    return any(name is not None and name in config.excluded_events for name in names)


def serialize_tool_event(event: ToolCall, direction: str, config: LoggerConfig) -> Optional[LogRecord]:
    after = direction == "after"
    level = LogLevel.ERROR if after and event.failed else LogLevel.INFO
    if not level_enabled(config.verbosity, level):
        return None
    if _excluded(config, "tool_use", event.tool):
        return None

    if after:
        data = ToolUsePayload(
            tool=str(event.tool),
            direction="after",
            status="error" if event.failed else "success",
            duration_ms=event.duration_ms,
            output=truncate_output(sanitize(event.result), config.max_output_chars),
        )
    else:
        data = ToolUsePayload(
            tool=str(event.tool),
            direction="before",
            status="pending",
            input=sanitize(event.args),
        )
    return _record(config, level, RecordKind.TOOL_USE, data, event.session_id)


def serialize_system_event(event: HostEvent, config: LoggerConfig) -> Optional[LogRecord]:
    if not level_enabled(config.verbosity, LogLevel.DEBUG):
        return None
    if _excluded(config, event.event_type):
        return None
    if event.event_type in NOISE_EVENTS:
        return None
    payload = sanitize(event.payload)
    if is_empty_payload(payload):
        return None
    data = SystemPayload(event=str(event.event_type), payload=payload)
    return _record(config, LogLevel.DEBUG, RecordKind.SYSTEM, data, event.session_id)


def serialize_llm_event(event: LlmEvent, config: LoggerConfig) -> Optional[LogRecord]:
    if not level_enabled(config.verbosity, LogLevel.INFO):
        return None
    if _excluded(config, "llm", "completion", event.event_type):
        return None
    data = LlmPayload(
        event_type=str(event.event_type),
        model=event.model,
        tokens=sanitize(event.tokens),
        latency_ms=event.latency_ms,
    )
    return _record(config, LogLevel.INFO, RecordKind.LLM, data, event.session_id)


def serialize_error(event: ErrorEvent, config: LoggerConfig) -> Optional[LogRecord]:
    if not level_enabled(config.verbosity, LogLevel.ERROR):
        return None
    data = ErrorPayload(
        context=str(event.context),
        error_name=str(event.error_name),
        error_message=str(event.error_message),
        error_stack=event.error_stack,
    )
    return _record(config, LogLevel.ERROR, RecordKind.ERROR, data, event.session_id)


def serialize_session_start(context: ClientContext, config: LoggerConfig) -> Optional[LogRecord]:
    if not level_enabled(config.verbosity, LogLevel.INFO):
        return None
    data = SystemPayload(
        event="session_start",
        model=context.model_name,
        cwd=context.cwd or os.getcwd(),
        argv=tuple(str(arg) for arg in sys.argv),
        python_version=platform.python_version(),
        platform=sys.platform,
    )
    return _record(config, LogLevel.INFO, RecordKind.SYSTEM, data, context.session_id)


def serialize_session_end(
    context: ClientContext,
    config: LoggerConfig,
    exit_code: Optional[int] = None,
) -> Optional[LogRecord]:
    if not level_enabled(config.verbosity, LogLevel.INFO):
        return None
    data = SystemPayload(
        event="session_end",
        exit_code=exit_code,
        uptime_seconds=round(time.monotonic() - _PROCESS_START, 3),
    )
    return _record(config, LogLevel.INFO, RecordKind.SYSTEM, data, context.session_id)


def serialize_client_init(context: ClientContext, config: LoggerConfig) -> Optional[LogRecord]:
    if not level_enabled(config.verbosity, LogLevel.INFO):
        return None
    data = SystemPayload(event="client_initialized", model=context.model_name, initialized_at=iso_utc())
    return _record(config, LogLevel.INFO, RecordKind.SYSTEM, data, context.session_id)


def serialize(
    event: InputEvent,
    config: LoggerConfig,
    direction: Optional[str] = None,
    session_id: Optional[str] = None,
) -> Optional[LogRecord]:
    """Dispatch a typed input event to its serializer.

    session_id is used when the event does not carry one itself.
    """
    if isinstance(event, (ToolCall, HostEvent, LlmEvent, ErrorEvent)):
        if session_id is not None and event.session_id is None:
            event = replace(event, session_id=session_id)
    if isinstance(event, ToolCall):
        return serialize_tool_event(event, direction or "before", config)
    if isinstance(event, HostEvent):
        return serialize_system_event(event, config)
    if isinstance(event, LlmEvent):
        return serialize_llm_event(event, config)
    if isinstance(event, ErrorEvent):
        return serialize_error(event, config)
    if isinstance(event, SessionStart):
        return serialize_session_start(event.context, config)
    if isinstance(event, SessionEnd):
        return serialize_session_end(event.context, config, event.exit_code)
    if isinstance(event, ClientInit):
        return serialize_client_init(event.context, config)
    return None
