"""
CONTRACT: inline
ROLE: Typed host input events consumed by the serializer.

INPUTS:
  - Host hook arguments (mappings, objects, exceptions)
OUTPUTS:
  - ToolCall, HostEvent, LlmEvent, ErrorEvent, SessionStart, SessionEnd, ClientInit

FAILURE MODES:
  - missing / None fields -> treated as absent, never raised

TESTS:
  - tests/test_serializers.py, tests/test_hooks.py
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union


def _lookup(source: Any, *path: str) -> Any:
    node = source
    for key in path:
        if node is None:
            return None
        if isinstance(node, dict):
            node = node.get(key)
        else:
            node = getattr(node, key, None)
    return node


@dataclass(frozen=True)
class ClientContext:
    """Passively supplied host context (session id, model name, working directory)."""

    session_id: Optional[str] = None
    model_name: Optional[str] = None
    cwd: Optional[str] = None

    @classmethod
    def from_host(cls, client: Any) -> "ClientContext":
        if isinstance(client, ClientContext):
            return client
        session_id = _lookup(client, "session", "id")
        if session_id is None:
            session_id = _lookup(client, "session_id")
        model_name = _lookup(client, "model", "name")
        if model_name is None:
            model_name = _lookup(client, "model_name")
        cwd = _lookup(client, "cwd")
        return cls(
            session_id=str(session_id) if session_id is not None else None,
            model_name=str(model_name) if model_name is not None else None,
            cwd=str(cwd) if cwd is not None else None,
        )


@dataclass(frozen=True)
class ToolCall:
    tool: str
    args: Any = None
    session_id: Optional[str] = None
    duration_ms: Optional[float] = None
    result: Any = None

    @property
    def failed(self) -> bool:
        return bool(_lookup(self.result, "error"))


@dataclass(frozen=True)
class HostEvent:
    event_type: str
    payload: Any = None
    session_id: Optional[str] = None


@dataclass(frozen=True)
class LlmEvent:
    event_type: str
    model: Optional[str] = None
    tokens: Any = None
    latency_ms: Optional[float] = None
    session_id: Optional[str] = None

    @classmethod
    def from_host(cls, event: Any, session_id: Optional[str] = None) -> "LlmEvent":
        if isinstance(event, LlmEvent):
            return event
        latency = _lookup(event, "latency")
        if latency is None:
            latency = _lookup(event, "latency_ms")
        return cls(
            event_type=str(_lookup(event, "type") or "completion"),
            model=_lookup(event, "model"),
            tokens=_lookup(event, "tokens"),
            latency_ms=latency,
            session_id=session_id,
        )


@dataclass(frozen=True)
class ErrorEvent:
    context: str
    error_name: str
    error_message: str
    error_stack: Optional[str] = None
    session_id: Optional[str] = None

    @classmethod
    def from_exception(
        cls,
        error: Union[BaseException, Dict[str, Any], str, None],
        context: str,
        session_id: Optional[str] = None,
    ) -> "ErrorEvent":
        if isinstance(error, BaseException):
            stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
            return cls(context, type(error).__name__, str(error), stack or None, session_id)
        if isinstance(error, dict):
            return cls(
                context,
                str(error.get("name") or "Error"),
                str(error.get("message") or ""),
                error.get("stack"),
                session_id,
            )
        return cls(context, "Error", str(error or ""), None, session_id)


@dataclass(frozen=True)
class SessionStart:
    context: ClientContext


@dataclass(frozen=True)
class SessionEnd:
    context: ClientContext
    exit_code: Optional[int] = None


@dataclass(frozen=True)
class ClientInit:
    context: ClientContext


InputEvent = Union[ToolCall, HostEvent, LlmEvent, ErrorEvent, SessionStart, SessionEnd, ClientInit]
