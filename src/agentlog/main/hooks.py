"""agentlog.main.hooks

CONTRACT: inline
ROLE: Host-facing entry points; serialize each hook call and feed the engine.

INPUTS:
  - on_event(kind, payload), on_tool_start(tool, args), on_tool_end(tool, args, duration, result)
  - on_session_start(context), on_session_end(context, exit_code)
  - on_internal_error(error, context), on_client_init(), on_llm_event(event)
  - close(), on_shutdown_signal()
OUTPUTS:
  - LogRecords into LoggingEngine.log

CONFIG KEYS:
  - rotation.check_every_events: host-event rotation cadence (RotationGate)

PERF / TIMING:
  - host events check rotation through the gate; tool completions always check

FAILURE MODES:
  - any exception inside a hook -> swallowed -> log hook_failed

LOG EVENTS:
  - module=main.hooks, event=hook_failed, payload keys=hook, error

TESTS:
  - tests/test_hooks.py
"""

from __future__ import annotations

from typing import Any, Optional

from agentlog.contracts.events import (
    ClientContext,
    ErrorEvent,
    HostEvent,
    LlmEvent,
    ToolCall,
)
from agentlog.core.config import LoggerConfig, load_config
from agentlog.core.logging import default_emitter
from agentlog.engine.logger import LoggingEngine
from agentlog.serialize.events import (
    serialize_client_init,
    serialize_error,
    serialize_llm_event,
    serialize_session_end,
    serialize_session_start,
    serialize_system_event,
    serialize_tool_event,
)
from agentlog.sink.rotator import LogRotator, RotationGate


class AgentLogger:
    """Adapter between a host's hook calls and the logging engine.

    No method raises into the host; failures go to the diagnostic channel.
    """

    def __init__(
        self,
        client: Any = None,
        config: Optional[LoggerConfig] = None,
        logger: Any = None,
        session_name: Optional[str] = None,
        install_hooks: bool = False,
        log_session_start: bool = True,
    ) -> None:
        self._logger = logger or default_emitter()
        self._config = config or load_config(logger=self._logger)
        self._context = ClientContext.from_host(client)
        self._engine = LoggingEngine(
            self._config,
            logger=self._logger,
            session_name=session_name or self._context.session_id,
            install_hooks=install_hooks,
        )
        self._rotator = LogRotator(self._engine.config, self._logger)
        self._gate = RotationGate(self._config.rotation.check_every_events)
        if log_session_start:
            self.on_session_start(self._context)

    @property
    def engine(self) -> LoggingEngine:
        return self._engine

    @property
    def rotator(self) -> LogRotator:
        return self._rotator

    @property
    def session_id(self) -> Optional[str]:
        return self._context.session_id

    def _failed(self, hook: str, exc: BaseException) -> None:
        self._logger.emit("error", "main.hooks", "hook_failed", {"hook": hook, "error": f"{type(exc).__name__}: {exc}"})

    def on_event(self, kind: str, payload: Any = None) -> None:
        try:
            record = serialize_system_event(HostEvent(str(kind), payload, self.session_id), self._config)
            if record is not None:
                self._engine.log(record)
            if self._gate.should_check():
                self._engine.rotate_if_needed(self._rotator)
        except Exception as exc:  # noqa: BLE001
            self._failed("event", exc)

    def on_tool_start(self, tool: str, args: Any = None) -> None:
        try:
            record = serialize_tool_event(ToolCall(str(tool), args, self.session_id), "before", self._config)
            if record is not None:
                self._engine.log(record)
        except Exception as exc:  # noqa: BLE001
            self._failed("tool.execute.before", exc)

    def on_tool_end(self, tool: str, args: Any = None, duration: Optional[float] = None, result: Any = None) -> None:
        try:
            call = ToolCall(str(tool), args, self.session_id, duration, result)
            record = serialize_tool_event(call, "after", self._config)
            if record is not None:
                self._engine.log(record)
            self._gate.mark_checked()
            self._engine.rotate_if_needed(self._rotator)
        except Exception as exc:  # noqa: BLE001
            self._failed("tool.execute.after", exc)

    def on_llm_event(self, event: Any) -> None:
        try:
            record = serialize_llm_event(LlmEvent.from_host(event, self.session_id), self._config)
            if record is not None:
                self._engine.log(record)
        except Exception as exc:  # noqa: BLE001
            self._failed("llm", exc)

    def on_session_start(self, context: Any = None) -> None:
        try:
            if context is not None:
                self._context = ClientContext.from_host(context)
            record = serialize_session_start(self._context, self._config)
            if record is not None:
                self._engine.log(record)
        except Exception as exc:  # noqa: BLE001
            self._failed("session.start", exc)

    def on_session_end(self, context: Any = None, exit_code: Optional[int] = None) -> None:
        try:
            ctx = ClientContext.from_host(context) if context is not None else self._context
            record = serialize_session_end(ctx, self._config, exit_code)
            if record is not None:
                self._engine.log(record)
        except Exception as exc:  # noqa: BLE001
            self._failed("session.end", exc)

    def on_client_init(self) -> None:
        try:
            record = serialize_client_init(self._context, self._config)
            if record is not None:
                self._engine.log(record)
        except Exception as exc:  # noqa: BLE001
            self._failed("client.init", exc)

    def on_internal_error(self, error: Any, context: str = "internal") -> None:
        try:
            event = ErrorEvent.from_exception(error, str(context), self.session_id)
            record = serialize_error(event, self._config)
            if record is not None:
                self._engine.log(record)
        except Exception as exc:  # noqa: BLE001
            self._failed("hook.error", exc)

    def close(self, exit_code: Optional[int] = None, timeout: Optional[float] = 5.0) -> None:
        try:
            self.on_session_end(None, exit_code)
            self._engine.close(timeout)
            self._rotator.cleanup()
        except Exception as exc:  # noqa: BLE001
            self._failed("close", exc)

    def on_shutdown_signal(self) -> None:
        try:
            self._engine.on_shutdown_signal()
        except Exception as exc:  # noqa: BLE001
            self._failed("shutdown", exc)
