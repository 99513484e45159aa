"""agentlog.engine.logger

CONTRACT: inline
ROLE: Logging engine facade: one log(record) entry point over buffer, writer, rotation.

INPUTS:
  - log(LogRecord) from the hooks facade or any caller
OUTPUTS:
  - <log_dir>/<filename_pattern> as NDJSON

CONFIG KEYS:
  - log_dir, filename_pattern, verbosity, timestamp_format
  - buffering.*: see agentlog.sink.flush
  - rotation.*: see agentlog.sink.rotator

PERF / TIMING:
  - log() encodes one line and returns; disk I/O happens on the writer thread
  - close() waits for queued writes (bounded by its timeout)

FAILURE MODES:
  - log_dir cannot be created -> default dir -> log log_dir_fallback
  - file cannot be opened -> default dir, then degraded no-op -> log open_failed
  - record cannot be encoded -> dropped -> log record_dropped
  - close() timeout -> log close_timeout

LOG EVENTS:
  - module=engine.logger, event=log_dir_fallback, payload keys=requested, fallback, error
  - module=engine.logger, event=record_dropped, payload keys=error
  - module=engine.logger, event=opened, payload keys=path
  - module=engine.logger, event=closed, payload keys=path
  - module=engine.logger, event=close_timeout, payload keys=timeout_s

TESTS:
  - tests/test_engine.py

CONTRACT DETAILS:
# Lifecycle

- opening -> active on construction; close(): draining -> closed.
- close() is idempotent; log() after close() is a no-op.
- on_shutdown_signal(): synchronous flush of queued and buffered lines,
  then the normal close path.

# Rotation

- rotate_if_needed() runs on the writer thread: drain, check size, close the
  handle, rename via LogRotator, reopen the same path, log "log_rotated".
- Records logged meanwhile stay in the buffer.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any, Optional

from agentlog.contracts.records import LogLevel, LogRecord, RecordKind, SystemPayload, level_enabled
from agentlog.core.clock import render_timestamp
from agentlog.core.config import DEFAULT_LOG_DIR, LoggerConfig
from agentlog.core.lifecycle import EngineState, Lifecycle, install_shutdown_hooks
from agentlog.core.logging import default_emitter
from agentlog.sink.file_writer import FileWriter
from agentlog.sink.flush import FlushScheduler, FlushTicket
from agentlog.sink.paths import render_log_path
from agentlog.sink.rotator import LogRotator


class LoggingEngine:
    """Own the active NDJSON file and the path of every record to it."""

    def __init__(
        self,
        config: LoggerConfig,
        logger: Any = None,
        session_name: Optional[str] = None,
        install_hooks: bool = False,
    ) -> None:
        self._logger = logger or default_emitter()
        self._lifecycle = Lifecycle()
        self._session_name = session_name
        self._uninstall_hooks = None
        self._config = self._ensure_log_dir(config)
        self._writer = FileWriter(self._logger, self._config.buffering.high_watermark_bytes)
        self._path = render_log_path(self._config.log_dir, self._config.filename_pattern, session_name)
        self._open_writer()
        self._scheduler = FlushScheduler(self._writer, self._config.buffering, self._logger)
        self._scheduler.start()
        self._lifecycle.advance(EngineState.ACTIVE)
        if install_hooks:
            self._uninstall_hooks = install_shutdown_hooks(self, self._logger)

    @property
    def config(self) -> LoggerConfig:
        return self._config

    @property
    def current_path(self) -> Path:
        return self._path

    @property
    def state(self) -> EngineState:
        return self._lifecycle.state

    @property
    def scheduler(self) -> FlushScheduler:
        return self._scheduler

    def _ensure_log_dir(self, config: LoggerConfig) -> LoggerConfig:
        try:
            Path(config.log_dir).mkdir(parents=True, exist_ok=True)
            return config
        except OSError as exc:
            self._logger.emit(
                "warning",
                "engine.logger",
                "log_dir_fallback",
                {"requested": config.log_dir, "fallback": DEFAULT_LOG_DIR, "error": str(exc)},
            )
        fallback = replace(config, log_dir=DEFAULT_LOG_DIR)
        try:
            Path(DEFAULT_LOG_DIR).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            self._logger.emit(
                "error",
                "engine.logger",
                "log_dir_fallback",
                {"requested": DEFAULT_LOG_DIR, "fallback": None, "error": str(exc)},
            )
        return fallback

    def _open_writer(self) -> None:
        if self._writer.open(self._path):
            self._logger.emit("info", "engine.logger", "opened", {"path": str(self._path)})
            return
        if Path(self._config.log_dir) == Path(DEFAULT_LOG_DIR):
            return
        fallback = render_log_path(DEFAULT_LOG_DIR, self._config.filename_pattern, self._session_name)
        self._logger.emit(
            "warning",
            "engine.logger",
            "log_dir_fallback",
            {"requested": str(self._path), "fallback": str(fallback), "error": "open failed"},
        )
        self._config = replace(self._config, log_dir=DEFAULT_LOG_DIR)
        self._path = fallback
        if self._writer.open(self._path):
            self._logger.emit("info", "engine.logger", "opened", {"path": str(self._path)})

    def log(self, record: LogRecord) -> None:
        if not self._lifecycle.accepting:
            return
        try:
            if not level_enabled(self._config.verbosity, record.level):
                return
            if record.timestamp is None:
                record = record.with_timestamp(render_timestamp(self._config.timestamp_format))
            self._scheduler.submit(record.to_line())
        except Exception as exc:  # noqa: BLE001
            self._logger.emit("warning", "engine.logger", "record_dropped", {"error": str(exc)})

    def flush(self, wait: bool = False, timeout: Optional[float] = None) -> FlushTicket:
        ticket = self._scheduler.flush()
        if wait:
            ticket.wait(timeout)
        return ticket

    def rotate_if_needed(self, rotator: LogRotator, wait: bool = False, timeout: Optional[float] = None) -> FlushTicket:
        """Queue a rotation check behind everything logged so far."""
        if not self._lifecycle.accepting:
            return FlushTicket(done=True)
        self._scheduler.flush()
        ticket = self._scheduler.call(lambda: self._rotate_on_writer(rotator))
        if wait:
            ticket.wait(timeout)
        return ticket

    def _rotate_on_writer(self, rotator: LogRotator) -> None:
        self._writer.drain()
        if not rotator.needs_rotation(self._path):
            return
        self._writer.close()
        rotated = rotator.check_rotation(self._path)
        self._writer.open(self._path)
        if rotated is None:
            return
        self.log(
            LogRecord(
                level=LogLevel.INFO,
                kind=RecordKind.SYSTEM,
                data=SystemPayload(event="log_rotated", new_path=str(rotated)),
            )
        )

    def close(self, timeout: Optional[float] = 5.0) -> None:
        if not self._lifecycle.advance(EngineState.DRAINING):
            return
        if not self._scheduler.stop(timeout):
            self._logger.emit("warning", "engine.logger", "close_timeout", {"timeout_s": timeout})
        self._finish(restore_hooks=True)

    def on_shutdown_signal(self) -> None:
        if not self._lifecycle.advance(EngineState.DRAINING):
            return
        self._scheduler.stop_timer()
        self._scheduler.sync_flush()
        self._scheduler.stop(timeout=1.0)
        # Interpreter may be running atexit callbacks; leave registrations alone.
        self._finish(restore_hooks=False)

    def _finish(self, restore_hooks: bool) -> None:
        self._writer.close()
        self._lifecycle.advance(EngineState.CLOSED)
        if restore_hooks and self._uninstall_hooks is not None:
            self._uninstall_hooks()
            self._uninstall_hooks = None
        self._logger.emit("info", "engine.logger", "closed", {"path": str(self._path)})
