"""
CONTRACT: inline
ROLE: Out-of-band structured diagnostics (JSON lines on stderr).

INPUTS:
  - emit(level, module, event, payload) from every agentlog module
OUTPUTS:
  - stderr, one JSON object per line

CONFIG KEYS:
  - diagnostics level (constructor argument, default warning)

PERF / TIMING:
  - synchronous, unbuffered; only used on failure and lifecycle paths

FAILURE MODES:
  - stream write failure -> dropped silently (this is the last channel)

LOG EVENTS:
  - n/a (this is the channel)

TESTS:
  - tests use a _DummyLogger with the same emit() signature

CONTRACT DETAILS:
# Diagnostics contract

- Never writes into the NDJSON file it is reporting about.
- Structured event with module, severity and details.
- Safe to call from any thread, including signal handlers.
"""

from __future__ import annotations

import json
import sys
import threading
from typing import Any, Dict, IO, Optional

from agentlog.core.clock import iso_utc


LEVELS = {"debug": 10, "info": 20, "warning": 30, "error": 40}


class LogEmitter:
    """Emit structured diagnostic events to stderr."""

    def __init__(self, min_level: str = "warning", stream: Optional[IO[str]] = None) -> None:
        self._min_level = LEVELS.get(min_level, 30)
        self._stream = stream
        self._lock = threading.RLock()

    def emit(self, level: str, module: str, event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        if LEVELS.get(level, 0) < self._min_level:
            return
        record = {
            "ts": iso_utc(),
            "level": level,
            "message": event,
            "context": {
                "module": module,
                "event": event,
                "details": payload or {},
            },
        }
        stream = self._stream or sys.stderr
        try:
            line = json.dumps(record, sort_keys=True, default=str)
            with self._lock:
                stream.write(line + "\n")
                stream.flush()
        except Exception:  # noqa: BLE001
            return


_default_emitter: Optional[LogEmitter] = None


def default_emitter() -> LogEmitter:
    global _default_emitter
    if _default_emitter is None:
        _default_emitter = LogEmitter()
    return _default_emitter
