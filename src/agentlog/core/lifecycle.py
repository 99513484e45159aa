"""
CONTRACT: inline
ROLE: Engine state machine and optional process shutdown hooks.

INPUTS:
  - SIGINT / SIGTERM / interpreter exit (only when hooks are installed)
OUTPUTS:
  - engine.on_shutdown_signal()

CONFIG KEYS:
  - n/a (LoggingEngine(install_hooks=True) opts in)

FAILURE MODES:
  - hooks installed off the main thread -> signals skipped -> log signal_hook_skipped
  - illegal transition -> ignored, returns False

LOG EVENTS:
  - module=core.lifecycle, event=signal_hook_skipped, payload keys=signal, error

TESTS:
  - tests/test_engine.py

CONTRACT DETAILS:
# Lifecycle contract

- States: opening -> active -> draining -> closed.
- Transitions only move forward; closed is terminal.
- Signal handlers call the engine's explicit shutdown entry point, then
  defer to whatever handler was installed before.
"""

from __future__ import annotations

import atexit
import signal
import threading
from enum import Enum
from typing import Any, Callable, Dict


class EngineState(str, Enum):
    OPENING = "opening"
    ACTIVE = "active"
    DRAINING = "draining"
    CLOSED = "closed"


_ORDER = {EngineState.OPENING: 0, EngineState.ACTIVE: 1, EngineState.DRAINING: 2, EngineState.CLOSED: 3}


class Lifecycle:
    """Forward-only state holder shared by the engine's threads."""

    def __init__(self) -> None:
        self._state = EngineState.OPENING
        self._lock = threading.RLock()

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def accepting(self) -> bool:
        return self._state is EngineState.ACTIVE

    def advance(self, target: EngineState) -> bool:
        """Move to target if it is ahead of the current state."""
        with self._lock:
            if _ORDER[target] <= _ORDER[self._state]:
                return False
            self._state = target
            return True


def install_shutdown_hooks(engine: Any, logger: Any) -> Callable[[], None]:
    """Route SIGINT/SIGTERM and interpreter exit into engine.on_shutdown_signal().

    Returns a callable that restores the previous handlers.
    """
    previous: Dict[int, Any] = {}

    def _handler(signum: int, frame: Any) -> None:
        engine.on_shutdown_signal()
        prior = previous.get(signum)
        if callable(prior):
            prior(signum, frame)
        elif prior == signal.SIG_DFL:
            signal.signal(signum, signal.SIG_DFL)
            signal.raise_signal(signum)

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[signum] = signal.getsignal(signum)
            signal.signal(signum, _handler)
        except (ValueError, OSError) as exc:
            previous.pop(signum, None)
            logger.emit("warning", "core.lifecycle", "signal_hook_skipped", {"signal": int(signum), "error": str(exc)})

    atexit.register(engine.on_shutdown_signal)

    def _uninstall() -> None:
        atexit.unregister(engine.on_shutdown_signal)
        for signum, prior in previous.items():
            try:
                signal.signal(signum, prior)
            except (ValueError, OSError, TypeError):
                continue

    return _uninstall
