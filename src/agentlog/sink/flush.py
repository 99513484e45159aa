"""agentlog.sink.flush

CONTRACT: inline
ROLE: In-memory line buffer plus a single writer thread that owns all file I/O.

INPUTS:
  - submit(line) from LoggingEngine.log
  - flush() from the timer, the watermark check, and explicit callers
  - call(fn) from the engine (rotation runs inside the writer thread)
OUTPUTS:
  - ordered appends through FileWriter

CONFIG KEYS:
  - buffering.enabled: buffer lines vs. hand each line to the writer
  - buffering.flush_interval_ms: periodic flush cadence (>= 10 ms)
  - buffering.high_watermark_bytes: buffered bytes that force a flush

PERF / TIMING:
  - submit() never touches the disk
  - unencodable characters (lone surrogates) are written as \\uXXXX escapes
  - writes leave the queue strictly in enqueue order
  - a saturated handle is drained before the flush ticket resolves
  - the handle is drained whenever the queue goes idle

FAILURE MODES:
  - writer-thread call raises -> log writer_call_failed
  - sync flush cannot take the I/O lock -> log sync_flush_timeout, append anyway (order not guaranteed)

LOG EVENTS:
  - module=sink.flush, event=writer_call_failed, payload keys=error
  - module=sink.flush, event=sync_flush_timeout, payload keys=timeout_s
  - module=sink.flush, event=sync_flush, payload keys=bytes, requests

CONTRACT DETAILS:
# Ordering

- Every write request is popped and written while holding the I/O lock, so
  the synchronous shutdown path sees a consistent queue: it appends whatever
  is still queued, in order, followed by the buffer contents.
- The timer and writer threads are daemons and never keep the process alive.

# Shutdown limitation

- sync_flush() is best effort. When the I/O lock cannot be taken within
  lock_timeout_s (writer stalled on a slow disk), it appends through a second
  handle while the writer's own handle may still hold unflushed bytes; those
  bytes can land after the appended lines.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, List, Optional

from agentlog.core.config import BufferingPolicy
from agentlog.sink.file_writer import FileWriter, append_sync


class FlushTicket:
    """Completion handle for one queued request."""

    def __init__(self, done: bool = False) -> None:
        self._event = threading.Event()
        if done:
            self._event.set()

    @property
    def done(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    def _resolve(self) -> None:
        self._event.set()


@dataclass
class _Request:
    data: bytes = b""
    fn: Optional[Callable[[], None]] = None
    ticket: FlushTicket = field(default_factory=FlushTicket)


class FlushScheduler:
    """Buffer lines and serialize all writes through one writer thread."""

    def __init__(self, writer: FileWriter, policy: BufferingPolicy, logger: Any) -> None:
        self._writer = writer
        self._policy = policy
        self._logger = logger
        self._buffer: List[bytes] = []
        self._buffered_bytes = 0
        self._buffer_lock = threading.RLock()
        self._io_lock = threading.RLock()
        self._cond = threading.Condition(threading.RLock())
        self._queue: Deque[_Request] = deque()
        self._stopping = False
        self._timer_stop = threading.Event()
        self._writer_thread: Optional[threading.Thread] = None
        self._timer_thread: Optional[threading.Thread] = None
        self.flush_count = 0

    @property
    def buffered_bytes(self) -> int:
        return self._buffered_bytes

    @property
    def queued_requests(self) -> int:
        with self._cond:
            return len(self._queue)

    def start(self) -> None:
        self._writer_thread = threading.Thread(target=self._run_writer, name="agentlog-writer", daemon=True)
        self._writer_thread.start()
        if self._policy.enabled:
            interval_s = max(10.0, float(self._policy.flush_interval_ms)) / 1000.0

            def _tick() -> None:
                while not self._timer_stop.wait(interval_s):
                    self.flush(only_if_pending=True)

            self._timer_thread = threading.Thread(target=_tick, name="agentlog-flush-timer", daemon=True)
            self._timer_thread.start()

    def submit(self, line: str) -> None:
        data = line.encode("utf-8", "backslashreplace")
        if not self._policy.enabled:
            self._enqueue(_Request(data=data))
            return
        with self._buffer_lock:
            self._buffer.append(data)
            self._buffered_bytes += len(data)
            over = self._buffered_bytes > self._policy.high_watermark_bytes
        if over:
            self.flush()

    def flush(self, only_if_pending: bool = False) -> FlushTicket:
        """Move the whole buffer into one write request.

        With an empty buffer the request still acts as a barrier: its ticket
        resolves once everything queued before it has been written.
        """
        with self._buffer_lock:
            data = b"".join(self._buffer)
            self._buffer = []
            self._buffered_bytes = 0
            if not data and only_if_pending:
                return FlushTicket(done=True)
            if data:
                self.flush_count += 1
            # Requests enter the queue in buffer order.
            return self._enqueue(_Request(data=data))

    def call(self, fn: Callable[[], None]) -> FlushTicket:
        """Run fn on the writer thread, after everything queued so far."""
        return self._enqueue(_Request(fn=fn))

    def _enqueue(self, request: _Request) -> FlushTicket:
        with self._cond:
            if self._stopping and self._writer_thread is not None and not self._writer_thread.is_alive():
                request.ticket._resolve()
                return request.ticket
            self._queue.append(request)
            self._cond.notify()
        return request.ticket

    def _run_writer(self) -> None:
        while True:
            with self._cond:
                while not self._queue and not self._stopping:
                    self._cond.wait()
                if not self._queue and self._stopping:
                    return
            with self._io_lock:
                with self._cond:
                    if not self._queue:
                        continue
                    request = self._queue.popleft()
                self._process(request)
                with self._cond:
                    idle = not self._queue
                if idle:
                    self._writer.drain()
            request.ticket._resolve()

    def _process(self, request: _Request) -> None:
        if request.fn is not None:
            try:
                request.fn()
            except Exception as exc:  # noqa: BLE001
                self._logger.emit("error", "sink.flush", "writer_call_failed", {"error": str(exc)})
            return
        if not request.data:
            return
        accepted = self._writer.write(request.data)
        if not accepted:
            # Wait for the handle to drain before the ticket resolves.
            self._writer.drain()

    def sync_flush(self, lock_timeout_s: float = 2.0) -> int:
        """Blocking append of queued and buffered bytes, bypassing the writer thread."""
        locked = self._io_lock.acquire(timeout=lock_timeout_s)
        if not locked:
            self._logger.emit("warning", "sink.flush", "sync_flush_timeout", {"timeout_s": lock_timeout_s})
        try:
            with self._cond:
                pending = list(self._queue)
                self._queue.clear()
            with self._buffer_lock:
                buffered = b"".join(self._buffer)
                self._buffer = []
                self._buffered_bytes = 0
            chunks = [request.data for request in pending if request.data]
            if buffered:
                chunks.append(buffered)
            data = b"".join(chunks)
            path = self._writer.path
            if locked:
                self._writer.drain()
            if data and path is not None:
                append_sync(path, data, self._logger)
            for request in pending:
                request.ticket._resolve()
            if data:
                self._logger.emit("info", "sink.flush", "sync_flush", {"bytes": len(data), "requests": len(pending)})
            return len(data)
        finally:
            if locked:
                self._io_lock.release()

    def stop_timer(self) -> None:
        self._timer_stop.set()

    def stop(self, timeout: Optional[float] = 5.0) -> bool:
        """Flush, let the writer drain the queue, and join it."""
        self.stop_timer()
        ticket = self.flush()
        drained = ticket.wait(timeout)
        with self._cond:
            self._stopping = True
            self._cond.notify_all()
        if self._writer_thread is not None and self._writer_thread is not threading.current_thread():
            self._writer_thread.join(timeout)
        return drained
