"""agentlog.sink.file_writer

CONTRACT: inline
ROLE: Own the active NDJSON file handle; append bytes and report backpressure.

INPUTS:
  - write(bytes) from the flush scheduler's writer thread
OUTPUTS:
  - <log_dir>/<pattern> (append-only)

CONFIG KEYS:
  - buffering.high_watermark_bytes: handle buffer size / saturation threshold

PERF / TIMING:
  - buffered binary append; drain() pushes buffered bytes to the OS

FAILURE MODES:
  - open failure -> degraded no-op mode -> log open_failed
  - write failure -> bytes dropped -> log write_failed
  - writes while degraded -> dropped -> log degraded_write_dropped (once)

LOG EVENTS:
  - module=sink.file_writer, event=open_failed, payload keys=path, error
  - module=sink.file_writer, event=write_failed, payload keys=path, bytes, error
  - module=sink.file_writer, event=degraded_write_dropped, payload keys=path, bytes
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, BinaryIO, Optional


class FileWriter:
    """Single-owner append handle. Not thread-safe; the writer thread owns it."""

    def __init__(self, logger: Any, high_watermark_bytes: int = 16384) -> None:
        self._logger = logger
        self._high_watermark = max(1024, int(high_watermark_bytes))
        self._fh: Optional[BinaryIO] = None
        self._path: Optional[Path] = None
        self._pending = 0
        self._reported_degraded = False

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._fh is not None

    @property
    def saturated(self) -> bool:
        return self._pending >= self._high_watermark

    def open(self, path: Path) -> bool:
        self.close()
        self._path = Path(path)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self._path, "ab", buffering=self._high_watermark)
        except OSError as exc:
            self._fh = None
            self._logger.emit("error", "sink.file_writer", "open_failed", {"path": str(self._path), "error": str(exc)})
            return False
        self._pending = 0
        self._reported_degraded = False
        return True

    def write(self, data: bytes) -> bool:
        """Append data. Returns False when the handle buffer is saturated."""
        if not data:
            return True
        if self._fh is None:
            if not self._reported_degraded:
                self._reported_degraded = True
                self._logger.emit(
                    "warning",
                    "sink.file_writer",
                    "degraded_write_dropped",
                    {"path": str(self._path), "bytes": len(data)},
                )
            return True
        try:
            self._fh.write(data)
        except (OSError, ValueError) as exc:
            self._logger.emit(
                "error",
                "sink.file_writer",
                "write_failed",
                {"path": str(self._path), "bytes": len(data), "error": str(exc)},
            )
            return True
        self._pending += len(data)
        return not self.saturated

    def drain(self) -> None:
        if self._fh is None:
            return
        try:
            self._fh.flush()
        except (OSError, ValueError) as exc:
            self._logger.emit("error", "sink.file_writer", "write_failed", {"path": str(self._path), "bytes": self._pending, "error": str(exc)})
        self._pending = 0

    def close(self) -> None:
        if self._fh is None:
            return
        self.drain()
        try:
            self._fh.close()
        except Exception:  # noqa: BLE001
            pass
        self._fh = None


def append_sync(path: Path, data: bytes, logger: Any) -> bool:
    """Blocking append that bypasses any open handle (shutdown path)."""
    if not data:
        return True
    try:
        with open(path, "ab") as handle:
            handle.write(data)
            handle.flush()
        return True
    except OSError as exc:
        logger.emit("error", "sink.file_writer", "write_failed", {"path": str(path), "bytes": len(data), "error": str(exc)})
        return False
