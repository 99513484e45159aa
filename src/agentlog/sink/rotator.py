"""agentlog.sink.rotator

CONTRACT: inline
ROLE: Size-based rotation into <log_dir>/archive, gzip compression, retention.

INPUTS:
  - check_rotation(path) from the engine's writer thread
  - cleanup() after each rotation and on shutdown
OUTPUTS:
  - <log_dir>/archive/<base>-<timestamp>.ndjson[.gz]

CONFIG KEYS:
  - rotation.enabled: master switch
  - rotation.max_size_mb: rotate once the active file is larger
  - rotation.max_files: archives kept (newest by mtime)
  - rotation.max_age_days: archives older than this are deleted
  - rotation.compress / rotation.compression_level: gzip archives (1-9)
  - rotation.check_every_events: RotationGate cadence

PERF / TIMING:
  - one stat() per check; checks are gated by RotationGate

FAILURE MODES:
  - source vanished / rename error -> no rotation -> log rotation_failed
  - gzip error -> keep uncompressed archive -> log compress_failed
  - delete error -> skip file -> log archive_delete_failed

LOG EVENTS:
  - module=sink.rotator, event=rotated, payload keys=path, archive, size_bytes
  - module=sink.rotator, event=rotation_failed, payload keys=path, error
  - module=sink.rotator, event=compress_failed, payload keys=archive, error
  - module=sink.rotator, event=archive_deleted, payload keys=name, reason
  - module=sink.rotator, event=archive_delete_failed, payload keys=name, error

TESTS:
  - tests/test_rotator.py

CONTRACT DETAILS:
# Rotation state

- active -> rotating -> archived, one rotation in flight at a time; a
  concurrent attempt returns None instead of waiting.
- check_rotation returns the original path when it rotated, signalling the
  owner to reopen a fresh file there.

# Retention

- Count cap and age cap are applied independently.
"""

from __future__ import annotations

import gzip
import os
import shutil
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from agentlog.core.clock import filesystem_stamp
from agentlog.core.config import LoggerConfig


ARCHIVE_DIRNAME = "archive"
ARCHIVE_SUFFIXES = (".ndjson", ".ndjson.gz")
_MB = 1024 * 1024


@dataclass(frozen=True)
class ArchiveEntry:
    name: str
    path: Path
    mtime: float
    size: int


class LogRotator:
    def __init__(self, config: LoggerConfig, logger: Any) -> None:
        self._config = config
        self._policy = config.rotation
        self._logger = logger
        self._guard = threading.Lock()

    @property
    def archive_dir(self) -> Path:
        return Path(self._config.log_dir) / ARCHIVE_DIRNAME

    @property
    def rotation_in_progress(self) -> bool:
        return self._guard.locked()

    def current_size_mb(self, path: Path) -> float:
        try:
            return Path(path).stat().st_size / _MB
        except OSError:
            return 0.0

    def needs_rotation(self, path: Path) -> bool:
        if not self._policy.enabled:
            return False
        return self.current_size_mb(path) > self._policy.max_size_mb

    def check_rotation(self, path: Path) -> Optional[Path]:
        """Rotate path if it is over size. Returns path when rotated, else None."""
        if not self._policy.enabled:
            return None
        if not self._guard.acquire(blocking=False):
            return None
        try:
            if not self.needs_rotation(path):
                return None
            return self._rotate(Path(path))
        finally:
            self._guard.release()

    def _archive_path(self, path: Path) -> Path:
        stamp = filesystem_stamp()
        name = path.name
        if name.endswith(".ndjson"):
            stem, suffix = name[: -len(".ndjson")], ".ndjson"
        else:
            stem, suffix = path.stem, path.suffix
        candidate = self.archive_dir / f"{stem}-{stamp}{suffix}"
        counter = 2
        while candidate.exists() or Path(str(candidate) + ".gz").exists():
            candidate = self.archive_dir / f"{stem}-{stamp}_{counter:02d}{suffix}"
            counter += 1
        return candidate

    def _rotate(self, path: Path) -> Optional[Path]:
        try:
            self.archive_dir.mkdir(parents=True, exist_ok=True)
            archive = self._archive_path(path)
            size = path.stat().st_size
            os.replace(path, archive)
        except OSError as exc:
            self._logger.emit("warning", "sink.rotator", "rotation_failed", {"path": str(path), "error": str(exc)})
            return None

        if self._policy.compress:
            archive = self._compress(archive)
        self._logger.emit(
            "info",
            "sink.rotator",
            "rotated",
            {"path": str(path), "archive": str(archive), "size_bytes": size},
        )
        self.cleanup()
        return path

    def _compress(self, archive: Path) -> Path:
        target = Path(str(archive) + ".gz")
        try:
            with open(archive, "rb") as src, gzip.open(target, "wb", compresslevel=self._policy.compression_level) as dst:
                shutil.copyfileobj(src, dst)
            archive.unlink()
        except OSError as exc:
            self._logger.emit("warning", "sink.rotator", "compress_failed", {"archive": str(archive), "error": str(exc)})
            try:
                if archive.exists() and target.exists():
                    target.unlink()
            except OSError:
                pass
            return archive
        return target

    def list_archives(self) -> List[ArchiveEntry]:
        """Archived files, newest first by modification time."""
        if not self.archive_dir.is_dir():
            return []
        entries: List[ArchiveEntry] = []
        for item in self.archive_dir.iterdir():
            if not item.name.endswith(ARCHIVE_SUFFIXES):
                continue
            try:
                stat = item.stat()
            except OSError:
                continue
            if not item.is_file():
                continue
            entries.append(ArchiveEntry(name=item.name, path=item, mtime=stat.st_mtime, size=stat.st_size))
        entries.sort(key=lambda entry: entry.mtime, reverse=True)
        return entries

    def cleanup(self) -> None:
        if not self._policy.enabled:
            return
        try:
            entries = self.list_archives()
        except OSError as exc:
            self._logger.emit("warning", "sink.rotator", "archive_delete_failed", {"name": str(self.archive_dir), "error": str(exc)})
            return

        deleted = set()
        for entry in entries[self._policy.max_files :]:
            if self._delete(entry, "max_files"):
                deleted.add(entry.path)

        cutoff = time.time() - self._policy.max_age_days * 86400.0
        for entry in entries:
            if entry.path in deleted:
                continue
            if entry.mtime < cutoff:
                self._delete(entry, "max_age_days")

    def _delete(self, entry: ArchiveEntry, reason: str) -> bool:
        try:
            entry.path.unlink()
        except FileNotFoundError:
            return True
        except OSError as exc:
            self._logger.emit("warning", "sink.rotator", "archive_delete_failed", {"name": entry.name, "error": str(exc)})
            return False
        self._logger.emit("info", "sink.rotator", "archive_deleted", {"name": entry.name, "reason": reason})
        return True


class RotationGate:
    """Deterministic rotation-check cadence: every N events or every T seconds."""

    def __init__(self, every_events: int = 100, max_interval_s: float = 30.0) -> None:
        self._every = max(1, int(every_events))
        self._max_interval_s = float(max_interval_s)
        self._count = 0
        self._last_check = time.monotonic()
        self._lock = threading.Lock()

    def should_check(self) -> bool:
        with self._lock:
            self._count += 1
            now = time.monotonic()
            if self._count >= self._every or now - self._last_check >= self._max_interval_s:
                self._count = 0
                self._last_check = now
                return True
            return False

    def mark_checked(self) -> None:
        with self._lock:
            self._count = 0
            self._last_check = time.monotonic()
