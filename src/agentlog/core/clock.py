"""
CONTRACT: inline
ROLE: Wall-clock timestamps for records and archive names.

INPUTS:
  - Topic: n/a  Type: n/a
OUTPUTS:
  - Topic: n/a  Type: n/a

CONFIG KEYS:
  - timestamp_format: iso | epoch | local

PERF / TIMING:
  - one datetime.now() per rendered timestamp

FAILURE MODES:
  - unknown format -> iso

TESTS:
  - tests/test_serializers.py covers rendering modes

CONTRACT DETAILS:
# Timestamps

- iso:   2026-01-02T03:04:05.678Z (UTC, millisecond precision)
- epoch: integer milliseconds since the Unix epoch
- local: locale-formatted local time
- Archive stamps are iso with ':' and '.' replaced by '-'.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Union


TIMESTAMP_FORMATS = ("iso", "epoch", "local")

Timestamp = Union[str, int]


def wall_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_utc(now: Optional[datetime] = None) -> str:
    stamp = (now or wall_now()).astimezone(timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def render_timestamp(fmt: str, now: Optional[datetime] = None) -> Timestamp:
    """Render the record timestamp in the configured mode."""
    now = now or wall_now()
    if fmt == "epoch":
        return int(now.timestamp() * 1000)
    if fmt == "local":
        return now.astimezone().strftime("%c")
    return iso_utc(now)


def filesystem_stamp(now: Optional[datetime] = None) -> str:
    return iso_utc(now).replace(":", "-").replace(".", "-")
