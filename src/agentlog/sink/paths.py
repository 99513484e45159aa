"""
CONTRACT: inline
ROLE: Render log filenames from the configured pattern.

CONFIG KEYS:
  - filename_pattern: {YYYY} {MM} {DD} {HH} {mm} {ss} {YYYY-MM-DD} {session}

FAILURE MODES:
  - missing session -> "unknown"

TESTS:
  - tests/test_engine.py
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Optional


MAX_SESSION_CHARS = 50
_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_session(session: Optional[str]) -> str:
    if not session:
        return "unknown"
    return _UNSAFE.sub("_", str(session))[:MAX_SESSION_CHARS]


def render_filename(pattern: str, session: Optional[str] = None, now: Optional[datetime] = None) -> str:
    """Expand placeholders using local time."""
    now = now or datetime.now()
    replacements = {
        "{YYYY-MM-DD}": now.strftime("%Y-%m-%d"),
        "{YYYY}": now.strftime("%Y"),
        "{MM}": now.strftime("%m"),
        "{DD}": now.strftime("%d"),
        "{HH}": now.strftime("%H"),
        "{mm}": now.strftime("%M"),
        "{ss}": now.strftime("%S"),
        "{session}": sanitize_session(session),
    }
    name = pattern
    for token, value in replacements.items():
        name = name.replace(token, value)
    return name


def render_log_path(log_dir: str, pattern: str, session: Optional[str] = None, now: Optional[datetime] = None) -> Path:
    return Path(log_dir) / render_filename(pattern, session, now)
