"""
CONTRACT: inline
ROLE: Redact sensitive keys, truncate oversized tool output, detect empty payloads.

INPUTS:
  - arbitrary JSON-like values (mappings, sequences, leaves)
OUTPUTS:
  - new values; inputs are never mutated

CONFIG KEYS:
  - max_output_chars: truncation threshold (default 10000)

PERF / TIMING:
  - one recursive walk per payload; one json.dumps per tool result

TESTS:
  - tests/test_serializers.py

CONTRACT DETAILS:
# Redaction

- Keys only: a key whose lowercase form contains any SENSITIVE_FIELDS entry
  has its value replaced with REDACTED. Values are never inspected.
- Mappings and sequences are walked recursively.

# Truncation

- A string "output" longer than max_length keeps max_length chars plus a
  "... [truncated N chars]" marker, and gains truncated / original_length.
- Independently, a result whose JSON form exceeds 2 * max_length collapses
  to a summary with a preview.
"""

from __future__ import annotations

import json
from typing import Any, Dict


SENSITIVE_FIELDS = ("password", "token", "secret", "key", "api_key", "auth", "credential")
REDACTED = "***REDACTED***"
TRUNCATION_SUMMARY = "Output was too large and was truncated"


def is_sensitive_key(key: Any) -> bool:
    lowered = str(key).lower()
    return any(field in lowered for field in SENSITIVE_FIELDS)


def sanitize(value: Any) -> Any:
    """Return a copy of value with sensitive mapping keys redacted."""
    if isinstance(value, dict):
        sanitized: Dict[Any, Any] = {}
        for key, item in value.items():
            if is_sensitive_key(key):
                sanitized[key] = REDACTED
            else:
                sanitized[key] = sanitize(item)
        return sanitized
    if isinstance(value, (list, tuple)):
        return [sanitize(item) for item in value]
    return value


def truncate_output(result: Any, max_length: int = 10000) -> Any:
    if not isinstance(result, dict) or not result:
        return result

    output = result.get("output")
    if isinstance(output, str) and len(output) > max_length:
        dropped = len(output) - max_length
        result = {
            **result,
            "output": output[:max_length] + f"... [truncated {dropped} chars]",
            "truncated": True,
            "original_length": len(output),
        }

    encoded = json.dumps(result, ensure_ascii=False, default=str)
    if len(encoded) > max_length * 2:
        return {
            "_truncated": True,
            "_original_size": len(encoded),
            "_summary": TRUNCATION_SUMMARY,
            "preview": encoded[:max_length] + "...",
        }
    return result


def is_empty_payload(value: Any) -> bool:
    """True for None, blank strings, empty containers, or mappings of only such values."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set)):
        return len(value) == 0
    if isinstance(value, dict):
        return all(_is_blank_leaf(item) for item in value.values())
    return False


def _is_blank_leaf(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (dict, list, tuple, set)):
        return len(value) == 0
    return False
