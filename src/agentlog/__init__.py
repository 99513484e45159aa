"""
CONTRACT: inline
ROLE: Top-level agentlog package.

INPUTS:
  - Host hooks (see agentlog.main.hooks)
OUTPUTS:
  - <log_dir>/<pattern>.ndjson, <log_dir>/archive/*.ndjson[.gz]

CONFIG KEYS:
  - n/a

LOG EVENTS:
  - n/a

TESTS:
  - tests/
"""

from .version import __version__

__all__ = ["__version__"]
