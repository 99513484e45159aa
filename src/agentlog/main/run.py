"""
CONTRACT: inline
ROLE: Replay driver: feed host hook calls encoded as JSON lines into AgentLogger.

INPUTS:
  - stdin or --input FILE, one JSON object per line:
      {"hook": "event", "kind": "...", "payload": {...}}
      {"hook": "tool_start", "tool": "...", "args": {...}}
      {"hook": "tool_end", "tool": "...", "args": {...}, "duration": 12, "result": {...}}
      {"hook": "llm", "event": {...}}
      {"hook": "error", "error": {"name": "...", "message": "..."}, "context": "..."}
      {"hook": "client_init"}
OUTPUTS:
  - NDJSON log file per the loaded config

CONFIG KEYS:
  - --config: YAML config path (env overrides still apply)

FAILURE MODES:
  - unparsable line / unknown hook -> skipped -> log replay_line_skipped

LOG EVENTS:
  - module=main.run, event=replay_line_skipped, payload keys=line, reason
  - module=main.run, event=replay_done, payload keys=lines, skipped, path
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, IO, Optional

from agentlog.core.config import load_config
from agentlog.core.logging import LogEmitter
from agentlog.main.hooks import AgentLogger


def dispatch(agent: AgentLogger, message: Dict[str, Any]) -> bool:
    hook = str(message.get("hook", ""))
    if hook == "event":
        agent.on_event(str(message.get("kind", "")), message.get("payload"))
    elif hook == "tool_start":
        agent.on_tool_start(str(message.get("tool", "")), message.get("args"))
    elif hook == "tool_end":
        agent.on_tool_end(
            str(message.get("tool", "")),
            message.get("args"),
            message.get("duration"),
            message.get("result"),
        )
    elif hook == "llm":
        agent.on_llm_event(message.get("event") or {})
    elif hook == "error":
        agent.on_internal_error(message.get("error"), str(message.get("context", "replay")))
    elif hook == "client_init":
        agent.on_client_init()
    else:
        return False
    return True


def replay(agent: AgentLogger, stream: IO[str], logger: Any) -> Dict[str, int]:
    lines = 0
    skipped = 0
    for lineno, raw in enumerate(stream, start=1):
        raw = raw.strip()
        if not raw:
            continue
        lines += 1
        try:
            message = json.loads(raw)
        except json.JSONDecodeError as exc:
            skipped += 1
            logger.emit("warning", "main.run", "replay_line_skipped", {"line": lineno, "reason": str(exc)})
            continue
        if not isinstance(message, dict) or not dispatch(agent, message):
            skipped += 1
            logger.emit("warning", "main.run", "replay_line_skipped", {"line": lineno, "reason": "unknown hook"})
    return {"lines": lines, "skipped": skipped}


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Replay host hook calls into the NDJSON activity log")
    parser.add_argument("--config", default=None, help="Path to YAML config")
    parser.add_argument("--input", default="-", help="JSON-lines hook file ('-' for stdin)")
    parser.add_argument("--session", default=None, help="Session id for records and {session}")
    parser.add_argument("--model", default=None, help="Model name reported in session_start")
    parser.add_argument("--diagnostics", default="warning", help="Diagnostic level on stderr")
    args = parser.parse_args(argv)

    logger = LogEmitter(min_level=args.diagnostics)
    config = load_config(args.config, logger=logger)
    client = {"session": {"id": args.session}, "model": {"name": args.model}}
    agent = AgentLogger(client, config=config, logger=logger, install_hooks=True)

    exit_code = 0
    try:
        if args.input == "-":
            stats = replay(agent, sys.stdin, logger)
        else:
            with open(args.input, "r", encoding="utf-8") as handle:
                stats = replay(agent, handle, logger)
    except OSError as exc:
        print(f"Unable to read {args.input}: {exc}", file=sys.stderr)
        stats = {"lines": 0, "skipped": 0}
        exit_code = 1
    finally:
        agent.close(exit_code=exit_code)

    logger.emit("info", "main.run", "replay_done", {**stats, "path": str(agent.engine.current_path)})
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
