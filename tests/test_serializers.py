import sys
import unittest
from dataclasses import replace
from unittest import mock

from agentlog.contracts.events import (
    ClientContext,
    ErrorEvent,
    HostEvent,
    LlmEvent,
    SessionEnd,
    SessionStart,
    ToolCall,
)
from agentlog.contracts.records import LogLevel, RecordKind
from agentlog.core.config import LoggerConfig
from agentlog.serialize.events import (
    NOISE_EVENTS,
    serialize,
    serialize_error,
    serialize_llm_event,
    serialize_session_end,
    serialize_session_start,
    serialize_system_event,
    serialize_tool_event,
)
from agentlog.serialize.redaction import (
    REDACTED,
    SENSITIVE_FIELDS,
    is_empty_payload,
    sanitize,
    truncate_output,
)


def _config(**overrides) -> LoggerConfig:
    base = LoggerConfig(verbosity=LogLevel.DEBUG, excluded_events=frozenset())
    return replace(base, **overrides)


class RedactionTests(unittest.TestCase):
    def test_sensitive_keys_are_redacted_recursively(self) -> None:
        args = {
            "path": "/tmp/x",
            "API_KEY": "sk-123",
            "Authorization": "Bearer abc",
            "nested": {"db_password": "hunter2", "user": "bob"},
            "items": [{"refresh_token": "t"}, {"name": "ok"}],
            "note": "my password is hunter2",
        }
        out = sanitize(args)
        self.assertEqual(out["path"], "/tmp/x")
        self.assertEqual(out["API_KEY"], REDACTED)
        self.assertEqual(out["Authorization"], REDACTED)
        self.assertEqual(out["nested"]["db_password"], REDACTED)
        self.assertEqual(out["nested"]["user"], "bob")
        self.assertEqual(out["items"][0]["refresh_token"], REDACTED)
        self.assertEqual(out["items"][1]["name"], "ok")
        # Values are never inspected.
        self.assertEqual(out["note"], "my password is hunter2")
        # Input is untouched.
        self.assertEqual(args["API_KEY"], "sk-123")

    def test_every_sensitive_field_matches_in_any_case(self) -> None:
        payload = {}
        for idx, field in enumerate(SENSITIVE_FIELDS):
            payload[f"x_{field.upper()}_{idx}"] = f"value-{idx}"
            payload[f"plain_{idx}"] = {field.title(): idx}
        out = sanitize(payload)
        for key, value in out.items():
            if key.startswith("x_"):
                self.assertEqual(value, REDACTED)
            else:
                self.assertEqual(list(value.values()), [REDACTED])

    def test_leaves_pass_through(self) -> None:
        self.assertEqual(sanitize("secret"), "secret")
        self.assertEqual(sanitize(5), 5)
        self.assertIsNone(sanitize(None))
        self.assertEqual(sanitize([1, "a"]), [1, "a"])

    def test_truncate_long_output(self) -> None:
        result = truncate_output({"output": "a" * 15000, "exit": 0}, 10000)
        marker = "... [truncated 5000 chars]"
        self.assertEqual(len(result["output"]), 10000 + len(marker))
        self.assertTrue(result["output"].endswith(marker))
        self.assertTrue(result["truncated"])
        self.assertEqual(result["original_length"], 15000)
        self.assertEqual(result["exit"], 0)

    def test_short_output_unchanged(self) -> None:
        result = {"output": "fine"}
        self.assertIs(truncate_output(result, 10000), result)
        self.assertEqual(truncate_output("raw", 10), "raw")
        self.assertIsNone(truncate_output(None))

    def test_oversized_payload_collapses(self) -> None:
        result = truncate_output({"blob": "b" * 25000}, 10000)
        self.assertTrue(result["_truncated"])
        self.assertGreater(result["_original_size"], 20000)
        self.assertIn("_summary", result)
        self.assertEqual(len(result["preview"]), 10003)
        self.assertNotIn("blob", result)

    def test_collapse_after_output_truncation(self) -> None:
        result = truncate_output({"output": "a" * 15000, "blob": "b" * 15000}, 10000)
        self.assertTrue(result["_truncated"])
        self.assertNotIn("output", result)

    def test_empty_payloads(self) -> None:
        for value in (None, "", "   ", {}, [], {"a": None, "b": "  ", "c": {}}):
            self.assertTrue(is_empty_payload(value), value)
        for value in ({"a": 0}, {"a": False}, [None], "x", 0):
            self.assertFalse(is_empty_payload(value), value)


class SerializerTests(unittest.TestCase):
    def test_verbosity_gate_orders_levels(self) -> None:
        ctx = ClientContext(session_id="s1", model_name="m")
        for threshold in LogLevel:
            cfg = _config(verbosity=threshold)
            records = [
                serialize_tool_event(ToolCall("bash", {"cmd": "ls"}), "before", cfg),
                serialize_tool_event(ToolCall("bash", {}, result={"error": "boom"}), "after", cfg),
                serialize_system_event(HostEvent("file_edit", {"path": "a.py"}), cfg),
                serialize_llm_event(LlmEvent("completion", "m"), cfg),
                serialize_error(ErrorEvent("ctx", "ValueError", "bad"), cfg),
                serialize_session_start(ctx, cfg),
                serialize_session_end(ctx, cfg, 0),
            ]
            accepted = [r for r in records if r is not None]
            self.assertTrue(accepted)
            for record in accepted:
                self.assertGreaterEqual(record.level.rank, threshold.rank)
        warn_only = _config(verbosity=LogLevel.WARN)
        self.assertIsNone(serialize_tool_event(ToolCall("bash"), "before", warn_only))

    def test_tool_before_and_after(self) -> None:
        cfg = _config()
        before = serialize_tool_event(ToolCall("bash", {"cmd": "ls", "token": "t"}, "s1"), "before", cfg)
        self.assertEqual(before.kind, RecordKind.TOOL_USE)
        self.assertEqual(before.level, LogLevel.INFO)
        data = before.data.to_dict()
        self.assertEqual(data["status"], "pending")
        self.assertEqual(data["direction"], "before")
        self.assertEqual(data["input"], {"cmd": "ls", "token": REDACTED})
        self.assertNotIn("output", data)

        ok = serialize_tool_event(ToolCall("bash", {}, "s1", 12.5, {"output": "done"}), "after", cfg)
        ok_data = ok.data.to_dict()
        self.assertEqual(ok.level, LogLevel.INFO)
        self.assertEqual(ok_data["status"], "success")
        self.assertEqual(ok_data["duration_ms"], 12.5)
        self.assertEqual(ok_data["output"], {"output": "done"})
        self.assertNotIn("input", ok_data)

        failed = serialize_tool_event(ToolCall("bash", {}, "s1", 3, {"error": "exit 1"}), "after", cfg)
        self.assertEqual(failed.level, LogLevel.ERROR)
        self.assertEqual(failed.data.to_dict()["status"], "error")

    def test_tool_output_truncated_in_record(self) -> None:
        cfg = _config()
        record = serialize_tool_event(ToolCall("read", {}, result={"output": "z" * 15000}), "after", cfg)
        output = record.data.to_dict()["output"]
        self.assertTrue(output["truncated"])
        self.assertEqual(output["original_length"], 15000)
        self.assertEqual(len(output["output"]), 10000 + len("... [truncated 5000 chars]"))

    def test_excluded_names(self) -> None:
        cfg = _config(excluded_events=frozenset({"file_edit", "webfetch", "llm"}))
        self.assertIsNone(serialize_system_event(HostEvent("file_edit", {"a": 1}), cfg))
        self.assertIsNone(serialize_tool_event(ToolCall("webfetch", {}), "before", cfg))
        self.assertIsNone(serialize_llm_event(LlmEvent("completion"), cfg))
        self.assertIsNotNone(serialize_tool_event(ToolCall("bash", {}), "before", cfg))

    def test_errors_and_session_records_ignore_exclusions(self) -> None:
        cfg = _config(excluded_events=frozenset({"error", "session_start", "session_end", "system"}))
        ctx = ClientContext(session_id="s1")
        self.assertIsNotNone(serialize_error(ErrorEvent("hook:x", "KeyError", "k"), cfg))
        self.assertIsNotNone(serialize_session_start(ctx, cfg))
        self.assertIsNotNone(serialize_session_end(ctx, cfg, 1))

    def test_noise_and_empty_host_events_dropped(self) -> None:
        cfg = _config()
        for name in sorted(NOISE_EVENTS):
            self.assertIsNone(serialize_system_event(HostEvent(name, {"x": 1}), cfg), name)
        self.assertIsNone(serialize_system_event(HostEvent("file_edit", None), cfg))
        self.assertIsNone(serialize_system_event(HostEvent("file_edit", {}), cfg))
        self.assertIsNone(serialize_system_event(HostEvent("file_edit", {"a": "", "b": None}), cfg))
        record = serialize_system_event(HostEvent("file_edit", {"path": "a.py", "secret": "s"}), cfg)
        self.assertEqual(record.level, LogLevel.DEBUG)
        self.assertEqual(record.data.to_dict(), {"event": "file_edit", "payload": {"path": "a.py", "secret": REDACTED}})

    def test_host_events_dropped_at_default_verbosity(self) -> None:
        cfg = _config(verbosity=LogLevel.INFO)
        self.assertIsNone(serialize_system_event(HostEvent("file_edit", {"path": "a.py"}), cfg))

    def test_session_records(self) -> None:
        cfg = _config()
        ctx = ClientContext(session_id="s-9", model_name="gpt", cwd="/work")
        start = serialize_session_start(ctx, cfg).data.to_dict()
        self.assertEqual(start["event"], "session_start")
        self.assertEqual(start["model"], "gpt")
        self.assertEqual(start["cwd"], "/work")
        self.assertIn("python_version", start)
        self.assertIsInstance(start["argv"], list)
        end = serialize_session_end(ctx, cfg, 3)
        self.assertEqual(end.session_id, "s-9")
        self.assertEqual(end.data.to_dict()["exit_code"], 3)
        self.assertGreaterEqual(end.data.to_dict()["uptime_seconds"], 0)

    def test_session_start_keeps_argv_verbatim(self) -> None:
        cfg = _config()
        ctx = ClientContext(session_id="s-9")
        argv = ["agent", "--api-key", "sk-123", "--token=abc"]
        with mock.patch.object(sys, "argv", argv):
            start = serialize_session_start(ctx, cfg).data.to_dict()
        self.assertEqual(start["argv"], argv)

    def test_session_context_can_be_omitted(self) -> None:
        cfg = _config(include_session_context=False)
        record = serialize_tool_event(ToolCall("bash", {}, "s1"), "before", cfg)
        self.assertIsNone(record.session_id)
        self.assertNotIn("session_id", record.to_dict())

    def test_timestamp_modes(self) -> None:
        epoch = serialize_tool_event(ToolCall("bash"), "before", _config(timestamp_format="epoch"))
        self.assertIsInstance(epoch.timestamp, int)
        iso = serialize_tool_event(ToolCall("bash"), "before", _config(timestamp_format="iso"))
        self.assertTrue(iso.timestamp.endswith("Z"))
        local = serialize_tool_event(ToolCall("bash"), "before", _config(timestamp_format="local"))
        self.assertIsInstance(local.timestamp, str)

    def test_error_from_exception(self) -> None:
        try:
            raise ValueError("boom")
        except ValueError as exc:
            event = ErrorEvent.from_exception(exc, "hook:tool.execute.after", "s1")
        record = serialize_error(event, _config())
        data = record.data.to_dict()
        self.assertEqual(record.kind, RecordKind.ERROR)
        self.assertEqual(data["error_name"], "ValueError")
        self.assertEqual(data["error_message"], "boom")
        self.assertIn("Traceback", data["error_stack"])

    def test_dispatch_fills_session(self) -> None:
        cfg = _config()
        record = serialize(ToolCall("bash", {"a": 1}), cfg, direction="after", session_id="s7")
        self.assertEqual(record.session_id, "s7")
        self.assertEqual(record.data.to_dict()["direction"], "after")
        ctx = ClientContext(session_id="s8")
        self.assertEqual(serialize(SessionStart(ctx), cfg).session_id, "s8")
        self.assertEqual(serialize(SessionEnd(ctx, 0), cfg).data.to_dict()["event"], "session_end")
        self.assertIsNone(serialize(object(), cfg))  # type: ignore[arg-type]

    def test_malformed_host_input_is_tolerated(self) -> None:
        ctx = ClientContext.from_host({"session": None, "model": {"name": None}})
        self.assertIsNone(ctx.session_id)
        self.assertIsNone(ctx.model_name)
        llm = LlmEvent.from_host({"model": "m", "latency": 40})
        self.assertEqual(llm.event_type, "completion")
        self.assertEqual(llm.latency_ms, 40)
        self.assertFalse(ToolCall("bash", result="plain text").failed)


if __name__ == "__main__":
    unittest.main()
