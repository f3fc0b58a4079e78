"""
Unit Tests: Codex output parsers.

Covers plain-text replies, JSONL events (top-level and payload-wrapped),
rate limits, context window and failure messages.
"""

import json

from vibecord.codex.executor import ProcessResult


def _jsonl(*events):
    return "\n".join(json.dumps(event) for event in events)


def _token_count(rate_limits=None, info=None, wrapped=False):
    body = {"type": "token_count"}
    if rate_limits is not None:
        body["rate_limits"] = rate_limits
    if info is not None:
        body["info"] = info
    if wrapped:
        return {"type": "event_msg", "payload": body}
    return body


class TestParseJsonLine:
    """Tests for single-line JSON detection."""

    def test_object_line_decoded(self):
        from vibecord.codex.parsers import parse_json_line

        assert parse_json_line('  {"type": "x"}  ') == {"type": "x"}

    def test_non_object_lines_ignored(self):
        from vibecord.codex.parsers import parse_json_line

        assert parse_json_line("[1, 2]") is None
        assert parse_json_line("plain text") is None
        assert parse_json_line("{not json}") is None
        assert parse_json_line("") is None


class TestParseThreadId:
    """Tests for thread id extraction."""

    def test_thread_started_event(self):
        from vibecord.codex.parsers import parse_thread_id

        output = _jsonl({"type": "thread.started", "thread_id": "t-1"})
        assert parse_thread_id(output) == "t-1"

    def test_last_thread_started_wins(self):
        from vibecord.codex.parsers import parse_thread_id

        output = _jsonl(
            {"type": "thread.started", "thread_id": "t-1"},
            {"type": "thread.started", "thread_id": "t-2"},
        )
        assert parse_thread_id(output) == "t-2"

    def test_blank_thread_id_does_not_override(self):
        from vibecord.codex.parsers import parse_thread_id

        output = _jsonl(
            {"type": "thread.started", "thread_id": "t-1"},
            {"type": "thread.started", "thread_id": "   "},
        )
        assert parse_thread_id(output) == "t-1"

    def test_falls_back_to_session_id_banner(self):
        from vibecord.codex.parsers import parse_thread_id

        output = (
            "OpenAI Codex v0.1\n"
            "Session ID: 0199A2B3-1234-4abc-8def-0123456789ab\n"
            "--------\n"
        )
        assert parse_thread_id(output) == "0199A2B3-1234-4abc-8def-0123456789ab"

    def test_event_takes_precedence_over_banner(self):
        from vibecord.codex.parsers import parse_thread_id

        output = (
            "session id: 11111111-2222-3333-4444-555555555555\n"
            + _jsonl({"type": "thread.started", "thread_id": "from-event"})
        )
        assert parse_thread_id(output) == "from-event"

    def test_no_thread_id(self):
        from vibecord.codex.parsers import parse_thread_id

        assert parse_thread_id("nothing here") is None


class TestParseReply:
    """Tests for plain-text reply extraction."""

    def test_text_after_assistant_marker(self):
        from vibecord.codex.parsers import parse_reply

        output = "user\nhi\nassistant\nHello there\n"
        assert parse_reply(output) == "Hello there"

    def test_last_marker_wins(self):
        from vibecord.codex.parsers import parse_reply

        output = "assistant\nfirst\nuser\nmore\nassistant\nsecond"
        assert parse_reply(output) == "second"

    def test_carriage_returns_stripped(self):
        from vibecord.codex.parsers import parse_reply

        output = "thinking\r\nassistant\r\nDone.\r\n"
        assert parse_reply(output) == "Done."

    def test_output_starting_with_marker(self):
        from vibecord.codex.parsers import parse_reply

        assert parse_reply("assistant\nOnly reply") == "Only reply"

    def test_no_marker(self):
        from vibecord.codex.parsers import parse_reply

        assert parse_reply("no assistant section") is None
        assert parse_reply("") is None

    def test_empty_reply_after_marker(self):
        from vibecord.codex.parsers import parse_reply

        assert parse_reply("user\nhi\nassistant\n   ") is None


class TestReadReply:
    """Tests for the --output-last-message file fallback."""

    def test_prefers_output_file(self, tmp_path):
        from vibecord.codex.parsers import read_reply

        output_file = tmp_path / "reply.txt"
        output_file.write_text("  From file  \n")

        assert read_reply(output_file, "assistant\nFrom stream") == "From file"

    def test_falls_back_when_file_missing(self, tmp_path):
        from vibecord.codex.parsers import read_reply

        missing = tmp_path / "missing.txt"
        assert read_reply(missing, "assistant\nFrom stream") == "From stream"

    def test_falls_back_when_file_blank(self, tmp_path):
        from vibecord.codex.parsers import read_reply

        output_file = tmp_path / "reply.txt"
        output_file.write_text("\n\n")

        assert read_reply(output_file, "x\nassistant\nFrom stream") == "From stream"


class TestParseReplyFromEvents:
    """Tests for structured (JSONL) reply extraction."""

    def test_agent_message_event(self):
        from vibecord.codex.parsers import parse_reply_from_events

        output = _jsonl({"type": "agent_message", "message": "Hi!"})
        assert parse_reply_from_events(output) == "Hi!"

    def test_payload_wrapped_assistant_message(self):
        from vibecord.codex.parsers import parse_reply_from_events

        output = _jsonl(
            {
                "type": "response_item",
                "payload": {
                    "type": "message",
                    "role": "assistant",
                    "content": [
                        {"type": "output_text", "text": "Line one"},
                        {"type": "reasoning", "text": "ignored"},
                        {"type": "text", "output_text": "Line two"},
                    ],
                },
            }
        )
        assert parse_reply_from_events(output) == "Line one\nLine two"

    def test_user_messages_ignored(self):
        from vibecord.codex.parsers import parse_reply_from_events

        output = _jsonl(
            {
                "type": "message",
                "role": "user",
                "content": [{"type": "input_text", "text": "question"}],
            }
        )
        assert parse_reply_from_events(output) is None

    def test_last_reply_wins(self):
        from vibecord.codex.parsers import parse_reply_from_events

        output = _jsonl(
            {"type": "agent_message", "message": "first"},
            {"type": "event_msg", "payload": {"type": "agent_message", "message": "second"}},
        )
        assert parse_reply_from_events(output) == "second"

    def test_non_json_lines_skipped(self):
        from vibecord.codex.parsers import parse_reply_from_events

        output = "garbage\n" + _jsonl({"type": "agent_message", "message": "ok"}) + "\n{bad"
        assert parse_reply_from_events(output) == "ok"


class TestParseRateLimits:
    """Tests for rate-limit extraction from token_count events."""

    def test_top_level_token_count(self):
        from vibecord.codex.parsers import parse_rate_limits

        output = _jsonl(
            _token_count(
                rate_limits={
                    "limit_id": "codex",
                    "primary": {
                        "used_percent": 40,
                        "window_minutes": 300,
                        "resets_at": 1760000000,
                    },
                    "credits": {"has_credits": True, "unlimited": False, "balance": 12.5},
                    "plan_type": "pro",
                }
            )
        )

        snapshot = parse_rate_limits(output)

        assert snapshot.limit_id == "codex"
        assert snapshot.primary.used_percent == 40
        assert snapshot.primary.window_minutes == 300
        assert snapshot.secondary is None
        assert snapshot.credits.has_credits is True
        assert snapshot.credits.balance == 12.5
        assert snapshot.plan_type == "pro"

    def test_last_snapshot_wins(self):
        from vibecord.codex.parsers import parse_rate_limits

        window = {"window_minutes": 300, "resets_at": 1760000000}
        output = _jsonl(
            _token_count(rate_limits={"primary": {**window, "used_percent": 40}}),
            _token_count(
                rate_limits={"primary": {**window, "used_percent": 45}}, wrapped=True
            ),
        )

        assert parse_rate_limits(output).primary.used_percent == 45

    def test_invalid_sub_objects_omitted(self):
        from vibecord.codex.parsers import parse_rate_limits

        output = _jsonl(
            _token_count(
                rate_limits={
                    "primary": {"used_percent": "40", "window_minutes": 300, "resets_at": 1},
                    "secondary": {"used_percent": 10, "window_minutes": 10080, "resets_at": 2},
                    "credits": {"has_credits": 1, "unlimited": False},
                }
            )
        )

        snapshot = parse_rate_limits(output)

        assert snapshot.primary is None
        assert snapshot.secondary.used_percent == 10
        assert snapshot.credits is None

    def test_bool_is_not_a_number(self):
        from vibecord.codex.parsers import parse_rate_limits

        output = _jsonl(
            _token_count(
                rate_limits={
                    "primary": {"used_percent": True, "window_minutes": 300, "resets_at": 1}
                }
            )
        )
        assert parse_rate_limits(output) is None

    def test_empty_snapshot_does_not_replace_earlier_one(self):
        from vibecord.codex.parsers import parse_rate_limits

        output = _jsonl(
            _token_count(rate_limits={"plan_type": "plus"}),
            _token_count(rate_limits={"primary": None}),
        )
        assert parse_rate_limits(output).plan_type == "plus"

    def test_no_token_count_events(self):
        from vibecord.codex.parsers import parse_rate_limits

        assert parse_rate_limits(_jsonl({"type": "agent_message", "message": "x"})) is None


class TestParseContextWindow:
    """Tests for context window computation."""

    def _info(self, total_tokens, max_tokens):
        return {
            "model_context_window": max_tokens,
            "total_token_usage": {"total_tokens": total_tokens},
        }

    def test_percent_left(self):
        from vibecord.codex.parsers import parse_context_window

        snapshot = parse_context_window(_jsonl(_token_count(info=self._info(250, 1000))))

        assert snapshot.used_tokens == 250
        assert snapshot.max_tokens == 1000
        assert snapshot.percent_left == 75

    def test_usage_clamped_to_window(self):
        from vibecord.codex.parsers import parse_context_window

        snapshot = parse_context_window(
            _jsonl(_token_count(info=self._info(1500, 1000), wrapped=True))
        )

        assert snapshot.used_tokens == 1000
        assert snapshot.percent_left == 0

    def test_non_positive_window_ignored(self):
        from vibecord.codex.parsers import parse_context_window

        assert parse_context_window(_jsonl(_token_count(info=self._info(10, 0)))) is None

    def test_last_event_wins(self):
        from vibecord.codex.parsers import parse_context_window

        output = _jsonl(
            _token_count(info=self._info(100, 1000)),
            _token_count(info=self._info(500, 1000)),
        )
        assert parse_context_window(output).percent_left == 50


class TestFailureMessage:
    """Tests for non-zero exit summaries."""

    def test_last_stderr_line(self):
        from vibecord.codex.parsers import build_failure_message

        result = ProcessResult(exit_code=2, stdout="out", stderr="warn\nfatal: boom\n\n")
        assert build_failure_message(result) == "Codex command failed (exit 2): fatal: boom"

    def test_falls_back_to_stdout(self):
        from vibecord.codex.parsers import build_failure_message

        result = ProcessResult(exit_code=1, stdout="first\nlast line\n", stderr="  \n")
        assert build_failure_message(result) == "Codex command failed (exit 1): last line"

    def test_no_output(self):
        from vibecord.codex.parsers import build_failure_message

        result = ProcessResult(exit_code=3, stdout="", stderr="")
        assert (
            build_failure_message(result)
            == "Codex command failed (exit 3): Codex command failed."
        )

    def test_matches_raised_error(self):
        from vibecord.codex.parsers import build_failure_message, failure_detail
        from vibecord.errors import ExternalCommandFailed

        result = ProcessResult(exit_code=5, stdout="", stderr="denied")
        error = ExternalCommandFailed(result.exit_code, failure_detail(result))
        assert build_failure_message(result) == str(error)
