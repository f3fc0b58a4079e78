"""
Codex output parsing.

Codex writes either plain text (batch mode without --json) or JSONL events.
Every line is treated independently as "maybe JSON, maybe not"; lines that
fail to decode or fail shape validation are skipped. Events may appear at the
top level or wrapped in a ``payload`` object (session log format):

{"type": "thread.started", "thread_id": "..."}
{"type": "event_msg", "payload": {"type": "token_count", "info": {...}, "rate_limits": {...}}}
{"type": "response_item", "payload": {"type": "message", "role": "assistant", "content": [...]}}

Note: Codex uses thread_id, NOT session_id.

All functions here are pure and never raise on malformed input.
"""

import json
import math
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from vibecord.codex.executor import ProcessResult
from vibecord.codex.parsers.base import (
    ContextWindowSnapshot,
    Credits,
    RateLimitSnapshot,
    RateLimitWindow,
)
from vibecord.errors import ExternalCommandFailed

SESSION_ID_PATTERN = re.compile(
    r"session id:\s*([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})",
    re.IGNORECASE,
)

ASSISTANT_MARKER = "\nassistant\n"


def parse_json_line(line: str) -> Optional[Dict[str, Any]]:
    """Decode a single line if it looks like a JSON object."""
    trimmed = line.strip()
    if not trimmed.startswith("{") or not trimmed.endswith("}"):
        return None

    try:
        parsed = json.loads(trimmed)
    except ValueError:
        return None

    return parsed if isinstance(parsed, dict) else None


def iter_json_events(output: str):
    """Yield every JSON object line in the output, in stream order."""
    for line in output.split("\n"):
        event = parse_json_line(line)
        if event is not None:
            yield event


def parse_thread_id(output: str) -> Optional[str]:
    """
    Extract the Codex thread id.

    The last ``thread.started`` event wins; plain-text ``session id: <uuid>``
    banners are only consulted when no structured event is present.
    """
    thread_id = None
    for event in iter_json_events(output):
        if event.get("type") != "thread.started":
            continue
        candidate = _as_string(event.get("thread_id"))
        if candidate:
            thread_id = candidate

    if thread_id:
        return thread_id

    match = SESSION_ID_PATTERN.search(output)
    if match:
        return match.group(1).strip() or None
    return None


def parse_reply(output: str) -> Optional[str]:
    """Extract the assistant reply from plain-text Codex output."""
    normalized = output.replace("\r", "").strip()
    if not normalized:
        return None

    marker_index = normalized.rfind(ASSISTANT_MARKER)
    if marker_index != -1:
        reply = normalized[marker_index + len(ASSISTANT_MARKER) :].strip()
        return reply or None

    prefix = ASSISTANT_MARKER.lstrip("\n")
    if normalized.startswith(prefix):
        reply = normalized[len(prefix) :].strip()
        return reply or None

    return None


def read_reply(
    output_file: Union[str, Path], combined_output: str
) -> Optional[str]:
    """
    Prefer the --output-last-message file, falling back to stream parsing.

    Older and newer CLI versions differ in whether they write the file.
    """
    try:
        reply = Path(output_file).read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError):
        reply = ""

    if reply:
        return reply

    return parse_reply(combined_output)


def parse_reply_from_events(output: str) -> Optional[str]:
    """Extract the last assistant message from a JSONL event stream."""
    latest_reply = None

    for event in iter_json_events(output):
        reply = _reply_from_event(event)
        if reply is None:
            payload = event.get("payload")
            if isinstance(payload, dict):
                reply = _reply_from_event(payload)
        if reply:
            latest_reply = reply

    return latest_reply


def _reply_from_event(event: Dict[str, Any]) -> Optional[str]:
    event_type = event.get("type")

    if event_type == "agent_message":
        return _as_string(event.get("message"))

    if event_type != "message" or event.get("role") != "assistant":
        return None

    content = event.get("content")
    if not isinstance(content, list):
        return None

    text_parts: List[str] = []
    for item in content:
        if not isinstance(item, dict):
            continue
        item_type = _as_string(item.get("type"))
        text = _as_string(item.get("text")) or _as_string(item.get("output_text"))
        if item_type in ("output_text", "text") and text:
            text_parts.append(text)

    if not text_parts:
        return None

    return "\n".join(text_parts).strip() or None


def parse_rate_limits(output: str) -> Optional[RateLimitSnapshot]:
    """Extract the last valid rate-limit snapshot from token_count events."""
    latest = None

    for event in iter_json_events(output):
        token_count = _token_count_event(event)
        if token_count is None:
            continue
        rate_limits = _normalize_rate_limits(token_count.get("rate_limits"))
        if rate_limits is not None:
            latest = rate_limits

    return latest


def parse_context_window(output: str) -> Optional[ContextWindowSnapshot]:
    """Derive context window utilization from the last token_count event."""
    latest = None

    for event in iter_json_events(output):
        token_count = _token_count_event(event)
        if token_count is None:
            continue

        info = token_count.get("info")
        if not isinstance(info, dict):
            continue

        max_tokens = _as_finite_number(info.get("model_context_window"))
        usage = info.get("total_token_usage")
        total_tokens = (
            _as_finite_number(usage.get("total_tokens"))
            if isinstance(usage, dict)
            else None
        )
        if max_tokens is None or total_tokens is None or max_tokens <= 0:
            continue

        used_tokens = max(0, min(total_tokens, max_tokens))
        percent_left = max(
            0.0, min(100.0, (max_tokens - used_tokens) / max_tokens * 100)
        )
        latest = ContextWindowSnapshot(
            used_tokens=used_tokens,
            max_tokens=max_tokens,
            percent_left=percent_left,
        )

    return latest


def build_failure_message(result: ProcessResult) -> str:
    """Summarize a failed run by its last meaningful line of output."""
    return str(ExternalCommandFailed(result.exit_code, failure_detail(result)))


def failure_detail(result: ProcessResult) -> str:
    """Last non-empty stderr line, else last non-empty stdout line."""
    for stream in (result.stderr, result.stdout):
        lines = [
            line.strip() for line in stream.replace("\r", "").strip().split("\n")
        ]
        lines = [line for line in lines if line]
        if lines:
            return lines[-1]
    return "Codex command failed."


def _token_count_event(event: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Return the token_count body, whether top-level or under payload."""
    if event.get("type") == "token_count":
        return event

    payload = event.get("payload")
    if isinstance(payload, dict) and payload.get("type") == "token_count":
        return payload

    return None


def _normalize_rate_limits(value: Any) -> Optional[RateLimitSnapshot]:
    if not isinstance(value, dict):
        return None

    primary = _normalize_window(value.get("primary"))
    secondary = _normalize_window(value.get("secondary"))
    credits = _normalize_credits(value.get("credits"))
    limit_id = _as_string(value.get("limit_id"))
    limit_name = _as_string(value.get("limit_name"))
    plan_type = _as_string(value.get("plan_type"))

    if not any((primary, secondary, credits, limit_id, limit_name, plan_type)):
        return None

    return RateLimitSnapshot(
        limit_id=limit_id,
        limit_name=limit_name,
        primary=primary,
        secondary=secondary,
        credits=credits,
        plan_type=plan_type,
    )


def _normalize_window(value: Any) -> Optional[RateLimitWindow]:
    if not isinstance(value, dict):
        return None

    used_percent = _as_finite_number(value.get("used_percent"))
    window_minutes = _as_finite_number(value.get("window_minutes"))
    resets_at = _as_finite_number(value.get("resets_at"))

    if used_percent is None or window_minutes is None or resets_at is None:
        return None

    return RateLimitWindow(
        used_percent=used_percent,
        window_minutes=window_minutes,
        resets_at=resets_at,
    )


def _normalize_credits(value: Any) -> Optional[Credits]:
    if not isinstance(value, dict):
        return None

    has_credits = value.get("has_credits")
    unlimited = value.get("unlimited")
    if not isinstance(has_credits, bool) or not isinstance(unlimited, bool):
        return None

    return Credits(
        has_credits=has_credits,
        unlimited=unlimited,
        balance=_as_finite_number(value.get("balance")),
    )


def _as_string(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _as_finite_number(value: Any) -> Optional[float]:
    # bool is an int subclass but never a valid counter
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value
