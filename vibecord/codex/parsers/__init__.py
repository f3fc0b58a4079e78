"""
Codex output parsers.

Codex output comes in two shapes:
- Plain text with an "assistant" section marker (batch mode)
- JSONL events, top-level or wrapped in "payload" (--json and session logs)
"""

from vibecord.codex.parsers.base import (
    ContextWindowSnapshot,
    Credits,
    RateLimitSnapshot,
    RateLimitWindow,
    TurnResult,
)
from vibecord.codex.parsers.codex import (
    build_failure_message,
    failure_detail,
    parse_context_window,
    parse_json_line,
    parse_rate_limits,
    parse_reply,
    parse_reply_from_events,
    parse_thread_id,
    read_reply,
)

__all__ = [
    "ContextWindowSnapshot",
    "Credits",
    "RateLimitSnapshot",
    "RateLimitWindow",
    "TurnResult",
    "build_failure_message",
    "failure_detail",
    "parse_context_window",
    "parse_json_line",
    "parse_rate_limits",
    "parse_reply",
    "parse_reply_from_events",
    "parse_thread_id",
    "read_reply",
]
