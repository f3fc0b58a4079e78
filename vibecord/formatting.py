"""
Message rendering for replies, usage limits and session listings.

Output uses Discord markdown: inline code for ids, <t:epoch:f> timestamps and
the "-#" subtext prefix for the context footer.
"""

import math
import re
from typing import Dict, List, Optional, Sequence

from vibecord.codex.parsers import (
    ContextWindowSnapshot,
    RateLimitSnapshot,
    RateLimitWindow,
)
from vibecord.session.types import SessionRecord

MESSAGE_LIMIT = 1900
CLIP_LENGTH = 1850
TRUNCATION_SUFFIX = "\n... output truncated ..."

_BACKTICKED_TIMESTAMP = re.compile(r"`(<t:\d{10}:[A-Za-z]>)`")


def clip_message(content: str) -> str:
    """Keep a message under the platform's length limit."""
    if len(content) <= MESSAGE_LIMIT:
        return content
    return content[:CLIP_LENGTH] + TRUNCATION_SUFFIX


def clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, value))


def _round_half_up(value: float, digits: int = 0) -> float:
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def format_percent(value: float) -> str:
    """One decimal place, dropped when the value is whole: 42% or 42.5%."""
    rounded = _round_half_up(value, 1)
    if rounded.is_integer():
        return f"{int(rounded)}%"
    return f"{rounded:.1f}%"


def format_rate_limit_window(label: str, window: RateLimitWindow) -> str:
    used = clamp_percent(window.used_percent)
    remaining = clamp_percent(100 - used)
    reset_at = int(window.resets_at)

    return (
        f"{label}: {format_percent(used)} used"
        f" ({format_percent(remaining)} remaining),"
        f" window {_format_number(window.window_minutes)}m,"
        f" resets <t:{reset_at}:f> (<t:{reset_at}:R>)"
    )


def format_rate_limit_summary(rate_limits: Optional[RateLimitSnapshot]) -> Optional[str]:
    """Render usage limits line by line; None if there is nothing to show."""
    if rate_limits is None:
        return None

    lines: List[str] = []

    if rate_limits.limit_id:
        lines.append(f"Limit ID: `{rate_limits.limit_id}`")

    if rate_limits.primary:
        lines.append(format_rate_limit_window("Primary", rate_limits.primary))

    if rate_limits.secondary:
        lines.append(format_rate_limit_window("Secondary", rate_limits.secondary))

    if rate_limits.credits:
        credits = rate_limits.credits
        balance = "n/a" if credits.balance is None else _format_number(credits.balance)
        lines.append(
            f"Credits: has_credits={str(credits.has_credits).lower()},"
            f" unlimited={str(credits.unlimited).lower()}, balance={balance}"
        )

    if rate_limits.plan_type:
        lines.append(f"Plan type: {rate_limits.plan_type}")

    return "\n".join(lines) if lines else None


def format_context_window_footer(
    context_window: Optional[ContextWindowSnapshot],
) -> Optional[str]:
    if context_window is None:
        return None
    percent_left = int(_round_half_up(clamp_percent(context_window.percent_left)))
    return f"-# {percent_left}% context left"


def strip_backticks_around_timestamps(content: str) -> str:
    # Timestamps inside inline code are not rendered
    return _BACKTICKED_TIMESTAMP.sub(r"\1", content)


def format_status_message(
    session_id: str,
    reply: str,
    rate_limits: Optional[RateLimitSnapshot] = None,
    context_window: Optional[ContextWindowSnapshot] = None,
) -> str:
    sections = [f"Session `{session_id}` status:\n{reply}"]

    usage_summary = format_rate_limit_summary(rate_limits)
    if usage_summary:
        sections.append(f"Usage limits:\n{usage_summary}")

    footer = format_context_window_footer(context_window)
    if footer:
        sections.append(footer)

    return clip_message(strip_backticks_around_timestamps("\n\n".join(sections)))


def format_session_list(
    sessions: Sequence[SessionRecord],
    focused_session_id: Optional[str] = None,
    project_filter: Optional[str] = None,
) -> str:
    """Sessions grouped by project, projects in path order."""
    if not sessions:
        suffix = f" for project `{project_filter}`" if project_filter else ""
        return f"No sessions found{suffix}."

    grouped: Dict[str, List[SessionRecord]] = {}
    for session in sessions:
        grouped.setdefault(session.project_path, []).append(session)

    lines: List[str] = []
    if focused_session_id:
        lines.append(f"Focused session: `{focused_session_id}`")
        lines.append("")

    for project_path in sorted(grouped):
        lines.append(f"Project: `{project_path}`")
        for session in grouped[project_path]:
            focus_tag = " [focused]" if session.id == focused_session_id else ""
            channel_tag = f" <#{session.channel_id}>" if session.channel_id else ""
            lines.append(f"- `{session.id}`{focus_tag}: {session.title}{channel_tag}")
        lines.append("")

    return clip_message("\n".join(lines).rstrip())
