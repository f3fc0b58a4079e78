"""
Base types for Codex output parsing.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RateLimitWindow:
    """One usage window reported by Codex."""

    used_percent: float
    """Share of the window already consumed, 0-100"""

    window_minutes: float
    """Window length in minutes"""

    resets_at: float
    """Reset time in epoch seconds"""


@dataclass(frozen=True)
class Credits:
    """Credit balance attached to a rate-limit snapshot."""

    has_credits: bool
    unlimited: bool
    balance: Optional[float] = None


@dataclass(frozen=True)
class RateLimitSnapshot:
    """
    Usage limits observed in a token_count event.

    Only the most recent snapshot in an event stream is kept.
    """

    limit_id: Optional[str] = None
    limit_name: Optional[str] = None
    primary: Optional[RateLimitWindow] = None
    secondary: Optional[RateLimitWindow] = None
    credits: Optional[Credits] = None
    plan_type: Optional[str] = None


@dataclass(frozen=True)
class ContextWindowSnapshot:
    """Context window utilization derived from raw token counters."""

    used_tokens: float
    max_tokens: float
    percent_left: float


@dataclass(frozen=True)
class TurnResult:
    """Outcome of one successful exchange with Codex."""

    thread_id: str
    reply: str
    rate_limits: Optional[RateLimitSnapshot] = None
    context_window: Optional[ContextWindowSnapshot] = None
