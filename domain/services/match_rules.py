"""
Pure rules for the ladder match state machine.

Nothing here touches storage or the clock; callers pass `now`.
"""

import math

from domain.models.match import Match, MatchStatus
from domain.models.rewards import PointChange

ALLOWED_TRANSITIONS: dict[MatchStatus, frozenset[MatchStatus]] = {
    MatchStatus.PENDING: frozenset(
        {MatchStatus.ACCEPTED, MatchStatus.IN_PROGRESS, MatchStatus.CANCELLED, MatchStatus.EXPIRED}
    ),
    MatchStatus.ACCEPTED: frozenset(
        {
            MatchStatus.IN_PROGRESS,
            MatchStatus.COMPLETED,
            MatchStatus.DISPUTED,
            MatchStatus.CANCELLED,
        }
    ),
    MatchStatus.IN_PROGRESS: frozenset(
        {MatchStatus.COMPLETED, MatchStatus.DISPUTED, MatchStatus.CANCELLED}
    ),
    # Staff only: reversal, override winner, override cancel
    MatchStatus.DISPUTED: frozenset(
        {MatchStatus.IN_PROGRESS, MatchStatus.COMPLETED, MatchStatus.CANCELLED}
    ),
    MatchStatus.COMPLETED: frozenset(),
    MatchStatus.CANCELLED: frozenset(),
    MatchStatus.EXPIRED: frozenset(),
}


def can_transition(current: MatchStatus, target: MatchStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def expires_at(match: Match, ready_expiry_seconds: int) -> int:
    """When a pending match stops being acceptable."""
    if match.scheduled_at is not None:
        return match.scheduled_at
    created = match.ready_created_at if match.ready_created_at is not None else match.created_at
    return created + ready_expiry_seconds


def is_expired(match: Match, now: int, ready_expiry_seconds: int) -> bool:
    """Only pending matches expire; the boundary instant itself is still valid."""
    if match.status != MatchStatus.PENDING:
        return False
    return now > expires_at(match, ready_expiry_seconds)


def remaining_wait(until: int, now: int) -> dict[str, int]:
    """
    Structured countdown for temporal rejections.

    Minutes are rounded up so a caller never shows "0m" while still blocked.
    """
    remaining_seconds = max(0, until - now)
    total_minutes = math.ceil(remaining_seconds / 60)
    return {
        "remaining_seconds": remaining_seconds,
        "hours": total_minutes // 60,
        "minutes": total_minutes % 60,
        "available_at": until,
    }


def cooldown_ends_at(last_accepted_at: int | None, cooldown_seconds: int) -> int | None:
    if last_accepted_at is None:
        return None
    return last_accepted_at + cooldown_seconds


def windows_overlap(first: int, second: int, window_seconds: int) -> bool:
    return abs(first - second) < window_seconds


def clamp_decrement(current: int, requested: int) -> PointChange:
    """
    Subtract `requested` from `current` without going below zero.

    The applied amount is what actually moved, never the raw request.
    """
    requested = max(0, requested)
    after = max(0, current - requested)
    return PointChange(requested=requested, applied=current - after, before=current, after=after)


def apply_increment(current: int, amount: int) -> PointChange:
    amount = max(0, amount)
    return PointChange(requested=amount, applied=amount, before=current, after=current + amount)


def winner_from_scores(match: Match, challenger_score: int, opponent_score: int) -> int | None:
    if challenger_score == opponent_score or match.opponent_id is None:
        return None
    return match.challenger_id if challenger_score > opponent_score else match.opponent_id
