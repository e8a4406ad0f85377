"""
Standard error codes for service layer.

These error codes allow command handlers to programmatically handle
specific error conditions without parsing error message text.

Every code belongs to one category:
    precondition - the request is not allowed for this actor/match
    temporal     - the request is allowed, but not right now (carries wait data)
    conflict     - the request was valid but the match moved under the actor
    dependency   - a collaborator was unavailable; the action failed closed

Usage:
    from services.error_codes import NOT_REGISTERED, REMATCH_COOLDOWN
    from services.result import Result

    if not registry.is_registered(squad_id, ladder_id):
        return Result.fail("Squad is not registered", code=NOT_REGISTERED)
"""

# General errors
NOT_FOUND = "not_found"
VALIDATION_ERROR = "validation_error"
PERMISSION_DENIED = "permission_denied"
RATE_LIMITED = "rate_limited"

# Squad/ladder preconditions
SQUAD_NOT_FOUND = "squad_not_found"
NOT_SQUAD_MEMBER = "not_squad_member"
NOT_REGISTERED = "not_registered"
ALREADY_REGISTERED = "already_registered"
LADDER_NOT_FOUND = "ladder_not_found"
INVALID_TEAM_SIZE = "invalid_team_size"

# Match preconditions
MATCH_NOT_FOUND = "match_not_found"
SELF_CHALLENGE = "self_challenge"
NOT_PARTICIPANT = "not_participant"
INVALID_WINNER = "invalid_winner"
INVALID_STATUS = "invalid_status"
NOT_HOST_TEAM = "not_host_team"
READY_MATCH_EXISTS = "ready_match_exists"
SCHEDULE_CONFLICT = "schedule_conflict"
CANNOT_CONFIRM_OWN_REPORT = "cannot_confirm_own_report"
NO_PENDING_REPORT = "no_pending_report"
EVIDENCE_LIMIT_REACHED = "evidence_limit_reached"
CANCEL_ALREADY_REQUESTED = "cancel_already_requested"

# Temporal violations
MATCH_EXPIRED = "match_expired"
REMATCH_COOLDOWN = "rematch_cooldown"
SCHEDULE_TOO_SOON = "schedule_too_soon"
CANCEL_WINDOW_CLOSED = "cancel_window_closed"

# Conflicts
ALREADY_ACCEPTED = "already_accepted"
ALREADY_RESOLVED = "already_resolved"
CONCURRENT_MODIFICATION = "concurrent_modification"
REWARDS_ALREADY_GIVEN = "rewards_already_given"

# Dependency failures
DEPENDENCY_UNAVAILABLE = "dependency_unavailable"

PRECONDITION = "precondition"
TEMPORAL = "temporal"
CONFLICT = "conflict"
DEPENDENCY = "dependency"

_CATEGORIES: dict[str, str] = {
    MATCH_EXPIRED: TEMPORAL,
    REMATCH_COOLDOWN: TEMPORAL,
    SCHEDULE_TOO_SOON: TEMPORAL,
    CANCEL_WINDOW_CLOSED: TEMPORAL,
    ALREADY_ACCEPTED: CONFLICT,
    ALREADY_RESOLVED: CONFLICT,
    CONCURRENT_MODIFICATION: CONFLICT,
    REWARDS_ALREADY_GIVEN: CONFLICT,
    DEPENDENCY_UNAVAILABLE: DEPENDENCY,
}


def error_category(code: str | None) -> str:
    """Return the category for an error code; unknown codes are preconditions."""
    return _CATEGORIES.get(code or "", PRECONDITION)


def is_temporal(code: str | None) -> bool:
    return error_category(code) == TEMPORAL


def is_conflict(code: str | None) -> bool:
    return error_category(code) == CONFLICT
