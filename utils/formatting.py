"""
Shared formatting helpers for ladder match displays.
"""

from collections.abc import Iterable

from domain.models.match import ChatMessage, Match, MatchStatus, RosterEntry

STATUS_EMOJIS = {
    MatchStatus.PENDING: "🟡",
    MatchStatus.ACCEPTED: "🔵",
    MatchStatus.IN_PROGRESS: "🟢",
    MatchStatus.COMPLETED: "🏁",
    MatchStatus.DISPUTED: "⚖️",
    MatchStatus.CANCELLED: "⛔",
    MatchStatus.EXPIRED: "⌛",
}

MODE_NAMES = {
    "hardcore": "Hardcore",
    "cdl": "CDL",
}

HELPER_MARK = "🤝"


def format_status(status: MatchStatus) -> str:
    """Return status with emoji (e.g., '🟢 In Progress')."""
    label = status.value.replace("_", " ").title()
    return f"{STATUS_EMOJIS.get(status, '')} {label}".strip()


def format_countdown(wait: dict) -> str:
    """
    Human countdown from a remaining-wait payload.

    Uses hours/minutes when present; otherwise derives them from remaining_seconds.
    """
    if "hours" in wait and "minutes" in wait:
        hours, minutes = int(wait["hours"]), int(wait["minutes"])
    else:
        total_minutes = -(-int(wait.get("remaining_seconds", 0)) // 60)
        hours, minutes = divmod(total_minutes, 60)
    if hours and minutes:
        return f"in {hours}h {minutes}m"
    if hours:
        return f"in {hours}h"
    if minutes:
        return f"in {minutes}m"
    return "now"


def format_roster(roster: Iterable[RosterEntry]) -> str:
    """One line per player; helpers are marked."""
    lines = []
    for entry in roster:
        line = f"<@{entry.player_id}>" if entry.player_id > 0 else entry.display_name
        if entry.is_helper:
            line += f" {HELPER_MARK}"
        lines.append(line)
    return "\n".join(lines) if lines else "No roster"


def format_matchup(match: Match, squad_names: dict[int, str]) -> str:
    """'Alpha vs Bravo' or 'Alpha vs ?' while waiting for an opponent."""
    challenger = squad_names.get(match.challenger_id, f"Squad #{match.challenger_id}")
    if match.opponent_id is None:
        return f"{challenger} vs ?"
    opponent = squad_names.get(match.opponent_id, f"Squad #{match.opponent_id}")
    return f"{challenger} vs {opponent}"


def format_match_line(match: Match, squad_names: dict[int, str]) -> str:
    """Compact single-line summary used in match lists."""
    when = f"<t:{match.scheduled_at}:f>" if match.scheduled_at else "Ready now"
    mode = MODE_NAMES.get(match.mode.value, match.mode.value)
    return (
        f"`#{match.match_id}` {format_status(match.status)} "
        f"{format_matchup(match, squad_names)} | {match.team_size}v{match.team_size} "
        f"{mode} {match.game_mode} | {when}"
    )


def format_score(match: Match) -> str | None:
    result = match.result
    if result.challenger_score is None or result.opponent_score is None:
        return None
    return f"{result.challenger_score} - {result.opponent_score}"


def format_chat_line(entry: ChatMessage, squad_names: dict[int, str]) -> str:
    """'<t:...:t> [Alpha] Name: text', with staff lines tagged."""
    if entry.is_staff:
        side = "Staff"
    elif entry.squad_id is not None:
        side = squad_names.get(entry.squad_id, f"Squad #{entry.squad_id}")
    else:
        side = "?"
    author = entry.author_name or f"<@{entry.author_id}>"
    return f"<t:{entry.created_at}:t> [{side}] **{author}**: {entry.message}"


def format_player_result_line(match: Match, player_id: int, squad_names: dict[int, str]) -> str:
    """Match line from one player's point of view: W/L, their squad and the opponent."""
    squad_id = match.squad_of_player(player_id)
    won = squad_id is not None and match.result.winner == squad_id
    other = match.other_squad(squad_id) if squad_id is not None else None
    played_for = squad_names.get(squad_id, f"Squad #{squad_id}")
    against = squad_names.get(other, f"Squad #{other}") if other is not None else "?"
    score = format_score(match)
    return (
        f"`#{match.match_id}` {'✅ W' if won else '❌ L'} | {played_for} vs {against}"
        + (f" ({score})" if score else "")
        + f" | {match.game_mode}"
    )
