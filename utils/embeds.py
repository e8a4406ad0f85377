"""
Reusable Discord embed builders for ladder matches.
"""

import discord

from domain.models.match import ChatMessage, Match, MatchStatus
from domain.models.rewards import RewardLedger
from domain.models.squad import Ladder, LadderStanding
from utils.embed_safety import join_lines_within, truncate_field
from utils.formatting import (
    MODE_NAMES,
    format_chat_line,
    format_match_line,
    format_matchup,
    format_player_result_line,
    format_roster,
    format_score,
    format_status,
)

STATUS_COLORS = {
    MatchStatus.PENDING: discord.Color.gold(),
    MatchStatus.ACCEPTED: discord.Color.blue(),
    MatchStatus.IN_PROGRESS: discord.Color.green(),
    MatchStatus.COMPLETED: discord.Color.dark_green(),
    MatchStatus.DISPUTED: discord.Color.orange(),
    MatchStatus.CANCELLED: discord.Color.dark_grey(),
    MatchStatus.EXPIRED: discord.Color.light_grey(),
}


def create_match_embed(match: Match, squad_names: dict[int, str]) -> discord.Embed:
    """Full match card: matchup, timing, rosters, maps and result."""
    mode = MODE_NAMES.get(match.mode.value, match.mode.value)
    embed = discord.Embed(
        title=truncate_field(f"Match #{match.match_id}: {format_matchup(match, squad_names)}", 256),
        description=(
            f"{format_status(match.status)} | {match.team_size}v{match.team_size} "
            f"{mode} {match.game_mode} on `{match.ladder_id}`"
        ),
        color=STATUS_COLORS.get(match.status, discord.Color.blue()),
    )

    if match.scheduled_at:
        embed.add_field(name="Scheduled", value=f"<t:{match.scheduled_at}:f>", inline=True)
    elif match.status == MatchStatus.PENDING:
        embed.add_field(name="Type", value="Ready match", inline=True)

    if match.maps:
        embed.add_field(name="Maps", value=truncate_field(", ".join(match.maps)), inline=True)

    if match.host_team is not None:
        host = squad_names.get(match.host_team, f"Squad #{match.host_team}")
        code = f" | Code: `{match.game_code}`" if match.game_code else ""
        embed.add_field(name="Host", value=f"{host}{code}", inline=True)

    challenger = squad_names.get(match.challenger_id, f"Squad #{match.challenger_id}")
    embed.add_field(
        name=truncate_field(challenger, 256),
        value=truncate_field(format_roster(match.challenger_roster)),
        inline=True,
    )
    if match.opponent_id is not None:
        opponent = squad_names.get(match.opponent_id, f"Squad #{match.opponent_id}")
        embed.add_field(
            name=truncate_field(opponent, 256),
            value=truncate_field(format_roster(match.opponent_roster)),
            inline=True,
        )

    score = format_score(match)
    if match.result.winner is not None:
        winner = squad_names.get(match.result.winner, f"Squad #{match.result.winner}")
        state = "Winner" if match.status == MatchStatus.COMPLETED else "Reported winner"
        value = winner if score is None else f"{winner} ({score})"
        embed.add_field(name=state, value=value, inline=False)

    if match.status == MatchStatus.DISPUTED:
        embed.add_field(
            name="Dispute",
            value=truncate_field(
                f"{match.dispute.reason}\nEvidence items: {len(match.dispute.evidence)}"
            ),
            inline=False,
        )

    if match.cancel_requests and match.status != MatchStatus.CANCELLED:
        requested = ", ".join(
            squad_names.get(sid, f"Squad #{sid}") for sid in sorted(match.cancel_requests)
        )
        embed.add_field(name="Cancel requested by", value=requested, inline=False)

    embed.set_footer(text=f"Match ID {match.match_id}")
    return embed


def create_match_list_embed(
    title: str, matches: list[Match], squad_names: dict[int, str], empty_text: str = "No matches."
) -> discord.Embed:
    embed = discord.Embed(title=title, color=discord.Color.blue())
    lines = [format_match_line(m, squad_names) for m in matches]
    embed.description = join_lines_within(lines, 4096) if lines else empty_text
    return embed


def create_leaderboard_embed(
    ladder: Ladder, standings: list[LadderStanding], squad_names: dict[int, str]
) -> discord.Embed:
    embed = discord.Embed(title=f"🏆 {ladder.name} Leaderboard", color=discord.Color.gold())
    if not standings:
        embed.description = "No squads registered yet."
        return embed
    lines = []
    for rank, standing in enumerate(standings, 1):
        name = squad_names.get(standing.squad_id, f"Squad #{standing.squad_id}")
        lines.append(
            f"**{rank}.** {name} | {standing.points} pts | "
            f"{standing.wins}W-{standing.losses}L"
        )
    embed.description = join_lines_within(lines, 4096)
    return embed


def create_rewards_embed(ledger: RewardLedger, squad_names: dict[int, str]) -> discord.Embed:
    """Summary of a distributed reward ledger."""
    winner = squad_names.get(ledger.winner_id, f"Squad #{ledger.winner_id}")
    loser = squad_names.get(ledger.loser_id, f"Squad #{ledger.loser_id}")
    embed = discord.Embed(
        title=f"Rewards for Match #{ledger.match_id}", color=discord.Color.dark_green()
    )
    for label, side, name in (("🥇", "winner", winner), ("🥈", "loser", loser)):
        ladder_change = ledger.ladder_points.get(side)
        squad_change = ledger.squad_points.get(side)
        parts = []
        if ladder_change is not None:
            sign = "+" if side == "winner" else "-"
            parts.append(f"Ladder: {sign}{ladder_change.applied} ({ladder_change.after})")
        if squad_change is not None:
            sign = "+" if side == "winner" else "-"
            parts.append(f"Squad: {sign}{squad_change.applied} ({squad_change.after})")
        embed.add_field(
            name=f"{label} {name}", value="\n".join(parts) or "No point change", inline=True
        )
    players = [
        f"<@{p.player_id}> +{p.currency} coins" + (f", +{p.xp} XP" if p.xp else "")
        for p in ledger.players
    ]
    if players:
        embed.add_field(name="Players", value=join_lines_within(players), inline=False)
    return embed


def create_match_chat_embed(
    match_id: int, messages: list[ChatMessage], squad_names: dict[int, str], limit: int = 15
) -> discord.Embed:
    """The latest chat lines of a match, oldest at the top."""
    embed = discord.Embed(title=f"💬 Match #{match_id} Chat", color=discord.Color.blurple())
    recent = messages[-limit:] if limit else messages
    lines = [truncate_field(format_chat_line(entry, squad_names), 260) for entry in recent]
    embed.description = join_lines_within(lines, 4096) if lines else "No messages yet."
    if len(messages) > len(recent):
        embed.set_footer(text=f"Showing the last {len(recent)} of {len(messages)} messages")
    return embed


def create_player_history_embed(
    player_name: str, player_id: int, matches: list[Match], squad_names: dict[int, str]
) -> discord.Embed:
    wins = sum(1 for m in matches if m.result.winner == m.squad_of_player(player_id))
    embed = discord.Embed(
        title=truncate_field(f"📜 {player_name}: Match History", 256), color=discord.Color.blue()
    )
    if not matches:
        embed.description = "No completed ladder matches yet."
        return embed
    lines = [format_player_result_line(m, player_id, squad_names) for m in matches]
    embed.description = join_lines_within(lines, 4096)
    embed.set_footer(text=f"{wins}W-{len(matches) - wins}L in the last {len(matches)} matches")
    return embed
