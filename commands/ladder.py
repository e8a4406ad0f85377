"""
Ladder match commands: /challenge, /accept, /declareresult, /reportscore,
/confirmresult, /cancelmatch, /gamecode, /matchchat, /matches, /mymatches,
/matchhistory, /playerhistory, /ladderboard, /ladderjoin, /ladderleave

Service calls block on SQLite and run in a worker thread.
"""

import asyncio
import functools
import logging
import time

import discord
from discord import app_commands
from discord.ext import commands

from config import (
    CHAT_DISPLAY_LIMIT,
    LEADERBOARD_DEFAULT_LIMIT,
    MATCH_CREATE_RATE_LIMIT,
    MATCH_CREATE_RATE_PER_SECONDS,
    MATCH_EVENTS_CHANNEL_ID,
    MATCH_HISTORY_DEFAULT_LIMIT,
)
from domain.models.match import Match, MatchStatus
from domain.services.match_permissions import Actor, Capability, has_capability
from services import error_codes
from services.permissions import is_staff
from services.result import Result
from utils.command_helpers import handle_result
from utils.embeds import (
    create_leaderboard_embed,
    create_match_chat_embed,
    create_match_embed,
    create_match_list_embed,
    create_player_history_embed,
)
from utils.interaction_safety import safe_defer, safe_followup
from utils.match_event_relay import MatchEventRelay
from utils.rate_limiter import GLOBAL_RATE_LIMITER

logger = logging.getLogger("ladder_bot.commands.ladder")

LADDER_CHOICES = [
    app_commands.Choice(name="Duo/Trio (2-3)", value="duo-trio"),
    app_commands.Choice(name="Squad/Team (4-5)", value="squad-team"),
    app_commands.Choice(name="Ranked (4-5)", value="ranked"),
]

MODE_CHOICES = [
    app_commands.Choice(name="Hardcore", value="hardcore"),
    app_commands.Choice(name="CDL", value="cdl"),
]

MAP_POLICY_CHOICES = [
    app_commands.Choice(name="Fixed map", value="fixed"),
    app_commands.Choice(name="Random maps", value="random"),
]

SIDE_CHOICES = [
    app_commands.Choice(name="Our squad", value="us"),
    app_commands.Choice(name="Their squad", value="them"),
]


class LadderCommands(commands.Cog):
    """Commands for posting, playing and reporting ladder matches."""

    def __init__(
        self,
        bot: commands.Bot,
        lifecycle_service,
        ladder_registry_service,
        squad_repo,
        event_publisher=None,
        events_channel_id: int | None = None,
    ):
        self.bot = bot
        self.lifecycle_service = lifecycle_service
        self.ladder_registry_service = ladder_registry_service
        self.squad_repo = squad_repo
        self.event_publisher = event_publisher
        self.relay = MatchEventRelay(bot, events_channel_id)
        if event_publisher is not None and events_channel_id:
            event_publisher.subscribe(self.relay, topic_prefix="")

    def cog_unload(self):
        if self.event_publisher is not None:
            self.event_publisher.unsubscribe(self.relay)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _actor(self, interaction: discord.Interaction) -> Actor:
        return await asyncio.to_thread(
            functools.partial(
                self.lifecycle_service.resolve_actor,
                interaction.user.id,
                is_staff=is_staff(interaction),
                display_name=getattr(interaction.user, "display_name", str(interaction.user)),
            )
        )

    async def _squad_names(self, matches: list[Match]) -> dict[int, str]:
        ids = set()
        for match in matches:
            ids.update(match.squad_ids())
        if not ids:
            return {}
        return await asyncio.to_thread(self.squad_repo.get_squad_names, sorted(ids))

    async def _reply_with_match(
        self, interaction: discord.Interaction, result: Result, success_text: str
    ) -> None:
        if not await handle_result(interaction, result):
            return
        match = result.value
        await safe_followup(
            interaction,
            content=success_text,
            embed=create_match_embed(match, await self._squad_names([match])),
            ephemeral=False,
        )

    async def _require_squad(self, interaction: discord.Interaction, actor: Actor) -> bool:
        if actor.squad_id is None:
            await safe_followup(
                interaction,
                content=f"❌ [{error_codes.NOT_SQUAD_MEMBER}] You are not in a squad.",
                ephemeral=True,
            )
            return False
        return True

    # ------------------------------------------------------------------
    # Match lifecycle
    # ------------------------------------------------------------------

    @app_commands.command(name="challenge", description="Post a ladder match for your squad")
    @app_commands.describe(
        ladder="Ladder to play on",
        mode="Game variant",
        game_mode="Game mode (e.g. Search & Destroy)",
        team_size="Players per side",
        start_in_minutes="Schedule the match this many minutes from now (blank = ready now)",
        map_policy="Fixed map or random draw on acceptance",
        map_name="Map to play when the policy is fixed",
    )
    @app_commands.choices(ladder=LADDER_CHOICES, mode=MODE_CHOICES, map_policy=MAP_POLICY_CHOICES)
    async def challenge(
        self,
        interaction: discord.Interaction,
        ladder: app_commands.Choice[str],
        mode: app_commands.Choice[str],
        game_mode: str,
        team_size: app_commands.Range[int, 2, 5],
        start_in_minutes: app_commands.Range[int, 1, 10080] | None = None,
        map_policy: app_commands.Choice[str] | None = None,
        map_name: str | None = None,
    ):
        guild_id = interaction.guild.id if interaction.guild else 0
        rl = GLOBAL_RATE_LIMITER.check(
            scope="challenge",
            guild_id=guild_id,
            user_id=interaction.user.id,
            limit=MATCH_CREATE_RATE_LIMIT,
            per_seconds=MATCH_CREATE_RATE_PER_SECONDS,
        )
        if not rl.allowed:
            await interaction.response.send_message(
                f"⏳ Please wait {rl.retry_after_seconds}s before using `/challenge` again.",
                ephemeral=True,
            )
            return

        if not await safe_defer(interaction, ephemeral=False):
            return

        scheduled_at = int(time.time()) + start_in_minutes * 60 if start_in_minutes else None
        actor = await self._actor(interaction)
        logger.info(
            f"Challenge: user {interaction.user.id} squad {actor.squad_id} on {ladder.value} "
            f"{mode.value}/{game_mode} {team_size}v{team_size} scheduled_at={scheduled_at}"
        )
        result = await asyncio.to_thread(
            functools.partial(
                self.lifecycle_service.create_match,
                actor,
                ladder_id=ladder.value,
                mode=mode.value,
                game_mode=game_mode,
                team_size=team_size,
                scheduled_at=scheduled_at,
                map_policy=map_policy.value if map_policy else "fixed",
                map_name=map_name,
            )
        )
        await self._reply_with_match(
            interaction, result, "✅ Challenge posted. Another squad can `/accept` it."
        )

    @app_commands.command(name="accept", description="Accept an open ladder match")
    @app_commands.describe(match_id="Match ID to accept")
    async def accept(self, interaction: discord.Interaction, match_id: int):
        if not await safe_defer(interaction, ephemeral=False):
            return
        actor = await self._actor(interaction)
        result = await asyncio.to_thread(self.lifecycle_service.accept_match, actor, match_id)
        text = ""
        if result.success:
            match = result.value
            text = (
                "🟢 Match accepted and started. Good luck!"
                if match.status == MatchStatus.IN_PROGRESS
                else f"🔵 Match accepted. Starts <t:{match.scheduled_at}:R>."
            )
        await self._reply_with_match(interaction, result, text)

    @app_commands.command(
        name="declareresult", description="Squad leader: declare the winner and finish the match"
    )
    @app_commands.describe(match_id="Match ID", winner="Which squad won")
    @app_commands.choices(winner=SIDE_CHOICES)
    async def declareresult(
        self,
        interaction: discord.Interaction,
        match_id: int,
        winner: app_commands.Choice[str],
    ):
        if not await safe_defer(interaction, ephemeral=False):
            return
        actor = await self._actor(interaction)
        if not await self._require_squad(interaction, actor):
            return
        current = await asyncio.to_thread(self.lifecycle_service.get_match, match_id)
        if not await handle_result(interaction, current):
            return
        match = current.value
        winner_id = actor.squad_id if winner.value == "us" else match.other_squad(actor.squad_id)
        if winner_id is None:
            await safe_followup(
                interaction,
                content=f"❌ [{error_codes.NOT_PARTICIPANT}] Your squad is not part of this match.",
                ephemeral=True,
            )
            return
        result = await asyncio.to_thread(
            self.lifecycle_service.declare_result, actor, match_id, winner_id
        )
        await self._reply_with_match(interaction, result, "🏁 Result recorded.")

    @app_commands.command(name="reportscore", description="Report the final score for confirmation")
    @app_commands.describe(
        match_id="Match ID",
        our_score="Your squad's score",
        their_score="The other squad's score",
    )
    async def reportscore(
        self,
        interaction: discord.Interaction,
        match_id: int,
        our_score: app_commands.Range[int, 0, 1000],
        their_score: app_commands.Range[int, 0, 1000],
    ):
        if not await safe_defer(interaction, ephemeral=False):
            return
        actor = await self._actor(interaction)
        if not await self._require_squad(interaction, actor):
            return
        current = await asyncio.to_thread(self.lifecycle_service.get_match, match_id)
        if not await handle_result(interaction, current):
            return
        match = current.value
        if actor.squad_id == match.challenger_id:
            challenger_score, opponent_score = our_score, their_score
        else:
            challenger_score, opponent_score = their_score, our_score
        result = await asyncio.to_thread(
            self.lifecycle_service.report_result, actor, match_id, challenger_score, opponent_score
        )
        await self._reply_with_match(
            interaction,
            result,
            "📝 Score reported. The other squad must `/confirmresult` or `/dispute`.",
        )

    @app_commands.command(name="confirmresult", description="Confirm the other squad's reported score")
    @app_commands.describe(match_id="Match ID")
    async def confirmresult(self, interaction: discord.Interaction, match_id: int):
        if not await safe_defer(interaction, ephemeral=False):
            return
        actor = await self._actor(interaction)
        result = await asyncio.to_thread(self.lifecycle_service.confirm_result, actor, match_id)
        await self._reply_with_match(interaction, result, "🏁 Result confirmed.")

    @app_commands.command(
        name="cancelmatch",
        description="Cancel your open challenge, or request cancellation of an accepted match",
    )
    @app_commands.describe(match_id="Match ID")
    async def cancelmatch(self, interaction: discord.Interaction, match_id: int):
        if not await safe_defer(interaction, ephemeral=False):
            return
        actor = await self._actor(interaction)
        current = await asyncio.to_thread(self.lifecycle_service.get_match, match_id)
        if not await handle_result(interaction, current):
            return
        if current.value.status == MatchStatus.PENDING:
            result = await asyncio.to_thread(self.lifecycle_service.cancel_match, actor, match_id)
            await self._reply_with_match(interaction, result, "⛔ Challenge cancelled.")
            return
        result = await asyncio.to_thread(
            self.lifecycle_service.request_cooperative_cancel, actor, match_id
        )
        text = ""
        if result.success:
            text = (
                "⛔ Both squads agreed. Match cancelled."
                if result.value.status == MatchStatus.CANCELLED
                else "✋ Cancellation requested. The other squad must also `/cancelmatch`."
            )
        await self._reply_with_match(interaction, result, text)

    @app_commands.command(name="gamecode", description="Host team: share the lobby join code")
    @app_commands.describe(match_id="Match ID", code="Lobby join code")
    async def gamecode(self, interaction: discord.Interaction, match_id: int, code: str):
        if not await safe_defer(interaction, ephemeral=False):
            return
        actor = await self._actor(interaction)
        result = await asyncio.to_thread(
            self.lifecycle_service.submit_game_code, actor, match_id, code
        )
        if not await handle_result(interaction, result):
            return
        await safe_followup(
            interaction,
            content=f"🎮 Game code for match `#{match_id}`: `{result.value.game_code}`",
            ephemeral=False,
        )

    @app_commands.command(name="matchchat", description="Read or post in a match's chat")
    @app_commands.describe(match_id="Match ID", message="Message to post (blank = just read)")
    async def matchchat(
        self,
        interaction: discord.Interaction,
        match_id: int,
        message: str | None = None,
    ):
        if not await safe_defer(interaction, ephemeral=True):
            return
        actor = await self._actor(interaction)
        if message:
            result = await asyncio.to_thread(
                self.lifecycle_service.post_chat_message, actor, match_id, message
            )
            if not await handle_result(interaction, result):
                return
            chat = result.value.chat
        else:
            result = await asyncio.to_thread(self.lifecycle_service.get_match_chat, actor, match_id)
            if not await handle_result(interaction, result):
                return
            chat = result.value
        squad_ids = sorted({entry.squad_id for entry in chat if entry.squad_id is not None})
        names = (
            await asyncio.to_thread(self.squad_repo.get_squad_names, squad_ids) if squad_ids else {}
        )
        embed = create_match_chat_embed(match_id, chat, names, CHAT_DISPLAY_LIMIT)
        await safe_followup(interaction, embed=embed, ephemeral=True)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @app_commands.command(name="matches", description="List open ladder matches")
    @app_commands.describe(ladder="Only show this ladder", mode="Only show this variant")
    @app_commands.choices(ladder=LADDER_CHOICES, mode=MODE_CHOICES)
    async def matches(
        self,
        interaction: discord.Interaction,
        ladder: app_commands.Choice[str] | None = None,
        mode: app_commands.Choice[str] | None = None,
    ):
        if not await safe_defer(interaction, ephemeral=True):
            return
        available = await asyncio.to_thread(
            functools.partial(
                self.lifecycle_service.list_available_matches,
                ladder_id=ladder.value if ladder else None,
                mode=mode.value if mode else None,
            )
        )
        embed = create_match_list_embed(
            "Open Matches",
            available,
            await self._squad_names(available),
            "No open matches right now.",
        )
        await safe_followup(interaction, embed=embed, ephemeral=True)

    @app_commands.command(name="mymatches", description="Your squad's active matches")
    async def mymatches(self, interaction: discord.Interaction):
        if not await safe_defer(interaction, ephemeral=True):
            return
        actor = await self._actor(interaction)
        if not await self._require_squad(interaction, actor):
            return
        active = await asyncio.to_thread(self.lifecycle_service.list_active_matches, actor.squad_id)
        embed = create_match_list_embed(
            "Active Matches",
            active,
            await self._squad_names(active),
            "Your squad has no active matches.",
        )
        await safe_followup(interaction, embed=embed, ephemeral=True)

    @app_commands.command(name="matchhistory", description="Your squad's completed matches")
    @app_commands.describe(limit="How many matches to show")
    async def matchhistory(
        self,
        interaction: discord.Interaction,
        limit: app_commands.Range[int, 1, 25] = MATCH_HISTORY_DEFAULT_LIMIT,
    ):
        if not await safe_defer(interaction, ephemeral=True):
            return
        actor = await self._actor(interaction)
        if not await self._require_squad(interaction, actor):
            return
        history = await asyncio.to_thread(
            self.lifecycle_service.get_match_history, actor.squad_id, limit
        )
        embed = create_match_list_embed(
            "Match History", history, await self._squad_names(history), "No completed matches yet."
        )
        await safe_followup(interaction, embed=embed, ephemeral=True)

    @app_commands.command(
        name="playerhistory", description="Completed ladder matches a player was rostered in"
    )
    @app_commands.describe(player="Player to look up (defaults to you)", limit="How many matches")
    async def playerhistory(
        self,
        interaction: discord.Interaction,
        player: discord.User | None = None,
        limit: app_commands.Range[int, 1, 25] = MATCH_HISTORY_DEFAULT_LIMIT,
    ):
        if not await safe_defer(interaction, ephemeral=True):
            return
        target = player or interaction.user
        history = await asyncio.to_thread(
            self.lifecycle_service.get_player_history, target.id, limit
        )
        embed = create_player_history_embed(
            getattr(target, "display_name", str(target)),
            target.id,
            history,
            await self._squad_names(history),
        )
        await safe_followup(interaction, embed=embed, ephemeral=True)

    # ------------------------------------------------------------------
    # Ladders
    # ------------------------------------------------------------------

    @app_commands.command(name="ladderboard", description="Show a ladder leaderboard")
    @app_commands.describe(ladder="Ladder to show")
    @app_commands.choices(ladder=LADDER_CHOICES)
    async def ladderboard(self, interaction: discord.Interaction, ladder: app_commands.Choice[str]):
        if not await safe_defer(interaction, ephemeral=False):
            return
        ladder_obj = await asyncio.to_thread(self.ladder_registry_service.get_ladder, ladder.value)
        if ladder_obj is None:
            await safe_followup(
                interaction,
                content=f"❌ [{error_codes.LADDER_NOT_FOUND}] Unknown ladder.",
                ephemeral=True,
            )
            return
        standings = await asyncio.to_thread(
            self.ladder_registry_service.get_leaderboard, ladder.value, LEADERBOARD_DEFAULT_LIMIT
        )
        names = await asyncio.to_thread(
            self.squad_repo.get_squad_names, [s.squad_id for s in standings]
        )
        await safe_followup(
            interaction, embed=create_leaderboard_embed(ladder_obj, standings, names), ephemeral=False
        )

    async def _change_registration(
        self, interaction: discord.Interaction, ladder_id: str, join: bool
    ) -> None:
        actor = await self._actor(interaction)
        if not await self._require_squad(interaction, actor):
            return
        if not has_capability(actor, Capability.MANAGE_REGISTRATION, actor.squad_id):
            await safe_followup(
                interaction,
                content=f"❌ [{error_codes.PERMISSION_DENIED}] Only the squad leader can do that.",
                ephemeral=True,
            )
            return
        if join:
            result = await asyncio.to_thread(
                self.ladder_registry_service.register_squad, actor.squad_id, ladder_id
            )
            message = f"✅ Your squad joined `{ladder_id}`."
        else:
            result = await asyncio.to_thread(
                self.ladder_registry_service.unregister_squad, actor.squad_id, ladder_id
            )
            message = f"👋 Your squad left `{ladder_id}`."
        if result.success:
            logger.info(
                f"Squad {actor.squad_id} {'joined' if join else 'left'} {ladder_id} "
                f"(by {interaction.user.id})"
            )
        await handle_result(interaction, result, message, ephemeral=False)

    @app_commands.command(name="ladderjoin", description="Register your squad to a ladder")
    @app_commands.describe(ladder="Ladder to join")
    @app_commands.choices(ladder=LADDER_CHOICES)
    async def ladderjoin(self, interaction: discord.Interaction, ladder: app_commands.Choice[str]):
        if not await safe_defer(interaction, ephemeral=False):
            return
        await self._change_registration(interaction, ladder.value, join=True)

    @app_commands.command(name="ladderleave", description="Remove your squad from a ladder")
    @app_commands.describe(ladder="Ladder to leave")
    @app_commands.choices(ladder=LADDER_CHOICES)
    async def ladderleave(self, interaction: discord.Interaction, ladder: app_commands.Choice[str]):
        if not await safe_defer(interaction, ephemeral=False):
            return
        await self._change_registration(interaction, ladder.value, join=False)


async def setup(bot: commands.Bot):
    lifecycle_service = getattr(bot, "lifecycle_service", None)
    ladder_registry_service = getattr(bot, "ladder_registry_service", None)
    squad_repo = getattr(bot, "squad_repo", None)
    event_publisher = getattr(bot, "event_publisher", None)
    await bot.add_cog(
        LadderCommands(
            bot,
            lifecycle_service,
            ladder_registry_service,
            squad_repo,
            event_publisher=event_publisher,
            events_channel_id=MATCH_EVENTS_CHANNEL_ID,
        )
    )
