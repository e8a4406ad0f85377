"""
Dispute commands: /dispute, /evidence, /resolvedispute, /revertdispute, /disputes

Also runs the background sweep that expires stale challenges and retries
reward payouts that never landed. Service calls run in a worker thread.
"""

import asyncio
import functools
import logging

import discord
from discord import app_commands
from discord.ext import commands, tasks

from config import EXPIRY_SWEEP_ENABLED, EXPIRY_SWEEP_INTERVAL_SECONDS
from domain.models.match import Match
from services import error_codes
from services.permissions import is_staff
from utils.command_helpers import handle_result
from utils.embed_safety import join_lines_within, truncate_field
from utils.embeds import create_match_embed, create_match_list_embed
from utils.interaction_safety import safe_defer, safe_followup

logger = logging.getLogger("ladder_bot.commands.disputes")

RESOLUTION_CHOICES = [
    app_commands.Choice(name="Challenger wins", value="challenger"),
    app_commands.Choice(name="Opponent wins", value="opponent"),
    app_commands.Choice(name="Cancel the match", value="cancel"),
]


class DisputeCommands(commands.Cog):
    """Dispute raising, evidence and staff moderation."""

    def __init__(
        self,
        bot: commands.Bot,
        lifecycle_service,
        reward_distribution_service,
        squad_repo,
    ):
        self.bot = bot
        self.lifecycle_service = lifecycle_service
        self.reward_distribution_service = reward_distribution_service
        self.squad_repo = squad_repo

    async def cog_load(self):
        if EXPIRY_SWEEP_ENABLED:
            self.sweep_matches.start()

    def cog_unload(self):
        self.sweep_matches.cancel()

    async def _actor(self, interaction: discord.Interaction):
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

    async def _staff_only(self, interaction: discord.Interaction) -> bool:
        if is_staff(interaction):
            return True
        await safe_followup(
            interaction,
            content=f"❌ [{error_codes.PERMISSION_DENIED}] Only ladder staff can do that.",
            ephemeral=True,
        )
        return False

    # ------------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------------

    @tasks.loop(seconds=EXPIRY_SWEEP_INTERVAL_SECONDS)
    async def sweep_matches(self):
        """Expire stale pending matches and pay any completed match still owed rewards."""
        if not self.lifecycle_service:
            return
        try:
            expired = await asyncio.to_thread(self.lifecycle_service.sweep_expired_matches)
            if expired:
                logger.info(f"Sweep expired {len(expired)} matches")
        except Exception as e:
            logger.error(f"Expiry sweep failed: {e}", exc_info=True)
        if not self.reward_distribution_service:
            return
        try:
            await asyncio.to_thread(self.reward_distribution_service.resume_pending_distributions)
        except Exception as e:
            logger.error(f"Reward repair sweep failed: {e}", exc_info=True)

    @sweep_matches.before_loop
    async def before_sweep(self):
        """Wait until bot is ready before starting task."""
        await self.bot.wait_until_ready()
        logger.info(f"Match sweep running every {EXPIRY_SWEEP_INTERVAL_SECONDS}s")

    # ------------------------------------------------------------------
    # Participant commands
    # ------------------------------------------------------------------

    @app_commands.command(name="dispute", description="Dispute a match result for staff review")
    @app_commands.describe(match_id="Match ID", reason="What went wrong")
    async def dispute(
        self, interaction: discord.Interaction, match_id: int, reason: str | None = None
    ):
        if not await safe_defer(interaction, ephemeral=False):
            return
        actor = await self._actor(interaction)
        result = await asyncio.to_thread(
            self.lifecycle_service.raise_dispute, actor, match_id, reason or ""
        )
        if not await handle_result(interaction, result):
            return
        match = result.value
        logger.info(f"Match {match_id} disputed by {interaction.user.id}: {match.dispute.reason}")
        await safe_followup(
            interaction,
            content="⚖️ Dispute opened. Both squads can add proof with `/evidence`.",
            embed=create_match_embed(match, await self._squad_names([match])),
            ephemeral=False,
        )

    @app_commands.command(name="evidence", description="Attach evidence to a disputed match")
    @app_commands.describe(
        match_id="Match ID",
        url="Link to a screenshot or clip",
        description="What the evidence shows",
    )
    async def evidence(
        self,
        interaction: discord.Interaction,
        match_id: int,
        url: str,
        description: str | None = None,
    ):
        if not await safe_defer(interaction, ephemeral=True):
            return
        actor = await self._actor(interaction)
        result = await asyncio.to_thread(
            self.lifecycle_service.attach_dispute_evidence, actor, match_id, url, description or ""
        )
        if not await handle_result(interaction, result):
            return
        count = len(result.value.dispute.evidence)
        await safe_followup(
            interaction,
            content=f"📎 Evidence added to match `#{match_id}` ({count} items total).",
            ephemeral=True,
        )

    # ------------------------------------------------------------------
    # Staff commands
    # ------------------------------------------------------------------

    @app_commands.command(name="resolvedispute", description="Staff: settle a disputed match")
    @app_commands.describe(match_id="Match ID", resolution="Who wins, or cancel")
    @app_commands.choices(resolution=RESOLUTION_CHOICES)
    async def resolvedispute(
        self,
        interaction: discord.Interaction,
        match_id: int,
        resolution: app_commands.Choice[str],
    ):
        if not await safe_defer(interaction, ephemeral=False):
            return
        if not await self._staff_only(interaction):
            return
        actor = await self._actor(interaction)
        if resolution.value == "cancel":
            result = await asyncio.to_thread(
                functools.partial(
                    self.lifecycle_service.resolve_dispute, actor, match_id, cancel=True
                )
            )
        else:
            current = await asyncio.to_thread(self.lifecycle_service.get_match, match_id)
            if not await handle_result(interaction, current):
                return
            match = current.value
            winner = match.challenger_id if resolution.value == "challenger" else match.opponent_id
            result = await asyncio.to_thread(
                functools.partial(
                    self.lifecycle_service.resolve_dispute, actor, match_id, winner_squad_id=winner
                )
            )
        if not await handle_result(interaction, result):
            return
        logger.info(f"Dispute on match {match_id} resolved ({resolution.value}) by {interaction.user.id}")
        match = result.value
        await safe_followup(
            interaction,
            content=f"✅ Dispute settled: {resolution.name}.",
            embed=create_match_embed(match, await self._squad_names([match])),
            ephemeral=False,
        )

    @app_commands.command(
        name="revertdispute", description="Staff: reopen a disputed match as in progress"
    )
    @app_commands.describe(match_id="Match ID")
    async def revertdispute(self, interaction: discord.Interaction, match_id: int):
        if not await safe_defer(interaction, ephemeral=False):
            return
        if not await self._staff_only(interaction):
            return
        actor = await self._actor(interaction)
        result = await asyncio.to_thread(self.lifecycle_service.revert_dispute, actor, match_id)
        await handle_result(
            interaction,
            result,
            f"↩️ Match `#{match_id}` is back in progress.",
            ephemeral=False,
        )

    @app_commands.command(name="disputes", description="Staff: list disputed matches")
    async def disputes(self, interaction: discord.Interaction):
        if not await safe_defer(interaction, ephemeral=True):
            return
        if not await self._staff_only(interaction):
            return
        disputed = await asyncio.to_thread(self.lifecycle_service.list_disputed_matches)
        names = await self._squad_names(disputed)
        embed = create_match_list_embed("Disputed Matches", disputed, names, "No open disputes.")
        for match in disputed[:10]:
            evidence_lines = [
                f"[{names.get(e.squad_id, 'Staff')}] {e.url}"
                + (f" - {truncate_field(e.description, 80)}" if e.description else "")
                for e in match.dispute.evidence
            ]
            embed.add_field(
                name=f"#{match.match_id}: {truncate_field(match.dispute.reason, 200)}",
                value=join_lines_within(evidence_lines) if evidence_lines else "No evidence yet.",
                inline=False,
            )
        await safe_followup(interaction, embed=embed, ephemeral=True)


async def setup(bot: commands.Bot):
    lifecycle_service = getattr(bot, "lifecycle_service", None)
    reward_distribution_service = getattr(bot, "reward_distribution_service", None)
    squad_repo = getattr(bot, "squad_repo", None)
    await bot.add_cog(
        DisputeCommands(bot, lifecycle_service, reward_distribution_service, squad_repo)
    )
