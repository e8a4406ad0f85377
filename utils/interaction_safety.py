"""
Safe wrappers around Discord interaction responses.

Interactions expire after a few seconds and a second response raises; these
helpers log such failures instead of letting them escape the command handler.
"""

import logging

import discord

logger = logging.getLogger("ladder_bot.utils.interaction_safety")


async def safe_defer(interaction: discord.Interaction, ephemeral: bool = False) -> bool:
    """
    Defer the interaction response.

    Returns False when the interaction can no longer be answered, in which
    case the caller should stop handling the command.
    """
    try:
        if interaction.response.is_done():
            return True
        await interaction.response.defer(ephemeral=ephemeral)
        return True
    except discord.NotFound:
        logger.warning(f"Interaction {interaction.id} expired before it could be deferred")
        return False
    except discord.HTTPException as exc:
        logger.error(f"Failed to defer interaction {interaction.id}: {exc}")
        return False


async def safe_followup(interaction: discord.Interaction, **kwargs):
    """
    Send a followup message on a deferred interaction.

    Returns the sent message, or None if Discord rejected it.
    """
    try:
        return await interaction.followup.send(**kwargs)
    except discord.HTTPException as exc:
        logger.error(f"Failed to send followup for interaction {interaction.id}: {exc}")
        return None
