"""
Command helper utilities for Discord slash commands.

Provides utilities for handling service Results in command handlers,
reducing boilerplate and ensuring consistent error reporting.
"""

import discord
from typing import TYPE_CHECKING

from services import error_codes
from utils.formatting import format_countdown
from utils.interaction_safety import safe_followup

if TYPE_CHECKING:
    from services.result import Result

_CATEGORY_PREFIX = {
    error_codes.PRECONDITION: "❌",
    error_codes.TEMPORAL: "⏳",
    error_codes.CONFLICT: "⚠️",
    error_codes.DEPENDENCY: "🛑",
}


def format_result_error(result: "Result") -> str:
    """
    Format a Result error for display.

    Temporal failures that carry wait data get a countdown appended so the
    user knows when to try again.

    Args:
        result: A failed Result

    Returns:
        Formatted error string
    """
    if result.success:
        return ""
    message = result.error or "Unknown error"
    if result.error_code:
        prefix = _CATEGORY_PREFIX[error_codes.error_category(result.error_code)]
        message = f"{prefix} [{result.error_code}] {message}"
    available_at = result.data.get("available_at") if result.data else None
    if error_codes.is_temporal(result.error_code) and available_at is not None:
        message += f" (available {format_countdown(result.data)}, <t:{int(available_at)}:R>)"
    return message


async def handle_result(
    interaction: discord.Interaction,
    result: "Result",
    success_msg: str | None = None,
    ephemeral: bool = True,
) -> bool:
    """
    Handle a service Result, sending appropriate Discord response.

    Args:
        interaction: The Discord interaction to respond to
        result: The Result from a service call
        success_msg: Optional message to send on success (None = no message)
        ephemeral: Whether the message should be ephemeral

    Returns:
        True if the result was successful, False otherwise

    Usage:
        result = lifecycle.accept_match(actor, match_id)
        if not await handle_result(interaction, result, "Match accepted!"):
            return  # Error was already reported to user
    """
    if not result.success:
        await safe_followup(interaction, content=format_result_error(result), ephemeral=True)
        return False

    if success_msg:
        await safe_followup(interaction, content=success_msg, ephemeral=ephemeral)
    return True

