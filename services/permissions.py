"""
Permission checking utilities for the bot.

Squad-level permissions live in domain.services.match_permissions; this module
only answers "is this Discord user staff/admin" from the interaction.
"""

import discord

from config import ADMIN_USER_IDS, STAFF_ROLE_NAMES


def has_allowlisted_admin(interaction: discord.Interaction) -> bool:
    """
    Check if the user is explicitly allowlisted via ADMIN_USER_IDS.
    If ADMIN_USER_IDS is empty/unset, nobody is considered admin by this check.
    """
    return interaction.user.id in ADMIN_USER_IDS


def has_admin_permission(interaction: discord.Interaction) -> bool:
    """
    Check if user has admin permissions.

    First checks ADMIN_USER_IDS list, then falls back to Discord permissions.

    Args:
        interaction: Discord interaction object

    Returns:
        True if user has admin permissions, False otherwise
    """
    if ADMIN_USER_IDS and interaction.user.id in ADMIN_USER_IDS:
        return True

    # Prefer guild member lookup, but fall back gracefully for mocks / partial objects.
    if interaction.guild:
        get_member = getattr(interaction.guild, "get_member", None)
        if callable(get_member):
            member = get_member(interaction.user.id)
            if member and getattr(member, "guild_permissions", None):
                return (
                    member.guild_permissions.administrator
                    or member.guild_permissions.manage_guild
                )

    perms = getattr(interaction.user, "guild_permissions", None)
    if perms:
        return bool(getattr(perms, "administrator", False) or getattr(perms, "manage_guild", False))

    return False


def has_staff_role(interaction: discord.Interaction) -> bool:
    """True if the user carries one of the configured staff roles (case-insensitive)."""
    wanted = {name.lower() for name in STAFF_ROLE_NAMES}
    if not wanted:
        return False
    roles = getattr(interaction.user, "roles", None) or []
    return any(getattr(role, "name", "").lower() in wanted for role in roles)


def is_staff(interaction: discord.Interaction) -> bool:
    """Ladder staff: admins plus anyone holding a staff role."""
    return has_admin_permission(interaction) or has_staff_role(interaction)
