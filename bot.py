"""
Main Discord bot entry for the Squad Ladder.
"""

import asyncio
import logging

# Configure logging BEFORE importing discord to prevent duplicate handlers
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    force=True,  # Override any existing handlers (e.g., from discord.py)
)
logger = logging.getLogger("ladder_bot")


# Suppress PyNaCl warning since voice support isn't needed
class _PyNaClFilter(logging.Filter):
    """Filter out the PyNaCl warning from discord.py."""

    def filter(self, record):
        return "PyNaCl is not installed" not in record.getMessage()


logging.getLogger("discord.client").addFilter(_PyNaClFilter())

import discord
from discord.ext import commands

# discord.py adds its own handler to the 'discord' logger on import
_discord_logger = logging.getLogger("discord")
_discord_logger.handlers.clear()
_discord_logger.setLevel(logging.INFO)

from config import DB_PATH, DISCORD_BOT_TOKEN
from infrastructure.service_container import ServiceConfig, ServiceContainer

intents = discord.Intents.default()
intents.members = True

bot = commands.Bot(command_prefix="!", intents=intents)

_container: ServiceContainer | None = None

EXTENSIONS = [
    "commands.ladder",
    "commands.disputes",
]


async def _init_services() -> ServiceContainer:
    """Initialize all services via ServiceContainer (lazy, idempotent)."""
    global _container
    if _container is None:
        _container = ServiceContainer(ServiceConfig(db_path=DB_PATH))
    await _container.initialize()
    _container.expose_to_bot(bot)
    return _container


async def _load_extensions():
    """Load command extensions if not already loaded."""
    loaded, skipped, failed = [], [], []
    for ext in EXTENSIONS:
        if ext in bot.extensions:
            skipped.append(ext)
            continue
        try:
            await bot.load_extension(ext)
            loaded.append(ext)
            logger.info(f"Loaded extension: {ext}")
        except Exception as exc:
            failed.append(ext)
            logger.error(f"Failed to load extension {ext}: {exc}", exc_info=True)

    logger.info(
        f"Extension loading complete: {len(loaded)} loaded, "
        f"{len(skipped)} skipped, {len(failed)} failed"
    )


@bot.event
async def setup_hook():
    """Initialize services, repair unpaid matches, then load command cogs."""
    container = await _init_services()
    resumed = await asyncio.to_thread(
        container.reward_distribution_service.resume_pending_distributions
    )
    if resumed:
        logger.info(f"Paid rewards for {len(resumed)} matches left unpaid by a previous run")
    await _load_extensions()


@bot.event
async def on_ready():
    """Called when bot is ready."""
    logger.info(f"{bot.user} connected. Guilds: {len(bot.guilds)}")
    try:
        synced = await bot.tree.sync()
        logger.info(f"Slash commands synced globally ({len(synced)} commands).")
    except discord.HTTPException as exc:
        logger.error(f"Failed to sync commands: {exc}", exc_info=True)


@bot.tree.error
async def on_app_command_error(
    interaction: discord.Interaction, error: discord.app_commands.AppCommandError
):
    """Global error handler for app commands - prevents infinite 'thinking...' state."""
    command_name = interaction.command.name if interaction.command else "unknown"
    logger.error(f"App command error in '{command_name}': {error}", exc_info=error)
    error_msg = "❌ Something went wrong running that command. Please try again."
    try:
        if interaction.response.is_done():
            await interaction.followup.send(error_msg, ephemeral=True)
        else:
            await interaction.response.send_message(error_msg, ephemeral=True)
    except discord.HTTPException as exc:
        logger.error(f"Could not report command error to user: {exc}")


def main():
    if not DISCORD_BOT_TOKEN:
        raise SystemExit("DISCORD_BOT_TOKEN is not set")
    asyncio.run(bot.start(DISCORD_BOT_TOKEN))


if __name__ == "__main__":
    main()
