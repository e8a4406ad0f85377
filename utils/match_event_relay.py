"""
Relays match lifecycle events into a Discord channel.
"""

import asyncio
import logging

import discord

from services import notification_service as events
from services.notification_service import MatchEvent

logger = logging.getLogger("ladder_bot.utils.match_event_relay")

EVENT_TEMPLATES = {
    events.MATCH_CREATED: "📣 New challenge posted: match `#{match_id}`.",
    events.MATCH_ACCEPTED: "🤝 Match `#{match_id}` accepted.",
    events.MATCH_STARTED: "🟢 Match `#{match_id}` has started.",
    events.MATCH_RESULT_REPORTED: "📝 A result was reported for match `#{match_id}`; awaiting confirmation.",
    events.MATCH_COMPLETED: "🏁 Match `#{match_id}` is complete.",
    events.MATCH_CANCEL_REQUESTED: "✋ Cancellation requested for match `#{match_id}`.",
    events.MATCH_CANCELLED: "⛔ Match `#{match_id}` was cancelled.",
    events.MATCH_EXPIRED: "⌛ Match `#{match_id}` expired without an opponent.",
    events.MATCH_DISPUTED: "⚖️ Match `#{match_id}` is under dispute.",
    events.MATCH_DISPUTE_REVERTED: "↩️ The dispute on match `#{match_id}` was reverted.",
    events.REWARDS_DISTRIBUTED: "💰 Rewards paid out for match `#{match_id}`.",
}


def format_event(topic: str, event: MatchEvent) -> str | None:
    """Channel text for an event, or None for events that are not announced."""
    template = EVENT_TEMPLATES.get(topic)
    if template is None:
        return None
    return template.format(match_id=event.match_id)


class MatchEventRelay:
    """
    Event publisher subscriber that posts announcements to one channel.

    Publishing is synchronous; the Discord send is scheduled on the bot loop.
    """

    def __init__(self, bot, channel_id: int | None):
        self.bot = bot
        self.channel_id = channel_id
        self._pending: set[asyncio.Future] = set()

    def __call__(self, topic: str, event: MatchEvent) -> None:
        if not self.channel_id:
            return
        text = format_event(topic, event)
        if text is None:
            return
        coro = self.post(text)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            future = asyncio.run_coroutine_threadsafe(coro, self.bot.loop)
        else:
            future = loop.create_task(coro)
        self._pending.add(future)
        future.add_done_callback(self._on_posted)

    def _on_posted(self, future) -> None:
        self._pending.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(
                f"Posting match event to channel {self.channel_id} failed: {exc!r}",
                exc_info=exc,
            )

    async def post(self, text: str) -> None:
        channel = self.bot.get_channel(self.channel_id)
        try:
            if channel is None:
                channel = await self.bot.fetch_channel(self.channel_id)
            await channel.send(text, allowed_mentions=discord.AllowedMentions.none())
        except discord.HTTPException as exc:
            logger.warning(f"Could not post match event to channel {self.channel_id}: {exc}")
