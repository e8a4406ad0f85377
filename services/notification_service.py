"""
Match event publishing.

The lifecycle engine publishes one event per mutating transition. Delivery is
fire-and-forget: a failing subscriber is logged and never fails the
transition that published the event.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger("ladder_bot.services.notification")

# Topics
MATCH_CREATED = "match.created"
MATCH_ACCEPTED = "match.accepted"
MATCH_STARTED = "match.started"
MATCH_RESULT_REPORTED = "match.result_reported"
MATCH_COMPLETED = "match.completed"
MATCH_CANCEL_REQUESTED = "match.cancel_requested"
MATCH_CANCELLED = "match.cancelled"
MATCH_EXPIRED = "match.expired"
MATCH_DISPUTED = "match.disputed"
MATCH_EVIDENCE_ADDED = "match.evidence_added"
MATCH_DISPUTE_REVERTED = "match.dispute_reverted"
MATCH_GAME_CODE = "match.game_code"
MATCH_CHAT_MESSAGE = "match.chat_message"
REWARDS_DISTRIBUTED = "rewards.distributed"


@dataclass(frozen=True)
class MatchEvent:
    topic: str
    match_id: int
    actor_id: int | None = None
    squad_ids: tuple[int, ...] = ()
    payload: dict[str, Any] = field(default_factory=dict)


Subscriber = Callable[[str, MatchEvent], None]


class EventPublisher:
    """
    In-process fan-out to subscribers.

    Subscribers may filter by topic prefix (e.g. "match.") or receive everything.
    """

    def __init__(self):
        self._subscribers: list[tuple[str, Subscriber]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber, topic_prefix: str = "") -> None:
        with self._lock:
            self._subscribers.append((topic_prefix, callback))

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            self._subscribers = [(p, cb) for p, cb in self._subscribers if cb is not callback]

    def publish(self, topic: str, event: MatchEvent) -> None:
        """Deliver an event to every matching subscriber; subscriber errors are logged."""
        with self._lock:
            targets = [cb for prefix, cb in self._subscribers if topic.startswith(prefix)]
        logger.debug(f"Publishing {topic} for match {event.match_id} to {len(targets)} subscribers")
        for callback in targets:
            try:
                callback(topic, event)
            except Exception as exc:
                logger.error(f"Subscriber failed for {topic} (match {event.match_id}): {exc}")


class RecordingSubscriber:
    """Keeps every event it receives; used for audit trails and tests."""

    def __init__(self):
        self.events: list[tuple[str, MatchEvent]] = []

    def __call__(self, topic: str, event: MatchEvent) -> None:
        self.events.append((topic, event))

    def topics(self) -> list[str]:
        return [topic for topic, _ in self.events]
