"""
Ladder match aggregate and its value objects.

Timestamps are unix seconds (int). A match is persisted as one row; rosters,
result, dispute and cancel requests are serialized through to_dict/from_dict.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class MatchStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DISPUTED = "disputed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


TERMINAL_STATUSES = frozenset(
    {MatchStatus.COMPLETED, MatchStatus.CANCELLED, MatchStatus.EXPIRED}
)

# Statuses that count toward the rematch cooldown between two squads
COOLDOWN_STATUSES = frozenset(
    {
        MatchStatus.ACCEPTED,
        MatchStatus.IN_PROGRESS,
        MatchStatus.COMPLETED,
        MatchStatus.DISPUTED,
    }
)

# Statuses in which a result may be declared, reported or disputed
PLAYABLE_STATUSES = frozenset({MatchStatus.ACCEPTED, MatchStatus.IN_PROGRESS})


class GameVariant(str, Enum):
    HARDCORE = "hardcore"
    CDL = "cdl"


class MapPolicy(str, Enum):
    FIXED = "fixed"
    RANDOM = "random"


@dataclass(frozen=True)
class RosterEntry:
    """One player in a match roster, captured when the roster was locked."""

    player_id: int
    display_name: str
    is_helper: bool = False

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "display_name": self.display_name,
            "is_helper": self.is_helper,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RosterEntry":
        return cls(
            player_id=int(data["player_id"]),
            display_name=data.get("display_name", ""),
            is_helper=bool(data.get("is_helper", False)),
        )


@dataclass
class MatchResult:
    winner: int | None = None
    reported_by: int | None = None  # squad id of the reporting side
    reported_at: int | None = None
    challenger_score: int | None = None
    opponent_score: int | None = None
    confirmed: bool = False
    confirmed_by: int | None = None
    confirmed_at: int | None = None
    rewards_given: dict[str, Any] | None = None

    def to_dict(self) -> dict:
        return {
            "winner": self.winner,
            "reported_by": self.reported_by,
            "reported_at": self.reported_at,
            "challenger_score": self.challenger_score,
            "opponent_score": self.opponent_score,
            "confirmed": self.confirmed,
            "confirmed_by": self.confirmed_by,
            "confirmed_at": self.confirmed_at,
            "rewards_given": self.rewards_given,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "MatchResult":
        data = data or {}
        return cls(
            winner=data.get("winner"),
            reported_by=data.get("reported_by"),
            reported_at=data.get("reported_at"),
            challenger_score=data.get("challenger_score"),
            opponent_score=data.get("opponent_score"),
            confirmed=bool(data.get("confirmed", False)),
            confirmed_by=data.get("confirmed_by"),
            confirmed_at=data.get("confirmed_at"),
            rewards_given=data.get("rewards_given"),
        )


@dataclass(frozen=True)
class Evidence:
    squad_id: int
    submitted_by: int
    url: str
    description: str
    submitted_at: int

    def to_dict(self) -> dict:
        return {
            "squad_id": self.squad_id,
            "submitted_by": self.submitted_by,
            "url": self.url,
            "description": self.description,
            "submitted_at": self.submitted_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Evidence":
        return cls(
            squad_id=int(data["squad_id"]),
            submitted_by=int(data["submitted_by"]),
            url=data.get("url", ""),
            description=data.get("description", ""),
            submitted_at=int(data.get("submitted_at", 0)),
        )


@dataclass
class DisputeInfo:
    is_disputed: bool = False
    disputed_by: int | None = None  # squad id
    disputed_by_user: int | None = None
    disputed_at: int | None = None
    reason: str = ""
    evidence: list[Evidence] = field(default_factory=list)
    resolved_by: int | None = None
    resolved_at: int | None = None
    resolution: str | None = None  # "winner" | "cancelled" | "reverted"
    winner: int | None = None

    def evidence_count(self, squad_id: int) -> int:
        return sum(1 for item in self.evidence if item.squad_id == squad_id)

    def to_dict(self) -> dict:
        return {
            "is_disputed": self.is_disputed,
            "disputed_by": self.disputed_by,
            "disputed_by_user": self.disputed_by_user,
            "disputed_at": self.disputed_at,
            "reason": self.reason,
            "evidence": [item.to_dict() for item in self.evidence],
            "resolved_by": self.resolved_by,
            "resolved_at": self.resolved_at,
            "resolution": self.resolution,
            "winner": self.winner,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "DisputeInfo":
        data = data or {}
        return cls(
            is_disputed=bool(data.get("is_disputed", False)),
            disputed_by=data.get("disputed_by"),
            disputed_by_user=data.get("disputed_by_user"),
            disputed_at=data.get("disputed_at"),
            reason=data.get("reason", ""),
            evidence=[Evidence.from_dict(e) for e in data.get("evidence", [])],
            resolved_by=data.get("resolved_by"),
            resolved_at=data.get("resolved_at"),
            resolution=data.get("resolution"),
            winner=data.get("winner"),
        )


@dataclass(frozen=True)
class ChatMessage:
    """One line of a match chat. squad_id is None for staff outside the match."""

    author_id: int
    author_name: str
    squad_id: int | None
    message: str
    is_staff: bool
    created_at: int

    def to_dict(self) -> dict:
        return {
            "author_id": self.author_id,
            "author_name": self.author_name,
            "squad_id": self.squad_id,
            "message": self.message,
            "is_staff": self.is_staff,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChatMessage":
        return cls(
            author_id=int(data["author_id"]),
            author_name=data.get("author_name", ""),
            squad_id=data.get("squad_id"),
            message=data.get("message", ""),
            is_staff=bool(data.get("is_staff", False)),
            created_at=int(data.get("created_at", 0)),
        )


@dataclass
class Match:
    """A challenge between two squads on one ladder."""

    ladder_id: str
    mode: GameVariant
    game_mode: str
    team_size: int
    challenger_id: int
    created_by: int
    created_at: int
    match_id: int | None = None
    map_policy: MapPolicy = MapPolicy.FIXED
    status: MatchStatus = MatchStatus.PENDING
    opponent_id: int | None = None
    challenger_roster: list[RosterEntry] = field(default_factory=list)
    opponent_roster: list[RosterEntry] = field(default_factory=list)
    host_team: int | None = None
    scheduled_at: int | None = None
    ready_created_at: int | None = None
    accepted_at: int | None = None
    accepted_by: int | None = None
    started_at: int | None = None
    completed_at: int | None = None
    maps: list[str] = field(default_factory=list)
    game_code: str | None = None
    result: MatchResult = field(default_factory=MatchResult)
    dispute: DisputeInfo = field(default_factory=DisputeInfo)
    cancel_requests: set[int] = field(default_factory=set)
    cancelled_by: int | None = None
    chat: list[ChatMessage] = field(default_factory=list)
    version: int = 0

    @property
    def is_ready_match(self) -> bool:
        return self.scheduled_at is None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def squad_ids(self) -> tuple[int, ...]:
        if self.opponent_id is None:
            return (self.challenger_id,)
        return (self.challenger_id, self.opponent_id)

    def is_participant(self, squad_id: int | None) -> bool:
        return squad_id is not None and squad_id in self.squad_ids()

    def other_squad(self, squad_id: int) -> int | None:
        if squad_id == self.challenger_id:
            return self.opponent_id
        if squad_id == self.opponent_id:
            return self.challenger_id
        return None

    def roster_for(self, squad_id: int) -> list[RosterEntry]:
        if squad_id == self.challenger_id:
            return self.challenger_roster
        if squad_id == self.opponent_id:
            return self.opponent_roster
        return []

    def squad_of_player(self, player_id: int) -> int | None:
        """Which side the player was rostered on, if any."""
        if any(entry.player_id == player_id for entry in self.challenger_roster):
            return self.challenger_id
        if any(entry.player_id == player_id for entry in self.opponent_roster):
            return self.opponent_id
        return None

    def to_dict(self) -> dict:
        return {
            "match_id": self.match_id,
            "ladder_id": self.ladder_id,
            "mode": self.mode.value,
            "game_mode": self.game_mode,
            "team_size": self.team_size,
            "map_policy": self.map_policy.value,
            "status": self.status.value,
            "challenger_id": self.challenger_id,
            "opponent_id": self.opponent_id,
            "challenger_roster": [r.to_dict() for r in self.challenger_roster],
            "opponent_roster": [r.to_dict() for r in self.opponent_roster],
            "host_team": self.host_team,
            "scheduled_at": self.scheduled_at,
            "ready_created_at": self.ready_created_at,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "accepted_at": self.accepted_at,
            "accepted_by": self.accepted_by,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "maps": list(self.maps),
            "game_code": self.game_code,
            "result": self.result.to_dict(),
            "dispute": self.dispute.to_dict(),
            "cancel_requests": sorted(self.cancel_requests),
            "cancelled_by": self.cancelled_by,
            "chat": [m.to_dict() for m in self.chat],
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Match":
        return cls(
            match_id=data.get("match_id"),
            ladder_id=data["ladder_id"],
            mode=GameVariant(data.get("mode", GameVariant.HARDCORE.value)),
            game_mode=data.get("game_mode", ""),
            team_size=int(data.get("team_size", 0)),
            map_policy=MapPolicy(data.get("map_policy", MapPolicy.FIXED.value)),
            status=MatchStatus(data.get("status", MatchStatus.PENDING.value)),
            challenger_id=int(data["challenger_id"]),
            opponent_id=data.get("opponent_id"),
            challenger_roster=[
                RosterEntry.from_dict(r) for r in data.get("challenger_roster", [])
            ],
            opponent_roster=[RosterEntry.from_dict(r) for r in data.get("opponent_roster", [])],
            host_team=data.get("host_team"),
            scheduled_at=data.get("scheduled_at"),
            ready_created_at=data.get("ready_created_at"),
            created_by=int(data.get("created_by", 0)),
            created_at=int(data.get("created_at", 0)),
            accepted_at=data.get("accepted_at"),
            accepted_by=data.get("accepted_by"),
            started_at=data.get("started_at"),
            completed_at=data.get("completed_at"),
            maps=list(data.get("maps", [])),
            game_code=data.get("game_code"),
            result=MatchResult.from_dict(data.get("result")),
            dispute=DisputeInfo.from_dict(data.get("dispute")),
            cancel_requests=set(data.get("cancel_requests", [])),
            cancelled_by=data.get("cancelled_by"),
            chat=[ChatMessage.from_dict(m) for m in data.get("chat", [])],
            version=int(data.get("version", 0)),
        )
