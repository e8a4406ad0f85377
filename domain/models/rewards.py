"""
Reward tables and the ledger recorded when a match pays out.
"""

from dataclasses import asdict, dataclass, field, fields
from typing import Any


@dataclass(frozen=True)
class RewardTable:
    """Point/currency/XP deltas for one ladder or ranked game mode."""

    ladder_points_win: int
    ladder_points_loss: int
    squad_points_win: int
    squad_points_loss: int
    player_currency_win: int
    player_currency_loss: int
    player_xp_win_min: int
    player_xp_win_max: int

    @classmethod
    def merged(cls, defaults: "RewardTable", overrides: dict[str, Any] | None) -> "RewardTable":
        """Apply numeric overrides on top of defaults, ignoring unknown or non-numeric keys."""
        values = asdict(defaults)
        for key, value in (overrides or {}).items():
            if key in values and isinstance(value, int) and not isinstance(value, bool):
                values[key] = value
        table = cls(**values)
        if table.player_xp_win_max < table.player_xp_win_min:
            table = cls(**{**values, "player_xp_win_max": table.player_xp_win_min})
        return table

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PointChange:
    """A clamped change to a points counter. `applied` is what actually moved."""

    requested: int
    applied: int
    before: int
    after: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PlayerReward:
    player_id: int
    squad_id: int
    is_helper: bool
    won: bool
    currency: int
    xp: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class RewardLedger:
    """Exactly what a match credited, persisted on the match result."""

    match_id: int
    ladder_id: str
    winner_id: int
    loser_id: int
    distributed_at: int
    ladder_points: dict[str, PointChange] = field(default_factory=dict)
    squad_points: dict[str, PointChange] = field(default_factory=dict)
    players: list[PlayerReward] = field(default_factory=list)
    roster_fallback: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "match_id": self.match_id,
            "ladder_id": self.ladder_id,
            "winner_id": self.winner_id,
            "loser_id": self.loser_id,
            "distributed_at": self.distributed_at,
            "ladder_points": {k: v.to_dict() for k, v in self.ladder_points.items()},
            "squad_points": {k: v.to_dict() for k, v in self.squad_points.items()},
            "players": [p.to_dict() for p in self.players],
            "roster_fallback": list(self.roster_fallback),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RewardLedger":
        return cls(
            match_id=int(data["match_id"]),
            ladder_id=data["ladder_id"],
            winner_id=int(data["winner_id"]),
            loser_id=int(data["loser_id"]),
            distributed_at=int(data.get("distributed_at", 0)),
            ladder_points={
                k: PointChange(**v) for k, v in data.get("ladder_points", {}).items()
            },
            squad_points={k: PointChange(**v) for k, v in data.get("squad_points", {}).items()},
            players=[PlayerReward(**p) for p in data.get("players", [])],
            roster_fallback=list(data.get("roster_fallback", [])),
        )
