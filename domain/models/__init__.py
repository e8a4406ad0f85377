"""
Domain models - pure data structures representing business entities.
"""

from domain.models.match import (
    DisputeInfo,
    Evidence,
    GameVariant,
    MapPolicy,
    Match,
    MatchResult,
    MatchStatus,
    RosterEntry,
)
from domain.models.rewards import PlayerReward, PointChange, RewardLedger, RewardTable
from domain.models.squad import (
    Ladder,
    LadderStanding,
    PlayerStats,
    Squad,
    SquadMember,
    SquadRole,
    SquadStats,
)

__all__ = [
    "DisputeInfo",
    "Evidence",
    "GameVariant",
    "Ladder",
    "LadderStanding",
    "MapPolicy",
    "Match",
    "MatchResult",
    "MatchStatus",
    "PlayerReward",
    "PlayerStats",
    "PointChange",
    "RewardLedger",
    "RewardTable",
    "RosterEntry",
    "Squad",
    "SquadMember",
    "SquadRole",
    "SquadStats",
]
