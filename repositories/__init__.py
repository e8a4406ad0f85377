"""
Repository layer for data access abstraction.
"""

from repositories.base_repository import BaseRepository
from repositories.interfaces import (
    ILadderRepository,
    IMapRepository,
    IMatchRepository,
    IRewardConfigRepository,
    IRewardRepository,
    ISquadRepository,
    IStatsRepository,
)
from repositories.ladder_repository import LadderRepository
from repositories.map_repository import MapRepository
from repositories.match_repository import MatchRepository
from repositories.reward_config_repository import RewardConfigRepository
from repositories.reward_repository import RewardRepository
from repositories.squad_repository import SquadRepository
from repositories.stats_repository import StatsRepository

__all__ = [
    "BaseRepository",
    "LadderRepository",
    "MapRepository",
    "MatchRepository",
    "RewardConfigRepository",
    "RewardRepository",
    "SquadRepository",
    "StatsRepository",
    "ILadderRepository",
    "IMapRepository",
    "IMatchRepository",
    "IRewardConfigRepository",
    "IRewardRepository",
    "ISquadRepository",
    "IStatsRepository",
]
