"""
Squad, ladder standing and player stat models.
"""

from dataclasses import dataclass, field
from enum import Enum


class SquadRole(str, Enum):
    LEADER = "leader"
    OFFICER = "officer"
    MEMBER = "member"


@dataclass(frozen=True)
class SquadMember:
    player_id: int
    display_name: str
    role: SquadRole = SquadRole.MEMBER


@dataclass
class Squad:
    squad_id: int
    name: str
    tag: str = ""
    members: list[SquadMember] = field(default_factory=list)

    def role_of(self, player_id: int) -> SquadRole | None:
        for member in self.members:
            if member.player_id == player_id:
                return member.role
        return None

    @property
    def leader_id(self) -> int | None:
        for member in self.members:
            if member.role == SquadRole.LEADER:
                return member.player_id
        return None


@dataclass(frozen=True)
class Ladder:
    ladder_id: str
    name: str
    min_team_size: int
    max_team_size: int
    reward_tier: str  # "chill" | "competitive"


@dataclass
class LadderStanding:
    squad_id: int
    ladder_id: str
    points: int = 0
    wins: int = 0
    losses: int = 0
    registered_at: int | None = None


@dataclass
class SquadStats:
    squad_id: int
    total_points: int = 0
    total_wins: int = 0
    total_losses: int = 0


@dataclass
class PlayerStats:
    player_id: int
    wins: int = 0
    losses: int = 0
    xp: int = 0
    currency_balance: int = 0
