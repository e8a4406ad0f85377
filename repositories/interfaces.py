"""
Abstract repository interfaces for data access.

These interfaces define the contracts implemented by concrete repositories.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from domain.models.match import Match, MatchStatus
    from domain.models.rewards import PlayerReward, RewardLedger, RewardTable
    from domain.models.squad import (
        Ladder,
        LadderStanding,
        PlayerStats,
        Squad,
        SquadRole,
        SquadStats,
    )


class ISquadRepository(ABC):
    @abstractmethod
    def create_squad(self, name: str, tag: str = "") -> int: ...

    @abstractmethod
    def add_member(
        self, squad_id: int, player_id: int, display_name: str, role: "SquadRole"
    ) -> None: ...

    @abstractmethod
    def remove_member(self, player_id: int) -> bool: ...

    @abstractmethod
    def get_squad(self, squad_id: int) -> "Squad | None": ...

    @abstractmethod
    def get_squad_for_player(self, player_id: int) -> "Squad | None": ...

    @abstractmethod
    def get_squad_names(self, squad_ids: list[int]) -> dict[int, str]: ...


class ILadderRepository(ABC):
    @abstractmethod
    def get_ladder(self, ladder_id: str) -> "Ladder | None": ...

    @abstractmethod
    def list_ladders(self) -> list["Ladder"]: ...

    @abstractmethod
    def register(self, squad_id: int, ladder_id: str, registered_at: int) -> bool: ...

    @abstractmethod
    def unregister(self, squad_id: int, ladder_id: str) -> bool: ...

    @abstractmethod
    def is_registered(self, squad_id: int, ladder_id: str) -> bool: ...

    @abstractmethod
    def get_standing(self, squad_id: int, ladder_id: str) -> "LadderStanding | None": ...

    @abstractmethod
    def get_leaderboard(self, ladder_id: str, limit: int = 10) -> list["LadderStanding"]: ...


class IMatchRepository(ABC):
    @abstractmethod
    def create(self, match: "Match") -> "Match": ...

    @abstractmethod
    def get(self, match_id: int) -> "Match | None": ...

    @abstractmethod
    def save_if_unchanged(self, match: "Match", expected_version: int) -> bool:
        """Persist match only if its stored version still equals expected_version."""
        ...

    @abstractmethod
    def find_pending_ready_match(self, squad_id: int) -> "Match | None": ...

    @abstractmethod
    def find_scheduled_near(
        self, squad_id: int, scheduled_at: int, window_seconds: int
    ) -> list["Match"]: ...

    @abstractmethod
    def get_last_accepted_between(
        self, squad_a: int, squad_b: int, statuses: list["MatchStatus"]
    ) -> int | None: ...

    @abstractmethod
    def expire_stale(self, now: int, ready_expiry_seconds: int) -> list[int]: ...

    @abstractmethod
    def list_pending(self, ladder_id: str | None = None, mode: str | None = None) -> list["Match"]: ...

    @abstractmethod
    def list_for_squad(
        self, squad_id: int, statuses: list["MatchStatus"], limit: int | None = None
    ) -> list["Match"]: ...

    @abstractmethod
    def list_for_player(
        self, player_id: int, statuses: list["MatchStatus"], limit: int | None = None
    ) -> list["Match"]: ...

    @abstractmethod
    def list_by_status(self, status: "MatchStatus") -> list["Match"]: ...

    @abstractmethod
    def list_completed_without_rewards(self) -> list["Match"]: ...


class IRewardRepository(ABC):
    @abstractmethod
    def apply_match_rewards_atomic(
        self,
        match_id: int,
        ladder_id: str,
        winner_id: int,
        loser_id: int,
        table: "RewardTable",
        player_rewards: list["PlayerReward"],
        roster_fallback: list[int],
        distributed_at: int,
    ) -> "RewardLedger": ...


class IStatsRepository(ABC):
    @abstractmethod
    def get_squad_stats(self, squad_id: int) -> "SquadStats": ...

    @abstractmethod
    def get_player_stats(self, player_id: int) -> "PlayerStats": ...


class IRewardConfigRepository(ABC):
    @abstractmethod
    def get_override(self, config_key: str) -> dict | None: ...

    @abstractmethod
    def get_all_overrides(self) -> dict[str, dict]: ...

    @abstractmethod
    def set_override(self, config_key: str, payload: dict) -> None: ...

    @abstractmethod
    def delete_override(self, config_key: str) -> bool: ...


class IMapRepository(ABC):
    @abstractmethod
    def get_pool(self, ladder_id: str, game_mode: str) -> list[str]: ...

    @abstractmethod
    def add_map(self, name: str, ladder_id: str, game_mode: str) -> None: ...

    @abstractmethod
    def set_active(self, name: str, active: bool) -> int: ...
