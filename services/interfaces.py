"""
Service layer interfaces (ABCs).

These abstract base classes define the contracts for the ladder services.
Services inherit from their corresponding interface so cogs and tests can
depend on the contract rather than the concrete class.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from domain.models.match import Match, RosterEntry
    from domain.models.rewards import RewardLedger, RewardTable
    from domain.models.squad import Ladder, LadderStanding
    from domain.services.match_permissions import Actor
    from services.result import Result


class IMatchLifecycleService(ABC):
    """Interface for the ladder match state machine."""

    @abstractmethod
    def resolve_actor(self, user_id: int, is_staff: bool = False, display_name: str = "") -> "Actor":
        """Build an Actor from the user's squad membership."""
        ...

    @abstractmethod
    def create_match(
        self,
        actor: "Actor",
        ladder_id: str,
        mode: str,
        game_mode: str,
        team_size: int,
        scheduled_at: int | None = None,
        map_policy: str = "fixed",
        map_name: str | None = None,
        roster: "list[RosterEntry] | None" = None,
    ) -> "Result[Match]":
        """Post a ready or scheduled challenge."""
        ...

    @abstractmethod
    def accept_match(
        self, actor: "Actor", match_id: int, roster: "list[RosterEntry] | None" = None
    ) -> "Result[Match]":
        """Accept a pending challenge."""
        ...

    @abstractmethod
    def declare_result(self, actor: "Actor", match_id: int, winner_squad_id: int) -> "Result[Match]":
        """Trusted single-step finalization by a squad leader."""
        ...

    @abstractmethod
    def report_result(
        self, actor: "Actor", match_id: int, challenger_score: int, opponent_score: int
    ) -> "Result[Match]":
        """Propose a score for the other squad to confirm."""
        ...

    @abstractmethod
    def confirm_result(self, actor: "Actor", match_id: int) -> "Result[Match]":
        """Confirm the other squad's report and complete the match."""
        ...

    @abstractmethod
    def cancel_match(self, actor: "Actor", match_id: int) -> "Result[Match]":
        """Unilateral cancel of an unaccepted match by its challenger."""
        ...

    @abstractmethod
    def request_cooperative_cancel(self, actor: "Actor", match_id: int) -> "Result[Match]":
        """Record a cancel request; cancels when both squads agree."""
        ...

    @abstractmethod
    def raise_dispute(self, actor: "Actor", match_id: int, reason: str = "") -> "Result[Match]":
        """Freeze the match pending staff review."""
        ...

    @abstractmethod
    def attach_dispute_evidence(
        self, actor: "Actor", match_id: int, url: str, description: str = ""
    ) -> "Result[Match]":
        """Add evidence to an open dispute."""
        ...

    @abstractmethod
    def resolve_dispute(
        self,
        actor: "Actor",
        match_id: int,
        winner_squad_id: int | None = None,
        cancel: bool = False,
    ) -> "Result[Match]":
        """Staff decision: award a winner or cancel."""
        ...

    @abstractmethod
    def revert_dispute(self, actor: "Actor", match_id: int) -> "Result[Match]":
        """Staff reopen of a disputed match."""
        ...

    @abstractmethod
    def submit_game_code(self, actor: "Actor", match_id: int, code: str) -> "Result[Match]":
        """Host team shares the lobby code."""
        ...

    @abstractmethod
    def post_chat_message(self, actor: "Actor", match_id: int, message: str) -> "Result[Match]":
        """Participants and staff talk on the match."""
        ...

    @abstractmethod
    def get_match(self, match_id: int) -> "Result[Match]":
        ...

    @abstractmethod
    def sweep_expired_matches(self) -> list[int]:
        """Expire stale pending matches; returns expired ids."""
        ...


class IRewardDistributionService(ABC):
    """Interface for exactly-once match payouts."""

    @abstractmethod
    def distribute(self, match: "Match") -> "Result[RewardLedger]":
        """Pay out a completed match once."""
        ...

    @abstractmethod
    def resume_pending_distributions(self) -> list[int]:
        """Pay completed matches that never received rewards."""
        ...


class IRewardConfigService(ABC):
    """Interface for reward table lookups."""

    @abstractmethod
    def get_ladder_rewards(self, ladder_id: str) -> "RewardTable":
        ...

    @abstractmethod
    def get_ranked_rewards(self, game_mode: str, mode: str) -> "RewardTable":
        ...

    @abstractmethod
    def invalidate(self) -> None:
        """Drop any cached configuration."""
        ...


class ILadderRegistryService(ABC):
    """Interface for ladder catalogue and squad registration."""

    @abstractmethod
    def get_ladder(self, ladder_id: str) -> "Ladder | None":
        ...

    @abstractmethod
    def is_registered(self, squad_id: int, ladder_id: str) -> bool:
        ...

    @abstractmethod
    def register_squad(self, squad_id: int, ladder_id: str) -> "Result[LadderStanding]":
        ...

    @abstractmethod
    def get_leaderboard(self, ladder_id: str, limit: int = 10) -> "list[LadderStanding]":
        ...
