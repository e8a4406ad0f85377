"""
Reward distribution for completed ladder matches.

Pays ladder standing, squad totals and every roster player exactly once per
match. The write happens in one storage transaction guarded by the match's
ledger flag, so a retry after a crash either finds the ledger and stops, or
finds nothing written and pays in full.
"""

import logging
import random
import sqlite3
import time
from collections.abc import Callable

from domain.models.match import Match, MatchStatus, RosterEntry
from domain.models.rewards import PlayerReward, RewardLedger, RewardTable
from repositories.interfaces import IMatchRepository, IRewardRepository, ISquadRepository
from services import error_codes
from services.exceptions import DependencyUnavailableError
from services.interfaces import IRewardDistributionService
from services.notification_service import REWARDS_DISTRIBUTED, EventPublisher, MatchEvent
from services.result import Result
from services.reward_config_service import RewardConfigService

logger = logging.getLogger("ladder_bot.services.reward_distribution")

RANKED_TIER = "ranked"


class RewardDistributionService(IRewardDistributionService):
    """
    Turns a finalized match into ledger-backed point, currency and XP changes.
    """

    def __init__(
        self,
        reward_repo: IRewardRepository,
        match_repo: IMatchRepository,
        squad_repo: ISquadRepository,
        reward_config: RewardConfigService,
        publisher: EventPublisher | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.reward_repo = reward_repo
        self.match_repo = match_repo
        self.squad_repo = squad_repo
        self.reward_config = reward_config
        self.publisher = publisher
        self._rng = rng or random.Random()
        self._clock = clock

    def resolve_table(self, match: Match) -> RewardTable:
        """Ranked ladders pay per game mode; every other ladder pays its tier table."""
        if self.reward_config.tier_for_ladder(match.ladder_id) == RANKED_TIER:
            return self.reward_config.get_ranked_rewards(match.game_mode, match.mode.value)
        return self.reward_config.get_ladder_rewards(match.ladder_id)

    def _roster_or_fallback(self, match: Match, squad_id: int) -> tuple[list[RosterEntry], bool]:
        """
        The locked roster for a squad, or its current members truncated to the
        match team size when no roster was ever captured.
        """
        roster = match.roster_for(squad_id)
        if roster:
            return roster, False
        squad = self.squad_repo.get_squad(squad_id)
        members = squad.members[: match.team_size] if squad else []
        logger.warning(
            f"Match {match.match_id}: empty roster for squad {squad_id}, "
            f"falling back to {len(members)} current members"
        )
        return [RosterEntry(player_id=m.player_id, display_name=m.display_name) for m in members], True

    def _player_rewards(
        self, roster: list[RosterEntry], squad_id: int, won: bool, table: RewardTable
    ) -> list[PlayerReward]:
        rewards = []
        seen: set[int] = set()
        for entry in roster:
            if entry.player_id in seen:
                continue
            seen.add(entry.player_id)
            if won:
                # Each winner rolls independently
                xp = self._rng.randint(table.player_xp_win_min, table.player_xp_win_max)
                currency = table.player_currency_win
            else:
                xp = 0
                currency = table.player_currency_loss
            rewards.append(
                PlayerReward(
                    player_id=entry.player_id,
                    squad_id=squad_id,
                    is_helper=entry.is_helper,
                    won=won,
                    currency=currency,
                    xp=xp,
                )
            )
        return rewards

    def distribute(self, match: Match) -> Result[RewardLedger]:
        """
        Pay out a completed match.

        A match that already carries a ledger is left untouched and reported
        with REWARDS_ALREADY_GIVEN, which makes retries safe.
        """
        if match.status != MatchStatus.COMPLETED:
            return Result.fail("Match is not completed.", code=error_codes.INVALID_STATUS)
        if match.result.rewards_given:
            return Result.fail(
                "Rewards were already distributed for this match.",
                code=error_codes.REWARDS_ALREADY_GIVEN,
            )
        winner_id = match.result.winner
        loser_id = match.other_squad(winner_id) if winner_id is not None else None
        if winner_id is None or loser_id is None:
            return Result.fail("Match has no valid winner.", code=error_codes.INVALID_WINNER)

        try:
            table = self.resolve_table(match)
        except DependencyUnavailableError as exc:
            logger.error(f"Match {match.match_id}: reward config unavailable: {exc}")
            return Result.fail(
                "Reward configuration is unavailable.", code=error_codes.DEPENDENCY_UNAVAILABLE
            )

        try:
            winner_roster, winner_fallback = self._roster_or_fallback(match, winner_id)
            loser_roster, loser_fallback = self._roster_or_fallback(match, loser_id)
        except sqlite3.Error as exc:
            logger.error(f"Match {match.match_id}: squad lookup failed: {exc}")
            return Result.fail(
                "Squad data is unavailable.", code=error_codes.DEPENDENCY_UNAVAILABLE
            )
        player_rewards = self._player_rewards(winner_roster, winner_id, True, table)
        winner_players = {r.player_id for r in player_rewards}
        player_rewards += [
            r
            for r in self._player_rewards(loser_roster, loser_id, False, table)
            if r.player_id not in winner_players
        ]
        roster_fallback = [
            squad_id
            for squad_id, used in ((winner_id, winner_fallback), (loser_id, loser_fallback))
            if used
        ]

        try:
            ledger = self.reward_repo.apply_match_rewards_atomic(
                match_id=match.match_id,
                ladder_id=match.ladder_id,
                winner_id=winner_id,
                loser_id=loser_id,
                table=table,
                player_rewards=player_rewards,
                roster_fallback=roster_fallback,
                distributed_at=int(self._clock()),
            )
        except ValueError as exc:
            message = str(exc)
            if "already" in message.lower():
                return Result.fail(message, code=error_codes.REWARDS_ALREADY_GIVEN)
            if "not found" in message.lower():
                return Result.fail(message, code=error_codes.MATCH_NOT_FOUND)
            return Result.fail(message, code=error_codes.CONCURRENT_MODIFICATION)
        except sqlite3.Error as exc:
            logger.error(f"Match {match.match_id}: reward write failed: {exc}")
            return Result.fail(
                "Reward storage is unavailable. Payout will be retried.",
                code=error_codes.DEPENDENCY_UNAVAILABLE,
            )

        match.result.rewards_given = ledger.to_dict()
        match.version += 1
        logger.info(
            f"Match {match.match_id} rewards distributed: winner {winner_id}, loser {loser_id}, "
            f"{len(player_rewards)} players"
        )
        if self.publisher:
            self.publisher.publish(
                REWARDS_DISTRIBUTED,
                MatchEvent(
                    topic=REWARDS_DISTRIBUTED,
                    match_id=match.match_id,
                    squad_ids=(winner_id, loser_id),
                    payload=ledger.to_dict(),
                ),
            )
        return Result.ok(ledger)

    def resume_pending_distributions(self) -> list[int]:
        """Pay every completed match that has no ledger yet. Returns ids paid now."""
        paid = []
        for match in self.match_repo.list_completed_without_rewards():
            result = self.distribute(match)
            if result.success:
                paid.append(match.match_id)
            elif result.error_code != error_codes.REWARDS_ALREADY_GIVEN:
                logger.error(
                    f"Could not resume rewards for match {match.match_id}: "
                    f"[{result.error_code}] {result.error}"
                )
        if paid:
            logger.info(f"Resumed reward distribution for matches {paid}")
        return paid
