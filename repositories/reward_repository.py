"""
Repository that pays out a completed match in a single transaction.
"""

import json
import logging

from domain.models.match import MatchStatus
from domain.models.rewards import PlayerReward, PointChange, RewardLedger, RewardTable
from domain.services.match_rules import apply_increment, clamp_decrement
from repositories.base_repository import BaseRepository
from repositories.interfaces import IRewardRepository

logger = logging.getLogger("ladder_bot.repositories.reward")


class RewardRepository(BaseRepository, IRewardRepository):
    def apply_match_rewards_atomic(
        self,
        match_id: int,
        ladder_id: str,
        winner_id: int,
        loser_id: int,
        table: RewardTable,
        player_rewards: list[PlayerReward],
        roster_fallback: list[int],
        distributed_at: int,
    ) -> RewardLedger:
        """
        Credit ladder standing, squad totals and player stats for one match.

        Runs under BEGIN IMMEDIATE. The match row is the guard: it must be
        completed with no ledger recorded yet, otherwise ValueError is raised
        and nothing is written. Decrements read the current value inside the
        transaction and clamp at zero.

        Returns:
            The ledger that was persisted on the match.

        Raises:
            ValueError: match missing, not completed, or already rewarded.
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT status, rewards_distributed, payload, version
                FROM ladder_matches WHERE match_id = ?
                """,
                (match_id,),
            )
            row = cursor.fetchone()
            if not row:
                raise ValueError("Match not found.")
            if row["status"] != MatchStatus.COMPLETED.value:
                raise ValueError("Match is not completed.")
            if row["rewards_distributed"]:
                raise ValueError("Rewards already distributed.")

            ledger = RewardLedger(
                match_id=match_id,
                ladder_id=ladder_id,
                winner_id=winner_id,
                loser_id=loser_id,
                distributed_at=distributed_at,
                players=list(player_rewards),
                roster_fallback=list(roster_fallback),
            )

            winner_ladder = self._apply_ladder(
                cursor, winner_id, ladder_id, table.ladder_points_win, won=True
            )
            loser_ladder = self._apply_ladder(
                cursor, loser_id, ladder_id, table.ladder_points_loss, won=False
            )
            if winner_ladder:
                ledger.ladder_points["winner"] = winner_ladder
            if loser_ladder:
                ledger.ladder_points["loser"] = loser_ladder

            ledger.squad_points["winner"] = self._apply_squad(
                cursor, winner_id, table.squad_points_win, won=True
            )
            ledger.squad_points["loser"] = self._apply_squad(
                cursor, loser_id, table.squad_points_loss, won=False
            )

            for reward in player_rewards:
                cursor.execute(
                    "INSERT OR IGNORE INTO player_stats (player_id) VALUES (?)",
                    (reward.player_id,),
                )
                cursor.execute(
                    """
                    UPDATE player_stats
                    SET wins = wins + ?,
                        losses = losses + ?,
                        xp = xp + ?,
                        currency_balance = currency_balance + ?
                    WHERE player_id = ?
                    """,
                    (
                        1 if reward.won else 0,
                        0 if reward.won else 1,
                        reward.xp,
                        reward.currency,
                        reward.player_id,
                    ),
                )

            payload = json.loads(row["payload"])
            payload.setdefault("result", {})["rewards_given"] = ledger.to_dict()
            payload["version"] = row["version"] + 1
            cursor.execute(
                """
                UPDATE ladder_matches
                SET rewards_distributed = 1, payload = ?, version = ?,
                    updated_at = CURRENT_TIMESTAMP
                WHERE match_id = ? AND version = ?
                """,
                (json.dumps(payload), row["version"] + 1, match_id, row["version"]),
            )
            if cursor.rowcount != 1:
                raise ValueError("Match changed during reward distribution.")

        return ledger

    def _apply_ladder(
        self, cursor, squad_id: int, ladder_id: str, amount: int, won: bool
    ) -> PointChange | None:
        cursor.execute(
            "SELECT points FROM squad_ladders WHERE squad_id = ? AND ladder_id = ?",
            (squad_id, ladder_id),
        )
        row = cursor.fetchone()
        if not row:
            logger.warning(
                f"Squad {squad_id} has no standing on ladder {ladder_id}; skipping ladder points"
            )
            return None
        change = apply_increment(row["points"], amount) if won else clamp_decrement(
            row["points"], amount
        )
        cursor.execute(
            """
            UPDATE squad_ladders
            SET points = ?, wins = wins + ?, losses = losses + ?
            WHERE squad_id = ? AND ladder_id = ?
            """,
            (change.after, 1 if won else 0, 0 if won else 1, squad_id, ladder_id),
        )
        return change

    def _apply_squad(self, cursor, squad_id: int, amount: int, won: bool) -> PointChange:
        cursor.execute("INSERT OR IGNORE INTO squad_stats (squad_id) VALUES (?)", (squad_id,))
        cursor.execute("SELECT total_points FROM squad_stats WHERE squad_id = ?", (squad_id,))
        current = cursor.fetchone()["total_points"]
        change = apply_increment(current, amount) if won else clamp_decrement(current, amount)
        cursor.execute(
            """
            UPDATE squad_stats
            SET total_points = ?, total_wins = total_wins + ?, total_losses = total_losses + ?
            WHERE squad_id = ?
            """,
            (change.after, 1 if won else 0, 0 if won else 1, squad_id),
        )
        return change
