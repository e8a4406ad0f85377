"""
Repository for ladders, squad registrations and ladder standings.
"""

from domain.models.squad import Ladder, LadderStanding
from repositories.base_repository import BaseRepository
from repositories.interfaces import ILadderRepository


class LadderRepository(BaseRepository, ILadderRepository):
    @staticmethod
    def _row_to_standing(row) -> LadderStanding:
        return LadderStanding(
            squad_id=row["squad_id"],
            ladder_id=row["ladder_id"],
            points=row["points"],
            wins=row["wins"],
            losses=row["losses"],
            registered_at=row["registered_at"],
        )

    @staticmethod
    def _row_to_ladder(row) -> Ladder:
        return Ladder(
            ladder_id=row["ladder_id"],
            name=row["name"],
            min_team_size=row["min_team_size"],
            max_team_size=row["max_team_size"],
            reward_tier=row["reward_tier"],
        )

    def get_ladder(self, ladder_id: str) -> Ladder | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT ladder_id, name, min_team_size, max_team_size, reward_tier
                FROM ladders WHERE ladder_id = ?
                """,
                (ladder_id,),
            )
            row = cursor.fetchone()
            return self._row_to_ladder(row) if row else None

    def list_ladders(self) -> list[Ladder]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT ladder_id, name, min_team_size, max_team_size, reward_tier
                FROM ladders ORDER BY min_team_size, ladder_id
                """
            )
            return [self._row_to_ladder(row) for row in cursor.fetchall()]

    def register(self, squad_id: int, ladder_id: str, registered_at: int) -> bool:
        """Register a squad. Returns False if it was already registered."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT OR IGNORE INTO squad_ladders (squad_id, ladder_id, registered_at)
                VALUES (?, ?, ?)
                """,
                (squad_id, ladder_id, registered_at),
            )
            return cursor.rowcount == 1

    def unregister(self, squad_id: int, ladder_id: str) -> bool:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM squad_ladders WHERE squad_id = ? AND ladder_id = ?",
                (squad_id, ladder_id),
            )
            return cursor.rowcount > 0

    def is_registered(self, squad_id: int, ladder_id: str) -> bool:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT 1 FROM squad_ladders WHERE squad_id = ? AND ladder_id = ?",
                (squad_id, ladder_id),
            )
            return cursor.fetchone() is not None

    def get_standing(self, squad_id: int, ladder_id: str) -> LadderStanding | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT squad_id, ladder_id, points, wins, losses, registered_at
                FROM squad_ladders WHERE squad_id = ? AND ladder_id = ?
                """,
                (squad_id, ladder_id),
            )
            row = cursor.fetchone()
            return self._row_to_standing(row) if row else None

    def get_leaderboard(self, ladder_id: str, limit: int = 10) -> list[LadderStanding]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT squad_id, ladder_id, points, wins, losses, registered_at
                FROM squad_ladders
                WHERE ladder_id = ?
                ORDER BY points DESC, wins DESC, losses ASC, squad_id ASC
                LIMIT ?
                """,
                (ladder_id, limit),
            )
            return [self._row_to_standing(row) for row in cursor.fetchall()]
