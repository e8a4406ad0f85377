"""
Read access to squad totals and per-player stats.
"""

from domain.models.squad import PlayerStats, SquadStats
from repositories.base_repository import BaseRepository
from repositories.interfaces import IStatsRepository


class StatsRepository(BaseRepository, IStatsRepository):
    def get_squad_stats(self, squad_id: int) -> SquadStats:
        """Totals for a squad; zeros if it never played."""
        row = self.fetch_one(
            "SELECT total_points, total_wins, total_losses FROM squad_stats WHERE squad_id = ?",
            (squad_id,),
        )
        if not row:
            return SquadStats(squad_id=squad_id)
        return SquadStats(
            squad_id=squad_id,
            total_points=row["total_points"],
            total_wins=row["total_wins"],
            total_losses=row["total_losses"],
        )

    def get_player_stats(self, player_id: int) -> PlayerStats:
        row = self.fetch_one(
            "SELECT wins, losses, xp, currency_balance FROM player_stats WHERE player_id = ?",
            (player_id,),
        )
        if not row:
            return PlayerStats(player_id=player_id)
        return PlayerStats(
            player_id=player_id,
            wins=row["wins"],
            losses=row["losses"],
            xp=row["xp"],
            currency_balance=row["currency_balance"],
        )
