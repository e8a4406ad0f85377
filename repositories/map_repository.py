"""
Repository for the map pool.
"""

from repositories.base_repository import BaseRepository
from repositories.interfaces import IMapRepository


class MapRepository(BaseRepository, IMapRepository):
    def get_pool(self, ladder_id: str, game_mode: str) -> list[str]:
        """Distinct active map names playable on a ladder and game mode."""
        rows = self.fetch_all(
            """
            SELECT DISTINCT name FROM maps
            WHERE ladder_id = ? AND game_mode = ? AND is_active = 1
            ORDER BY name
            """,
            (ladder_id, game_mode),
        )
        return [row["name"] for row in rows]

    def add_map(self, name: str, ladder_id: str, game_mode: str) -> None:
        self.execute(
            """
            INSERT INTO maps (name, ladder_id, game_mode, is_active)
            VALUES (?, ?, ?, 1)
            ON CONFLICT(name, ladder_id, game_mode) DO UPDATE SET is_active = 1
            """,
            (name, ladder_id, game_mode),
        )

    def set_active(self, name: str, active: bool) -> int:
        """Toggle a map everywhere it appears. Returns rows changed."""
        return self.execute(
            "UPDATE maps SET is_active = ? WHERE name = ?", (1 if active else 0, name)
        )
