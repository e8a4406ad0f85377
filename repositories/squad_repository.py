"""
Repository for squads and their members.

Squad management itself happens elsewhere; the bot only needs to read
membership and roles, plus enough writes to seed squads.
"""

from domain.models.squad import Squad, SquadMember, SquadRole
from repositories.base_repository import BaseRepository
from repositories.interfaces import ISquadRepository


class SquadRepository(BaseRepository, ISquadRepository):
    def create_squad(self, name: str, tag: str = "") -> int:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("INSERT INTO squads (name, tag) VALUES (?, ?)", (name, tag))
            squad_id = cursor.lastrowid
            cursor.execute("INSERT OR IGNORE INTO squad_stats (squad_id) VALUES (?)", (squad_id,))
            return squad_id

    def add_member(
        self, squad_id: int, player_id: int, display_name: str, role: SquadRole = SquadRole.MEMBER
    ) -> None:
        """Add or move a player into a squad with the given role."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO players (player_id, display_name)
                VALUES (?, ?)
                ON CONFLICT(player_id) DO UPDATE SET display_name = excluded.display_name
                """,
                (player_id, display_name),
            )
            cursor.execute(
                """
                INSERT INTO squad_members (player_id, squad_id, display_name, role)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(player_id) DO UPDATE SET
                    squad_id = excluded.squad_id,
                    display_name = excluded.display_name,
                    role = excluded.role
                """,
                (player_id, squad_id, display_name, SquadRole(role).value),
            )

    def remove_member(self, player_id: int) -> bool:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM squad_members WHERE player_id = ?", (player_id,))
            return cursor.rowcount > 0

    def _load_squad(self, cursor, squad_id: int) -> Squad | None:
        cursor.execute("SELECT squad_id, name, tag FROM squads WHERE squad_id = ?", (squad_id,))
        row = cursor.fetchone()
        if not row:
            return None
        cursor.execute(
            """
            SELECT player_id, display_name, role FROM squad_members
            WHERE squad_id = ?
            ORDER BY CASE role WHEN 'leader' THEN 0 WHEN 'officer' THEN 1 ELSE 2 END,
                     joined_at, player_id
            """,
            (squad_id,),
        )
        members = [
            SquadMember(
                player_id=m["player_id"],
                display_name=m["display_name"],
                role=SquadRole(m["role"]),
            )
            for m in cursor.fetchall()
        ]
        return Squad(squad_id=row["squad_id"], name=row["name"], tag=row["tag"], members=members)

    def get_squad(self, squad_id: int) -> Squad | None:
        with self.connection() as conn:
            return self._load_squad(conn.cursor(), squad_id)

    def get_squad_for_player(self, player_id: int) -> Squad | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT squad_id FROM squad_members WHERE player_id = ?", (player_id,))
            row = cursor.fetchone()
            if not row:
                return None
            return self._load_squad(cursor, row["squad_id"])

    def get_squad_names(self, squad_ids: list[int]) -> dict[int, str]:
        if not squad_ids:
            return {}
        placeholders = ",".join("?" for _ in squad_ids)
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT squad_id, name FROM squads WHERE squad_id IN ({placeholders})",
                list(squad_ids),
            )
            return {row["squad_id"]: row["name"] for row in cursor.fetchall()}
