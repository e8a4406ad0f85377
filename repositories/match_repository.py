"""
Repository for ladder matches.

The full Match aggregate is stored as a JSON payload; the columns beside it
exist for querying. Every write after creation is a compare-and-swap on the
row's version so two concurrent transitions can never both land.
"""

import json
import logging
import sqlite3

from domain.models.match import Match, MatchStatus
from repositories.base_repository import BaseRepository
from repositories.interfaces import IMatchRepository

logger = logging.getLogger("ladder_bot.repositories.match")

_ACTIVE_SCHEDULE_STATUSES = (MatchStatus.PENDING.value, MatchStatus.ACCEPTED.value)


class MatchRepository(BaseRepository, IMatchRepository):
    """
    Data access for ladder matches.
    """

    @staticmethod
    def _row_to_match(row) -> Match:
        match = Match.from_dict(json.loads(row["payload"]))
        match.match_id = row["match_id"]
        match.version = row["version"]
        return match

    @staticmethod
    def _column_values(match: Match) -> tuple:
        return (
            match.status.value,
            match.opponent_id,
            match.scheduled_at,
            match.ready_created_at,
            match.accepted_at,
            match.completed_at,
            json.dumps(match.to_dict()),
        )

    def create(self, match: Match) -> Match:
        """
        Insert a new match and return it with its assigned id.

        Raises ValueError when the squad already has a ready match pending.
        """
        with self.connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    """
                    INSERT INTO ladder_matches (
                        ladder_id, mode, game_mode, team_size, challenger_id, created_at,
                        status, opponent_id, scheduled_at, ready_created_at,
                        accepted_at, completed_at, payload, version
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0)
                    """,
                    (
                        match.ladder_id,
                        match.mode.value,
                        match.game_mode,
                        match.team_size,
                        match.challenger_id,
                        match.created_at,
                        *self._column_values(match),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ValueError(
                    f"Squad {match.challenger_id} already has a ready match pending."
                ) from exc
            match.match_id = cursor.lastrowid
            match.version = 0
            cursor.execute(
                "UPDATE ladder_matches SET payload = ? WHERE match_id = ?",
                (json.dumps(match.to_dict()), match.match_id),
            )
        return match

    def get(self, match_id: int) -> Match | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT match_id, payload, version FROM ladder_matches WHERE match_id = ?",
                (match_id,),
            )
            row = cursor.fetchone()
            return self._row_to_match(row) if row else None

    def save_if_unchanged(self, match: Match, expected_version: int) -> bool:
        """
        Compare-and-swap write of the whole aggregate.

        Returns False (and leaves match.version untouched) when another writer
        already moved the row past expected_version.
        """
        new_version = expected_version + 1
        match.version = new_version
        try:
            with self.atomic_transaction() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    UPDATE ladder_matches
                    SET status = ?, opponent_id = ?, scheduled_at = ?, ready_created_at = ?,
                        accepted_at = ?, completed_at = ?, payload = ?, version = ?,
                        updated_at = CURRENT_TIMESTAMP
                    WHERE match_id = ? AND version = ?
                    """,
                    (*self._column_values(match), new_version, match.match_id, expected_version),
                )
                updated = cursor.rowcount == 1
        except Exception:
            match.version = expected_version
            raise
        if not updated:
            match.version = expected_version
            logger.debug(
                f"Version conflict saving match {match.match_id} (expected v{expected_version})"
            )
        return updated

    def find_pending_ready_match(self, squad_id: int) -> Match | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT match_id, payload, version FROM ladder_matches
                WHERE challenger_id = ? AND status = ? AND scheduled_at IS NULL
                ORDER BY created_at DESC
                LIMIT 1
                """,
                (squad_id, MatchStatus.PENDING.value),
            )
            row = cursor.fetchone()
            return self._row_to_match(row) if row else None

    def find_scheduled_near(
        self, squad_id: int, scheduled_at: int, window_seconds: int
    ) -> list[Match]:
        """Scheduled matches involving the squad whose start lies strictly inside the window."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT match_id, payload, version FROM ladder_matches
                WHERE (challenger_id = ? OR opponent_id = ?)
                  AND status IN (?, ?)
                  AND scheduled_at IS NOT NULL
                  AND scheduled_at > ? AND scheduled_at < ?
                ORDER BY scheduled_at
                """,
                (
                    squad_id,
                    squad_id,
                    *_ACTIVE_SCHEDULE_STATUSES,
                    scheduled_at - window_seconds,
                    scheduled_at + window_seconds,
                ),
            )
            return [self._row_to_match(row) for row in cursor.fetchall()]

    def get_last_accepted_between(
        self, squad_a: int, squad_b: int, statuses: list[MatchStatus]
    ) -> int | None:
        """Most recent acceptance time of a match between the two squads, either side."""
        if not statuses:
            return None
        placeholders = ",".join("?" for _ in statuses)
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT MAX(accepted_at) AS last_accepted FROM ladder_matches
                WHERE ((challenger_id = ? AND opponent_id = ?)
                    OR (challenger_id = ? AND opponent_id = ?))
                  AND accepted_at IS NOT NULL
                  AND status IN ({placeholders})
                """,
                (squad_a, squad_b, squad_b, squad_a, *[s.value for s in statuses]),
            )
            row = cursor.fetchone()
            return row["last_accepted"] if row and row["last_accepted"] is not None else None

    def expire_stale(self, now: int, ready_expiry_seconds: int) -> list[int]:
        """
        Move every stale pending match to expired in one transaction.

        Scheduled matches are stale once their start time has passed; ready
        matches once their acceptance window has elapsed.
        """
        expired_ids = []
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT match_id, payload, version FROM ladder_matches
                WHERE status = ?
                  AND (
                    (scheduled_at IS NOT NULL AND scheduled_at < ?)
                    OR (scheduled_at IS NULL AND COALESCE(ready_created_at, created_at) + ? < ?)
                  )
                """,
                (MatchStatus.PENDING.value, now, ready_expiry_seconds, now),
            )
            for row in cursor.fetchall():
                match = self._row_to_match(row)
                match.status = MatchStatus.EXPIRED
                match.version = row["version"] + 1
                cursor.execute(
                    """
                    UPDATE ladder_matches
                    SET status = ?, payload = ?, version = ?, updated_at = CURRENT_TIMESTAMP
                    WHERE match_id = ? AND version = ?
                    """,
                    (
                        match.status.value,
                        json.dumps(match.to_dict()),
                        match.version,
                        match.match_id,
                        row["version"],
                    ),
                )
                if cursor.rowcount == 1:
                    expired_ids.append(match.match_id)
        return expired_ids

    def list_pending(self, ladder_id: str | None = None, mode: str | None = None) -> list[Match]:
        """Pending matches, ready ones first, then by scheduled start."""
        query = "SELECT match_id, payload, version FROM ladder_matches WHERE status = ?"
        params: list = [MatchStatus.PENDING.value]
        if ladder_id:
            query += " AND ladder_id = ?"
            params.append(ladder_id)
        if mode:
            query += " AND mode = ?"
            params.append(mode)
        query += " ORDER BY scheduled_at IS NOT NULL, scheduled_at, created_at"
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [self._row_to_match(row) for row in cursor.fetchall()]

    def list_for_squad(
        self, squad_id: int, statuses: list[MatchStatus], limit: int | None = None
    ) -> list[Match]:
        """Matches the squad took part in, newest first."""
        if not statuses:
            return []
        placeholders = ",".join("?" for _ in statuses)
        query = f"""
            SELECT match_id, payload, version FROM ladder_matches
            WHERE (challenger_id = ? OR opponent_id = ?)
              AND status IN ({placeholders})
            ORDER BY COALESCE(completed_at, accepted_at, created_at) DESC, match_id DESC
        """
        params: list = [squad_id, squad_id, *[s.value for s in statuses]]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [self._row_to_match(row) for row in cursor.fetchall()]

    def list_for_player(
        self, player_id: int, statuses: list[MatchStatus], limit: int | None = None
    ) -> list[Match]:
        """Matches whose locked roster on either side includes the player, newest first."""
        if not statuses:
            return []
        placeholders = ",".join("?" for _ in statuses)
        query = f"""
            SELECT match_id, payload, version FROM ladder_matches
            WHERE status IN ({placeholders})
              AND EXISTS (
                SELECT 1 FROM json_each(ladder_matches.payload, '$.challenger_roster') AS r
                WHERE json_extract(r.value, '$.player_id') = ?
                UNION ALL
                SELECT 1 FROM json_each(ladder_matches.payload, '$.opponent_roster') AS r
                WHERE json_extract(r.value, '$.player_id') = ?
              )
            ORDER BY COALESCE(completed_at, accepted_at, created_at) DESC, match_id DESC
        """
        params: list = [*[s.value for s in statuses], player_id, player_id]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        return [self._row_to_match(row) for row in self.fetch_all(query, params)]

    def list_by_status(self, status: MatchStatus) -> list[Match]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT match_id, payload, version FROM ladder_matches
                WHERE status = ?
                ORDER BY match_id
                """,
                (status.value,),
            )
            return [self._row_to_match(row) for row in cursor.fetchall()]

    def list_completed_without_rewards(self) -> list[Match]:
        """Completed matches whose payout never landed (repair path)."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT match_id, payload, version FROM ladder_matches
                WHERE status = ? AND rewards_distributed = 0
                ORDER BY completed_at, match_id
                """,
                (MatchStatus.COMPLETED.value,),
            )
            return [self._row_to_match(row) for row in cursor.fetchall()]
