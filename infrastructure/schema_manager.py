"""
Schema and migration management for SQLite database.
"""

import logging
import sqlite3

logger = logging.getLogger("ladder_bot.schema")

DEFAULT_LADDERS = [
    # (ladder_id, name, min_team_size, max_team_size, reward_tier)
    ("duo-trio", "Duo / Trio", 2, 3, "chill"),
    ("squad-team", "Squad / Team", 4, 5, "competitive"),
]

RANKED_LADDER = ("ranked", "Ranked", 4, 5, "ranked")

DEFAULT_MAPS = {
    "Search & Destroy": ["Crash", "Crossfire", "Backlot", "Vacant", "Strike", "Overgrown"],
    "Hardpoint": ["Crash", "Vacant", "Strike", "Highrise", "Terminal"],
    "Domination": ["Crash", "Crossfire", "Backlot", "Terminal", "Highrise"],
    "Kill Confirmed": ["Crash", "Strike", "Vacant", "Favela"],
    "CTF": ["Crossfire", "Overgrown", "Highrise"],
}


class SchemaManager:
    """
    Owns schema creation and migrations.

    Call initialize() to ensure schema is present and migrations are applied.
    """

    def __init__(self, db_path: str, use_uri: bool = False):
        self.db_path = db_path
        self.use_uri = use_uri

    def initialize(self) -> None:
        """Create base schema and apply migrations."""
        logger.info(f"Initializing database schema: {self.db_path}")
        with self._connect() as conn:
            cursor = conn.cursor()
            self._create_base_schema(cursor)
            self._create_schema_migrations_table(cursor)
            self._run_migrations(cursor)
            conn.commit()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, uri=self.use_uri)
        conn.row_factory = sqlite3.Row
        if not self.use_uri:  # Skip WAL for in-memory databases
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA busy_timeout=5000")
        return conn

    def _create_base_schema(self, cursor) -> None:
        # Players known to the bot (Discord users)
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS players (
                player_id INTEGER PRIMARY KEY,
                display_name TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS squads (
                squad_id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE,
                tag TEXT NOT NULL DEFAULT '',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

        # A player belongs to at most one squad
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS squad_members (
                player_id INTEGER PRIMARY KEY,
                squad_id INTEGER NOT NULL,
                display_name TEXT NOT NULL,
                role TEXT NOT NULL DEFAULT 'member',
                joined_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (squad_id) REFERENCES squads(squad_id)
            )
            """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS ladders (
                ladder_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                min_team_size INTEGER NOT NULL,
                max_team_size INTEGER NOT NULL,
                reward_tier TEXT NOT NULL
            )
            """
        )

        # Registration and standing of a squad on one ladder
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS squad_ladders (
                squad_id INTEGER NOT NULL,
                ladder_id TEXT NOT NULL,
                points INTEGER NOT NULL DEFAULT 0,
                wins INTEGER NOT NULL DEFAULT 0,
                losses INTEGER NOT NULL DEFAULT 0,
                registered_at INTEGER,
                PRIMARY KEY (squad_id, ladder_id),
                FOREIGN KEY (squad_id) REFERENCES squads(squad_id),
                FOREIGN KEY (ladder_id) REFERENCES ladders(ladder_id)
            )
            """
        )

    # --- Migration helpers ---

    def _create_schema_migrations_table(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                name TEXT PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

    def _run_migrations(self, cursor) -> None:
        applied = {row["name"] for row in cursor.execute("SELECT name FROM schema_migrations")}
        for name, action in self._get_migrations():
            if name in applied:
                continue
            logger.info(f"Applying migration: {name}")
            action(cursor)
            cursor.execute(
                "INSERT INTO schema_migrations (name) VALUES (?)",
                (name,),
            )

    def _get_migrations(self):
        return [
            ("seed_default_ladders", self._migration_seed_default_ladders),
            ("create_squad_stats_table", self._migration_create_squad_stats_table),
            ("create_player_stats_table", self._migration_create_player_stats_table),
            ("create_ladder_matches_table", self._migration_create_ladder_matches_table),
            ("add_ladder_match_indexes", self._migration_add_ladder_match_indexes),
            ("create_reward_config_table", self._migration_create_reward_config_table),
            ("create_maps_table", self._migration_create_maps_table),
            ("seed_default_maps", self._migration_seed_default_maps),
            ("add_ranked_ladder", self._migration_add_ranked_ladder),
            ("add_one_ready_match_index", self._migration_add_one_ready_match_index),
        ]

    # --- Migrations ---

    def _migration_seed_default_ladders(self, cursor) -> None:
        cursor.executemany(
            """
            INSERT OR IGNORE INTO ladders
                (ladder_id, name, min_team_size, max_team_size, reward_tier)
            VALUES (?, ?, ?, ?, ?)
            """,
            DEFAULT_LADDERS,
        )

    def _migration_create_squad_stats_table(self, cursor) -> None:
        """Ladder-independent rollup per squad."""
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS squad_stats (
                squad_id INTEGER PRIMARY KEY,
                total_points INTEGER NOT NULL DEFAULT 0,
                total_wins INTEGER NOT NULL DEFAULT 0,
                total_losses INTEGER NOT NULL DEFAULT 0,
                FOREIGN KEY (squad_id) REFERENCES squads(squad_id)
            )
            """
        )

    def _migration_create_player_stats_table(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS player_stats (
                player_id INTEGER PRIMARY KEY,
                wins INTEGER NOT NULL DEFAULT 0,
                losses INTEGER NOT NULL DEFAULT 0,
                xp INTEGER NOT NULL DEFAULT 0,
                currency_balance INTEGER NOT NULL DEFAULT 0
            )
            """
        )

    def _migration_create_ladder_matches_table(self, cursor) -> None:
        """
        Ladder matches. Query columns are denormalized from the JSON payload,
        which holds the full aggregate. `version` guards every update.
        """
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS ladder_matches (
                match_id INTEGER PRIMARY KEY AUTOINCREMENT,
                ladder_id TEXT NOT NULL,
                mode TEXT NOT NULL,
                game_mode TEXT NOT NULL,
                team_size INTEGER NOT NULL,
                status TEXT NOT NULL,
                challenger_id INTEGER NOT NULL,
                opponent_id INTEGER,
                scheduled_at INTEGER,
                ready_created_at INTEGER,
                created_at INTEGER NOT NULL,
                accepted_at INTEGER,
                completed_at INTEGER,
                rewards_distributed INTEGER NOT NULL DEFAULT 0,
                payload TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 0,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

    def _migration_add_ladder_match_indexes(self, cursor) -> None:
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_ladder_matches_status "
            "ON ladder_matches(status, ladder_id)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_ladder_matches_challenger "
            "ON ladder_matches(challenger_id, status)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_ladder_matches_opponent "
            "ON ladder_matches(opponent_id, status)"
        )

    def _migration_create_reward_config_table(self, cursor) -> None:
        """Per-key JSON overrides merged over the built-in reward tables."""
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS reward_config (
                config_key TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

    def _migration_create_maps_table(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS maps (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                ladder_id TEXT NOT NULL,
                game_mode TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                UNIQUE (name, ladder_id, game_mode)
            )
            """
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_maps_pool ON maps(ladder_id, game_mode, is_active)"
        )

    def _migration_seed_default_maps(self, cursor) -> None:
        rows = [
            (name, ladder_id, game_mode)
            for ladder_id, *_ in DEFAULT_LADDERS
            for game_mode, names in DEFAULT_MAPS.items()
            for name in names
        ]
        cursor.executemany(
            "INSERT OR IGNORE INTO maps (name, ladder_id, game_mode) VALUES (?, ?, ?)",
            rows,
        )

    def _migration_add_ranked_ladder(self, cursor) -> None:
        """Ranked ladder pays out from the per-game-mode ranked tables."""
        cursor.execute(
            """
            INSERT OR IGNORE INTO ladders
                (ladder_id, name, min_team_size, max_team_size, reward_tier)
            VALUES (?, ?, ?, ?, ?)
            """,
            RANKED_LADDER,
        )
        cursor.executemany(
            "INSERT OR IGNORE INTO maps (name, ladder_id, game_mode) VALUES (?, ?, ?)",
            [
                (name, RANKED_LADDER[0], game_mode)
                for game_mode, names in DEFAULT_MAPS.items()
                for name in names
            ],
        )

    def _migration_add_one_ready_match_index(self, cursor) -> None:
        """A squad can have at most one ready (unscheduled) challenge pending."""
        cursor.execute(
            """
            CREATE UNIQUE INDEX IF NOT EXISTS idx_ladder_matches_one_ready
            ON ladder_matches(challenger_id)
            WHERE status = 'pending' AND scheduled_at IS NULL
            """
        )
