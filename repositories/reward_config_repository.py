"""
Repository for reward table overrides.

Keys are `ladder:<tier>` or `ranked:<mode>:<game mode>`; payloads are the
subset of RewardTable fields being overridden.
"""

import json

from repositories.base_repository import BaseRepository
from repositories.interfaces import IRewardConfigRepository


class RewardConfigRepository(BaseRepository, IRewardConfigRepository):
    def get_override(self, config_key: str) -> dict | None:
        row = self.fetch_one(
            "SELECT payload FROM reward_config WHERE config_key = ?", (config_key,)
        )
        return json.loads(row["payload"]) if row else None

    def get_all_overrides(self) -> dict[str, dict]:
        rows = self.fetch_all("SELECT config_key, payload FROM reward_config")
        return {row["config_key"]: json.loads(row["payload"]) for row in rows}

    def set_override(self, config_key: str, payload: dict) -> None:
        self.execute(
            """
            INSERT INTO reward_config (config_key, payload)
            VALUES (?, ?)
            ON CONFLICT(config_key) DO UPDATE SET
                payload = excluded.payload,
                updated_at = CURRENT_TIMESTAMP
            """,
            (config_key, json.dumps(payload)),
        )

    def delete_override(self, config_key: str) -> bool:
        return self.execute("DELETE FROM reward_config WHERE config_key = ?", (config_key,)) > 0
