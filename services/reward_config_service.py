"""
Reward config resolver.

Resolves the point/currency/XP table for a ladder or a ranked game mode.
Built-in defaults are merged with overrides stored in the database; the
merged snapshot is cached for a bounded staleness window and can be
invalidated explicitly after an override changes.
"""

import logging
import sqlite3
import threading
import time
from collections.abc import Callable

from config import REWARD_CONFIG_CACHE_SECONDS
from domain.models.match import GameVariant
from domain.models.rewards import RewardTable
from repositories.interfaces import IRewardConfigRepository
from services.exceptions import DependencyUnavailableError
from services.interfaces import IRewardConfigService

logger = logging.getLogger("ladder_bot.services.reward_config")

CHILL_REWARDS = RewardTable(
    ladder_points_win=15,
    ladder_points_loss=8,
    squad_points_win=10,
    squad_points_loss=5,
    player_currency_win=40,
    player_currency_loss=20,
    player_xp_win_min=350,
    player_xp_win_max=450,
)

COMPETITIVE_REWARDS = RewardTable(
    ladder_points_win=25,
    ladder_points_loss=12,
    squad_points_win=20,
    squad_points_loss=10,
    player_currency_win=60,
    player_currency_loss=30,
    player_xp_win_min=550,
    player_xp_win_max=650,
)


def _ranked(points_win, points_loss, coins_win, coins_loss, xp_min=700, xp_max=800):
    # Ranked play has no separate squad delta; the squad rollup moves with ladder points
    return RewardTable(
        ladder_points_win=points_win,
        ladder_points_loss=points_loss,
        squad_points_win=points_win,
        squad_points_loss=points_loss,
        player_currency_win=coins_win,
        player_currency_loss=coins_loss,
        player_xp_win_min=xp_min,
        player_xp_win_max=xp_max,
    )


RANKED_REWARDS: dict[str, dict[str, RewardTable]] = {
    GameVariant.HARDCORE.value: {
        "Duel": _ranked(20, 10, 50, 10),
        "Team Deathmatch": _ranked(25, 12, 60, 12),
        "Search & Destroy": _ranked(35, 18, 80, 16),
    },
    GameVariant.CDL.value: {
        "Hardpoint": _ranked(35, 18, 80, 25),
        "Search & Destroy": _ranked(40, 20, 90, 30),
    },
}

RANKED_FALLBACK = (GameVariant.HARDCORE.value, "Search & Destroy")

DEFAULT_LADDER_TIERS = {
    "duo-trio": "chill",
    "squad-team": "competitive",
}

TIER_DEFAULTS = {
    "chill": CHILL_REWARDS,
    "competitive": COMPETITIVE_REWARDS,
}


def ladder_config_key(tier: str) -> str:
    return f"ladder:{tier}"


def ranked_config_key(mode: str, game_mode: str) -> str:
    return f"ranked:{mode}:{game_mode}"


class RewardConfigService(IRewardConfigService):
    """
    Cached reward table lookups.

    Thread-safe: the override snapshot is swapped under a lock.
    """

    def __init__(
        self,
        reward_config_repo: IRewardConfigRepository,
        cache_seconds: float | None = None,
        ladder_tiers: dict[str, str] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.reward_config_repo = reward_config_repo
        self.cache_seconds = (
            cache_seconds if cache_seconds is not None else REWARD_CONFIG_CACHE_SECONDS
        )
        self.ladder_tiers = dict(ladder_tiers or DEFAULT_LADDER_TIERS)
        self._clock = clock
        self._lock = threading.Lock()
        self._overrides: dict[str, dict] | None = None
        self._loaded_at: float | None = None

    def _snapshot(self) -> dict[str, dict]:
        with self._lock:
            now = self._clock()
            if (
                self._overrides is not None
                and self._loaded_at is not None
                and now - self._loaded_at < self.cache_seconds
            ):
                return self._overrides
            try:
                overrides = self.reward_config_repo.get_all_overrides()
            except sqlite3.Error as exc:
                logger.error(f"Failed to load reward config: {exc}")
                raise DependencyUnavailableError("reward_config", str(exc)) from exc
            self._overrides = overrides
            self._loaded_at = now
            logger.debug(f"Reward config reloaded ({len(overrides)} overrides)")
            return overrides

    def invalidate(self) -> None:
        """Drop the cached snapshot so the next lookup reloads from storage."""
        with self._lock:
            self._overrides = None
            self._loaded_at = None

    def tier_for_ladder(self, ladder_id: str) -> str:
        return self.ladder_tiers.get(ladder_id, "chill")

    def get_ladder_rewards(self, ladder_id: str) -> RewardTable:
        """Reward table for a ladder; unknown ladders use the chill tier."""
        tier = self.tier_for_ladder(ladder_id)
        defaults = TIER_DEFAULTS.get(tier, CHILL_REWARDS)
        return RewardTable.merged(defaults, self._snapshot().get(ladder_config_key(tier)))

    def get_ranked_rewards(self, game_mode: str, mode: str) -> RewardTable:
        """Reward table for a ranked game mode; unknown combinations fall back to hardcore S&D."""
        overrides = self._snapshot()
        defaults = RANKED_REWARDS.get(mode, {}).get(game_mode)
        if defaults is None:
            fallback_mode, fallback_game_mode = RANKED_FALLBACK
            logger.info(
                f"No ranked rewards for {mode}/{game_mode}; using {fallback_mode}/{fallback_game_mode}"
            )
            defaults = RANKED_REWARDS[fallback_mode][fallback_game_mode]
        return RewardTable.merged(defaults, overrides.get(ranked_config_key(mode, game_mode)))

    def set_ladder_override(self, tier: str, values: dict) -> None:
        """Store an override for a ladder tier and invalidate the cache."""
        if tier not in TIER_DEFAULTS:
            raise ValueError(f"Unknown reward tier '{tier}'")
        self._store(ladder_config_key(tier), values)

    def set_ranked_override(self, mode: str, game_mode: str, values: dict) -> None:
        self._store(ranked_config_key(mode, game_mode), values)

    def _store(self, key: str, values: dict) -> None:
        allowed = set(RewardTable.field_names())
        unknown = set(values) - allowed
        if unknown:
            raise ValueError(f"Unknown reward fields: {', '.join(sorted(unknown))}")
        self.reward_config_repo.set_override(key, values)
        self.invalidate()
        logger.info(f"Reward override stored for {key}")
