"""
Random map draws for matches with a random map policy.
"""

import logging
import random
import sqlite3

from config import RANDOM_MAP_COUNT
from repositories.interfaces import IMapRepository
from services.exceptions import DependencyUnavailableError

logger = logging.getLogger("ladder_bot.services.map_pool")


class MapPoolService:
    def __init__(
        self,
        map_repo: IMapRepository,
        rng: random.Random | None = None,
        default_count: int | None = None,
    ):
        self.map_repo = map_repo
        self._rng = rng or random.Random()
        self.default_count = default_count if default_count is not None else RANDOM_MAP_COUNT

    def draw_random_maps(self, ladder_id: str, game_mode: str, count: int | None = None) -> list[str]:
        """
        Draw distinct maps from the ladder/game-mode pool.

        Returns fewer than `count` when the pool is smaller; an empty pool yields [].
        """
        count = count if count is not None else self.default_count
        try:
            pool = self.map_repo.get_pool(ladder_id, game_mode)
        except sqlite3.Error as exc:
            raise DependencyUnavailableError("map_pool", str(exc)) from exc
        if len(pool) < count:
            logger.info(
                f"Map pool for {ladder_id}/{game_mode} has {len(pool)} maps, wanted {count}"
            )
        return self._rng.sample(pool, min(count, len(pool)))
