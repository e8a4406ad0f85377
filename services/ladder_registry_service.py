"""
Ladder registry: which squads may play on which ladder.

Lookups that fail because storage is unreachable raise
DependencyUnavailableError; callers must treat that as "not allowed".
"""

import logging
import sqlite3
import time
from collections.abc import Callable

from domain.models.squad import Ladder, LadderStanding
from repositories.interfaces import ILadderRepository
from services import error_codes
from services.exceptions import DependencyUnavailableError
from services.interfaces import ILadderRegistryService
from services.result import Result

logger = logging.getLogger("ladder_bot.services.ladder_registry")


class LadderRegistryService(ILadderRegistryService):
    """
    Registration checks and standings for ladders.
    """

    def __init__(
        self,
        ladder_repo: ILadderRepository,
        clock: Callable[[], float] = time.time,
    ):
        self.ladder_repo = ladder_repo
        self._clock = clock

    def _lookup(self, fn, *args):
        try:
            return fn(*args)
        except sqlite3.Error as exc:
            logger.error(f"Ladder registry lookup failed: {exc}")
            raise DependencyUnavailableError("ladder_registry", str(exc)) from exc

    def get_ladder(self, ladder_id: str) -> Ladder | None:
        return self._lookup(self.ladder_repo.get_ladder, ladder_id)

    def list_ladders(self) -> list[Ladder]:
        return self._lookup(self.ladder_repo.list_ladders)

    def is_registered(self, squad_id: int, ladder_id: str) -> bool:
        return bool(self._lookup(self.ladder_repo.is_registered, squad_id, ladder_id))

    def team_size_bounds(self, ladder_id: str) -> tuple[int, int] | None:
        """(min, max) team size for a ladder, or None for an unknown ladder."""
        ladder = self.get_ladder(ladder_id)
        if ladder is None:
            return None
        return ladder.min_team_size, ladder.max_team_size

    def register_squad(self, squad_id: int, ladder_id: str) -> Result[LadderStanding]:
        if self.get_ladder(ladder_id) is None:
            return Result.fail(f"Unknown ladder '{ladder_id}'.", code=error_codes.LADDER_NOT_FOUND)
        registered = self._lookup(
            self.ladder_repo.register, squad_id, ladder_id, int(self._clock())
        )
        if not registered:
            return Result.fail(
                "Squad is already registered to this ladder.",
                code=error_codes.ALREADY_REGISTERED,
            )
        logger.info(f"Squad {squad_id} registered to ladder {ladder_id}")
        return Result.ok(self.get_standing(squad_id, ladder_id))

    def unregister_squad(self, squad_id: int, ladder_id: str) -> Result[bool]:
        removed = self._lookup(self.ladder_repo.unregister, squad_id, ladder_id)
        if not removed:
            return Result.fail(
                "Squad is not registered to this ladder.", code=error_codes.NOT_REGISTERED
            )
        logger.info(f"Squad {squad_id} left ladder {ladder_id}")
        return Result.ok(True)

    def get_standing(self, squad_id: int, ladder_id: str) -> LadderStanding | None:
        return self._lookup(self.ladder_repo.get_standing, squad_id, ladder_id)

    def get_leaderboard(self, ladder_id: str, limit: int = 10) -> list[LadderStanding]:
        return self._lookup(self.ladder_repo.get_leaderboard, ladder_id, limit)
