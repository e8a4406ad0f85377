"""
Service container for dependency injection and initialization.

Centralizes repository and service wiring so bot.py and tests build the
ladder stack the same way.

Usage:
    container = ServiceContainer(config)
    await container.initialize()

    lifecycle = container.lifecycle_service
"""

import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from services.ladder_registry_service import LadderRegistryService
    from services.map_pool_service import MapPoolService
    from services.match_lifecycle_service import MatchLifecycleService
    from services.reward_config_service import RewardConfigService
    from services.reward_distribution_service import RewardDistributionService

import config as app_config
from database import Database
from repositories.ladder_repository import LadderRepository
from repositories.map_repository import MapRepository
from repositories.match_repository import MatchRepository
from repositories.reward_config_repository import RewardConfigRepository
from repositories.reward_repository import RewardRepository
from repositories.squad_repository import SquadRepository
from repositories.stats_repository import StatsRepository
from services.notification_service import EventPublisher

logger = logging.getLogger("ladder_bot.infrastructure.container")


@dataclass
class RepositoryContainer:
    """Container for all repositories."""

    squad: SquadRepository | None = None
    ladder: LadderRepository | None = None
    match: MatchRepository | None = None
    reward: RewardRepository | None = None
    stats: StatsRepository | None = None
    reward_config: RewardConfigRepository | None = None
    maps: MapRepository | None = None


@dataclass
class ServiceConfig:
    """Configuration for service initialization."""

    db_path: str = app_config.DB_PATH

    # Match lifecycle timing
    ready_expiry_seconds: int = app_config.READY_MATCH_EXPIRY_SECONDS
    rematch_cooldown_seconds: int = app_config.REMATCH_COOLDOWN_SECONDS
    schedule_min_lead_seconds: int = app_config.SCHEDULE_MIN_LEAD_SECONDS
    schedule_overlap_window_seconds: int = app_config.SCHEDULE_OVERLAP_WINDOW_SECONDS
    cancel_lockout_seconds: int = app_config.CANCEL_LOCKOUT_SECONDS

    # Disputes and maps
    max_evidence_per_squad: int = app_config.MAX_EVIDENCE_PER_SQUAD
    random_map_count: int = app_config.RANDOM_MAP_COUNT

    # Reward config cache
    reward_config_cache_seconds: float = app_config.REWARD_CONFIG_CACHE_SECONDS

    # Deterministic randomness for tests (None = system entropy)
    random_seed: int | None = None


class ServiceContainer:
    """
    Central container for all application services.

    Handles proper initialization order and dependency injection.
    """

    def __init__(self, config: ServiceConfig | None = None):
        self.config = config or ServiceConfig()
        self._initialized = False
        self._repos = RepositoryContainer()
        self._database: Database | None = None
        self._services: dict[str, Any] = {}
        self.event_publisher = EventPublisher()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """
        Initialize all services in correct order.

        This method is idempotent - calling it multiple times has no effect.
        """
        if self._initialized:
            logger.debug("ServiceContainer already initialized, skipping")
            return

        logger.info("Initializing ServiceContainer...")
        self._init_database()
        self._init_repositories()
        self._init_reward_services()
        self._init_match_services()
        self._initialized = True
        logger.info("ServiceContainer initialization complete")

    def _init_database(self) -> None:
        logger.debug(f"Initializing database at {self.config.db_path}")
        self._database = Database(self.config.db_path)

    def _init_repositories(self) -> None:
        logger.debug("Initializing repositories")
        db_path = self.config.db_path
        self._repos.squad = SquadRepository(db_path)
        self._repos.ladder = LadderRepository(db_path)
        self._repos.match = MatchRepository(db_path)
        self._repos.reward = RewardRepository(db_path)
        self._repos.stats = StatsRepository(db_path)
        self._repos.reward_config = RewardConfigRepository(db_path)
        self._repos.maps = MapRepository(db_path)

    def _rng(self) -> random.Random:
        return random.Random(self.config.random_seed)

    def _init_reward_services(self) -> None:
        logger.debug("Initializing reward services")

        from services.reward_config_service import RewardConfigService
        from services.reward_distribution_service import RewardDistributionService

        ladder_tiers = {ladder.ladder_id: ladder.reward_tier for ladder in self._repos.ladder.list_ladders()}
        self._services["reward_config"] = RewardConfigService(
            self._repos.reward_config,
            cache_seconds=self.config.reward_config_cache_seconds,
            ladder_tiers=ladder_tiers,
        )
        self._services["reward_distribution"] = RewardDistributionService(
            reward_repo=self._repos.reward,
            match_repo=self._repos.match,
            squad_repo=self._repos.squad,
            reward_config=self._services["reward_config"],
            publisher=self.event_publisher,
            rng=self._rng(),
        )

    def _init_match_services(self) -> None:
        logger.debug("Initializing match services")

        from services.ladder_registry_service import LadderRegistryService
        from services.map_pool_service import MapPoolService
        from services.match_lifecycle_service import MatchLifecycleService

        self._services["ladder_registry"] = LadderRegistryService(self._repos.ladder)
        self._services["map_pool"] = MapPoolService(
            self._repos.maps,
            rng=self._rng(),
            default_count=self.config.random_map_count,
        )
        self._services["lifecycle"] = MatchLifecycleService(
            match_repo=self._repos.match,
            squad_repo=self._repos.squad,
            ladder_registry=self._services["ladder_registry"],
            reward_distribution=self._services["reward_distribution"],
            map_pool=self._services["map_pool"],
            publisher=self.event_publisher,
            rng=self._rng(),
            ready_expiry_seconds=self.config.ready_expiry_seconds,
            rematch_cooldown_seconds=self.config.rematch_cooldown_seconds,
            schedule_min_lead_seconds=self.config.schedule_min_lead_seconds,
            schedule_overlap_window_seconds=self.config.schedule_overlap_window_seconds,
            cancel_lockout_seconds=self.config.cancel_lockout_seconds,
            max_evidence_per_squad=self.config.max_evidence_per_squad,
        )

    # =========================================================================
    # Service accessors
    # =========================================================================

    @property
    def squad_repo(self) -> SquadRepository:
        return self._repos.squad

    @property
    def ladder_repo(self) -> LadderRepository:
        return self._repos.ladder

    @property
    def match_repo(self) -> MatchRepository:
        return self._repos.match

    @property
    def stats_repo(self) -> StatsRepository:
        return self._repos.stats

    @property
    def map_repo(self) -> MapRepository:
        return self._repos.maps

    @property
    def reward_config_service(self) -> "RewardConfigService | None":
        return self._services.get("reward_config")

    @property
    def reward_distribution_service(self) -> "RewardDistributionService | None":
        return self._services.get("reward_distribution")

    @property
    def ladder_registry_service(self) -> "LadderRegistryService | None":
        return self._services.get("ladder_registry")

    @property
    def map_pool_service(self) -> "MapPoolService | None":
        return self._services.get("map_pool")

    @property
    def lifecycle_service(self) -> "MatchLifecycleService | None":
        return self._services.get("lifecycle")

    def expose_to_bot(self, bot) -> None:
        """
        Expose repositories and services as attributes on the bot.

        Cogs look them up with getattr(bot, "<name>", None) in their setup().
        """
        bot.squad_repo = self.squad_repo
        bot.ladder_repo = self.ladder_repo
        bot.match_repo = self.match_repo
        bot.stats_repo = self.stats_repo
        bot.map_repo = self.map_repo

        bot.event_publisher = self.event_publisher
        bot.reward_config_service = self.reward_config_service
        bot.reward_distribution_service = self.reward_distribution_service
        bot.ladder_registry_service = self.ladder_registry_service
        bot.map_pool_service = self.map_pool_service
        bot.lifecycle_service = self.lifecycle_service

        logger.info("Services exposed to bot object")
