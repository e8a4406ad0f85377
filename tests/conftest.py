"""
Pytest fixtures for tests.

Performance optimization: a session-scoped schema template is migrated once
and copied per test (~1ms) instead of re-running every migration.

Time is driven by FakeClock so expiry, cooldown and cache windows can be
crossed deterministically.
"""

import random
import shutil
from types import SimpleNamespace

import pytest

from database import Database
from domain.models.squad import SquadRole
from domain.services.match_permissions import Actor
from repositories.ladder_repository import LadderRepository
from repositories.map_repository import MapRepository
from repositories.match_repository import MatchRepository
from repositories.reward_config_repository import RewardConfigRepository
from repositories.reward_repository import RewardRepository
from repositories.squad_repository import SquadRepository
from repositories.stats_repository import StatsRepository
from services.ladder_registry_service import LadderRegistryService
from services.map_pool_service import MapPoolService
from services.match_lifecycle_service import MatchLifecycleService
from services.notification_service import EventPublisher, RecordingSubscriber
from services.reward_config_service import RewardConfigService
from services.reward_distribution_service import RewardDistributionService

T0 = 1_700_000_000
"""Start of test time (unix seconds)."""

STAFF_USER_ID = 9000


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: float = T0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def _schema_template_path(tmp_path_factory):
    """
    Create a schema template database once per test session.

    Tests copy from this template instead of running schema initialization each time.
    """
    template_dir = tmp_path_factory.mktemp("schema_template")
    template_path = str(template_dir / "template.db")
    Database(template_path)
    yield template_path


@pytest.fixture
def temp_db_path(tmp_path):
    """Create a temporary database path (no schema)."""
    path = str(tmp_path / "temp.db")
    yield path


@pytest.fixture
def repo_db_path(_schema_template_path, tmp_path):
    """Temporary database with initialized schema, copied from the session template."""
    test_db_path = str(tmp_path / "test.db")
    shutil.copy2(_schema_template_path, test_db_path)
    yield test_db_path


# =============================================================================
# Repositories
# =============================================================================


@pytest.fixture
def squad_repository(repo_db_path):
    return SquadRepository(repo_db_path)


@pytest.fixture
def ladder_repository(repo_db_path):
    return LadderRepository(repo_db_path)


@pytest.fixture
def match_repository(repo_db_path):
    return MatchRepository(repo_db_path)


@pytest.fixture
def reward_repository(repo_db_path):
    return RewardRepository(repo_db_path)


@pytest.fixture
def stats_repository(repo_db_path):
    return StatsRepository(repo_db_path)


@pytest.fixture
def reward_config_repository(repo_db_path):
    return RewardConfigRepository(repo_db_path)


@pytest.fixture
def map_repository(repo_db_path):
    return MapRepository(repo_db_path)


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def publisher():
    return EventPublisher()


@pytest.fixture
def recorder(publisher):
    subscriber = RecordingSubscriber()
    publisher.subscribe(subscriber)
    return subscriber


@pytest.fixture
def reward_config_service(reward_config_repository, ladder_repository, clock):
    tiers = {ladder.ladder_id: ladder.reward_tier for ladder in ladder_repository.list_ladders()}
    return RewardConfigService(
        reward_config_repository, cache_seconds=300, ladder_tiers=tiers, clock=clock
    )


@pytest.fixture
def reward_distribution_service(
    reward_repository, match_repository, squad_repository, reward_config_service, publisher, clock
):
    return RewardDistributionService(
        reward_repo=reward_repository,
        match_repo=match_repository,
        squad_repo=squad_repository,
        reward_config=reward_config_service,
        publisher=publisher,
        rng=random.Random(42),
        clock=clock,
    )


@pytest.fixture
def ladder_registry_service(ladder_repository, clock):
    return LadderRegistryService(ladder_repository, clock=clock)


@pytest.fixture
def map_pool_service(map_repository):
    return MapPoolService(map_repository, rng=random.Random(3), default_count=3)


@pytest.fixture
def lifecycle_service(
    match_repository,
    squad_repository,
    ladder_registry_service,
    reward_distribution_service,
    map_pool_service,
    publisher,
    clock,
):
    return MatchLifecycleService(
        match_repo=match_repository,
        squad_repo=squad_repository,
        ladder_registry=ladder_registry_service,
        reward_distribution=reward_distribution_service,
        map_pool=map_pool_service,
        publisher=publisher,
        rng=random.Random(7),
        clock=clock,
        ready_expiry_seconds=600,
        rematch_cooldown_seconds=3 * 3600,
        schedule_min_lead_seconds=300,
        schedule_overlap_window_seconds=1800,
        cancel_lockout_seconds=300,
        max_evidence_per_squad=5,
    )


# =============================================================================
# Seed data
# =============================================================================


def _seed_squad(squad_repo, name: str, base_id: int, size: int = 5) -> int:
    """Squad with a leader (base_id+1), an officer (base_id+2) and plain members."""
    squad_id = squad_repo.create_squad(name, tag=name[:3].upper())
    for offset in range(1, size + 1):
        if offset == 1:
            role = SquadRole.LEADER
        elif offset == 2:
            role = SquadRole.OFFICER
        else:
            role = SquadRole.MEMBER
        squad_repo.add_member(squad_id, base_id + offset, f"{name}{offset}", role)
    return squad_id


@pytest.fixture
def squads(squad_repository, ladder_registry_service):
    """
    Alpha (players 101-105), Bravo (201-205) and Charlie (301-305), all
    registered on squad-team and duo-trio. Delta (401-404) is unregistered.
    """
    alpha = _seed_squad(squad_repository, "Alpha", 100)
    bravo = _seed_squad(squad_repository, "Bravo", 200)
    charlie = _seed_squad(squad_repository, "Charlie", 300)
    delta = _seed_squad(squad_repository, "Delta", 400, size=4)
    for squad_id in (alpha, bravo, charlie):
        for ladder_id in ("squad-team", "duo-trio"):
            assert ladder_registry_service.register_squad(squad_id, ladder_id).success
    return SimpleNamespace(alpha=alpha, bravo=bravo, charlie=charlie, delta=delta)


@pytest.fixture
def actors(lifecycle_service, squads):
    """Resolved actors for the seeded squads plus a staff user."""
    resolve = lifecycle_service.resolve_actor
    return SimpleNamespace(
        alpha_leader=resolve(101),
        alpha_officer=resolve(102),
        alpha_member=resolve(103),
        bravo_leader=resolve(201),
        bravo_officer=resolve(202),
        bravo_member=resolve(203),
        charlie_leader=resolve(301),
        delta_leader=resolve(401),
        outsider=resolve(999),
        staff=Actor(user_id=STAFF_USER_ID, is_staff=True, display_name="Mod"),
    )


@pytest.fixture
def play_match(lifecycle_service, actors):
    """
    Run a ready match from creation to a confirmed result.

    Alpha challenges, Bravo accepts; `winner` is "alpha" or "bravo".
    Returns the completed match.
    """

    def _play(winner: str = "alpha", ladder_id: str = "squad-team", team_size: int = 4, **kwargs):
        kwargs.setdefault("mode", "hardcore")
        kwargs.setdefault("game_mode", "Search & Destroy")
        created = lifecycle_service.create_match(
            actors.alpha_leader, ladder_id, team_size=team_size, **kwargs
        )
        assert created.success, created.error
        match_id = created.value.match_id
        accepted = lifecycle_service.accept_match(actors.bravo_leader, match_id)
        assert accepted.success, accepted.error
        scores = (6, 2) if winner == "alpha" else (2, 6)
        reported = lifecycle_service.report_result(actors.alpha_leader, match_id, *scores)
        assert reported.success, reported.error
        confirmed = lifecycle_service.confirm_result(actors.bravo_leader, match_id)
        assert confirmed.success, confirmed.error
        return confirmed.value

    return _play
