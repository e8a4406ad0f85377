"""
Application services layer.

Services orchestrate ladder operations using repositories and domain rules.
"""

from services.ladder_registry_service import LadderRegistryService
from services.map_pool_service import MapPoolService
from services.match_lifecycle_service import MatchLifecycleService
from services.notification_service import EventPublisher, MatchEvent, RecordingSubscriber
from services.permissions import has_admin_permission, has_allowlisted_admin, is_staff
from services.reward_config_service import RewardConfigService
from services.reward_distribution_service import RewardDistributionService

# Result type for consistent error handling
from services.result import Result

# Service interfaces (ABCs)
from services.interfaces import (
    ILadderRegistryService,
    IMatchLifecycleService,
    IRewardConfigService,
    IRewardDistributionService,
)

__all__ = [
    # Concrete services
    "LadderRegistryService",
    "MapPoolService",
    "MatchLifecycleService",
    "RewardConfigService",
    "RewardDistributionService",
    # Events
    "EventPublisher",
    "MatchEvent",
    "RecordingSubscriber",
    # Permissions
    "has_admin_permission",
    "has_allowlisted_admin",
    "is_staff",
    # Result type
    "Result",
    # Interfaces
    "ILadderRegistryService",
    "IMatchLifecycleService",
    "IRewardConfigService",
    "IRewardDistributionService",
]
