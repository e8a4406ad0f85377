"""
Domain services containing pure business logic.
"""

from domain.services.match_permissions import Actor, Capability, has_capability
from domain.services import match_rules

__all__ = ["Actor", "Capability", "has_capability", "match_rules"]
