"""
Who may do what to a ladder match.

Actions are expressed as capabilities; each squad role grants a fixed set.
Staff capabilities are granted independently of squad membership.
"""

from dataclasses import dataclass
from enum import Enum

from domain.models.squad import SquadRole


class Capability(str, Enum):
    CREATE_MATCH = "create_match"
    ACCEPT_MATCH = "accept_match"
    CANCEL_MATCH = "cancel_match"
    DECLARE_RESULT = "declare_result"
    REPORT_RESULT = "report_result"
    CONFIRM_RESULT = "confirm_result"
    REQUEST_CANCEL = "request_cancel"
    RAISE_DISPUTE = "raise_dispute"
    ATTACH_EVIDENCE = "attach_evidence"
    SUBMIT_GAME_CODE = "submit_game_code"
    POST_CHAT = "post_chat"
    MANAGE_REGISTRATION = "manage_registration"
    RESOLVE_DISPUTE = "resolve_dispute"


_OFFICER_CAPABILITIES = frozenset(
    {
        Capability.CREATE_MATCH,
        Capability.ACCEPT_MATCH,
        Capability.CANCEL_MATCH,
        Capability.REPORT_RESULT,
        Capability.CONFIRM_RESULT,
        Capability.REQUEST_CANCEL,
        Capability.RAISE_DISPUTE,
        Capability.ATTACH_EVIDENCE,
        Capability.SUBMIT_GAME_CODE,
        Capability.POST_CHAT,
    }
)

ROLE_CAPABILITIES: dict[SquadRole, frozenset[Capability]] = {
    SquadRole.LEADER: _OFFICER_CAPABILITIES
    | {Capability.DECLARE_RESULT, Capability.MANAGE_REGISTRATION},
    SquadRole.OFFICER: _OFFICER_CAPABILITIES,
    SquadRole.MEMBER: frozenset(
        {Capability.ATTACH_EVIDENCE, Capability.SUBMIT_GAME_CODE, Capability.POST_CHAT}
    ),
}

STAFF_CAPABILITIES = frozenset(
    {Capability.RESOLVE_DISPUTE, Capability.ATTACH_EVIDENCE, Capability.POST_CHAT}
)


@dataclass(frozen=True)
class Actor:
    """The user performing an action, resolved by the caller."""

    user_id: int
    squad_id: int | None = None
    squad_role: SquadRole | None = None
    is_staff: bool = False
    display_name: str = ""


def role_has_capability(role: SquadRole | None, capability: Capability) -> bool:
    if role is None:
        return False
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


def has_capability(actor: Actor, capability: Capability, squad_id: int | None = None) -> bool:
    """
    Check whether an actor holds a capability.

    When squad_id is given, squad-role capabilities only count if the actor
    belongs to that squad. Staff capabilities apply to every squad.
    """
    if actor.is_staff and capability in STAFF_CAPABILITIES:
        return True
    if actor.squad_id is None:
        return False
    if squad_id is not None and actor.squad_id != squad_id:
        return False
    return role_has_capability(actor.squad_role, capability)
