"""
Tests for the pure match rules and capability checks.
"""

import pytest

from domain.models.match import GameVariant, Match, MatchStatus
from domain.models.rewards import PointChange
from domain.models.squad import SquadRole
from domain.services import match_rules
from domain.services.match_permissions import Actor, Capability, has_capability


def _match(**overrides):
    fields = dict(
        ladder_id="squad-team",
        mode=GameVariant.HARDCORE,
        game_mode="Search & Destroy",
        team_size=4,
        challenger_id=1,
        created_by=11,
        created_at=1000,
        ready_created_at=1000,
    )
    fields.update(overrides)
    return Match(**fields)


class TestTransitions:
    def test_terminal_states_are_final(self):
        for status in (MatchStatus.COMPLETED, MatchStatus.CANCELLED, MatchStatus.EXPIRED):
            for target in MatchStatus:
                assert not match_rules.can_transition(status, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (MatchStatus.PENDING, MatchStatus.IN_PROGRESS),
            (MatchStatus.ACCEPTED, MatchStatus.IN_PROGRESS),
            (MatchStatus.IN_PROGRESS, MatchStatus.DISPUTED),
            (MatchStatus.DISPUTED, MatchStatus.IN_PROGRESS),
            (MatchStatus.DISPUTED, MatchStatus.COMPLETED),
        ],
    )
    def test_allowed(self, current, target):
        assert match_rules.can_transition(current, target)

    def test_pending_cannot_complete(self):
        assert not match_rules.can_transition(MatchStatus.PENDING, MatchStatus.COMPLETED)


class TestExpiry:
    def test_ready_boundary_is_inclusive(self):
        match = _match()
        assert match_rules.expires_at(match, 600) == 1600
        assert not match_rules.is_expired(match, 1600, 600)
        assert match_rules.is_expired(match, 1601, 600)

    def test_scheduled_expires_at_start(self):
        match = _match(scheduled_at=5000, ready_created_at=None)
        assert match_rules.expires_at(match, 600) == 5000
        assert match_rules.is_expired(match, 5001, 600)

    def test_only_pending_expires(self):
        match = _match(status=MatchStatus.IN_PROGRESS)
        assert not match_rules.is_expired(match, 10_000, 600)


class TestWaits:
    def test_minutes_round_up(self):
        wait = match_rules.remaining_wait(until=1061, now=1000)
        assert wait == {"remaining_seconds": 61, "hours": 0, "minutes": 2, "available_at": 1061}

    def test_exact_hour(self):
        wait = match_rules.remaining_wait(until=4600, now=1000)
        assert (wait["hours"], wait["minutes"]) == (1, 0)

    def test_never_negative(self):
        assert match_rules.remaining_wait(until=10, now=20)["remaining_seconds"] == 0

    def test_cooldown_end(self):
        assert match_rules.cooldown_ends_at(None, 100) is None
        assert match_rules.cooldown_ends_at(50, 100) == 150

    def test_window_overlap_is_strict(self):
        assert match_rules.windows_overlap(1000, 2799, 1800)
        assert not match_rules.windows_overlap(1000, 2800, 1800)


class TestPoints:
    def test_clamp_decrement(self):
        assert match_rules.clamp_decrement(5, 12) == PointChange(12, 5, 5, 0)
        assert match_rules.clamp_decrement(30, 12) == PointChange(12, 12, 30, 18)

    def test_increment(self):
        assert match_rules.apply_increment(10, 25) == PointChange(25, 25, 10, 35)

    def test_winner_from_scores(self):
        match = _match(opponent_id=2)
        assert match_rules.winner_from_scores(match, 6, 4) == 1
        assert match_rules.winner_from_scores(match, 4, 6) == 2
        assert match_rules.winner_from_scores(match, 4, 4) is None


class TestCapabilities:
    def test_roles(self):
        leader = Actor(user_id=1, squad_id=7, squad_role=SquadRole.LEADER)
        officer = Actor(user_id=2, squad_id=7, squad_role=SquadRole.OFFICER)
        member = Actor(user_id=3, squad_id=7, squad_role=SquadRole.MEMBER)

        assert has_capability(leader, Capability.DECLARE_RESULT)
        assert not has_capability(officer, Capability.DECLARE_RESULT)
        assert has_capability(officer, Capability.ACCEPT_MATCH)
        assert not has_capability(member, Capability.ACCEPT_MATCH)
        assert has_capability(member, Capability.ATTACH_EVIDENCE)
        assert has_capability(leader, Capability.MANAGE_REGISTRATION)
        assert not has_capability(officer, Capability.MANAGE_REGISTRATION)

    def test_scoped_to_own_squad(self):
        leader = Actor(user_id=1, squad_id=7, squad_role=SquadRole.LEADER)
        assert has_capability(leader, Capability.CREATE_MATCH, squad_id=7)
        assert not has_capability(leader, Capability.CREATE_MATCH, squad_id=8)

    def test_staff(self):
        staff = Actor(user_id=9, is_staff=True)
        assert has_capability(staff, Capability.RESOLVE_DISPUTE)
        assert has_capability(staff, Capability.ATTACH_EVIDENCE, squad_id=8)
        assert not has_capability(staff, Capability.CREATE_MATCH)

    def test_squadless_player(self):
        assert not has_capability(Actor(user_id=4), Capability.CREATE_MATCH)
