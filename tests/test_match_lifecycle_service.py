"""
Tests for MatchLifecycleService: creation, acceptance, finalization and cancellation.
"""

import sqlite3
from unittest.mock import MagicMock

import pytest

from domain.models.match import MatchStatus, RosterEntry
from services import error_codes
from services.ladder_registry_service import LadderRegistryService
from services.match_lifecycle_service import MatchLifecycleService
from tests.conftest import T0


def _create_ready(lifecycle_service, actor, **kwargs):
    kwargs.setdefault("mode", "hardcore")
    kwargs.setdefault("game_mode", "Search & Destroy")
    kwargs.setdefault("team_size", 4)
    result = lifecycle_service.create_match(actor, "squad-team", **kwargs)
    assert result.success, result.error
    return result.value


class TestCreateMatch:
    def test_ready_match_snapshots_first_members(self, lifecycle_service, actors, squads, recorder):
        match = _create_ready(lifecycle_service, actors.alpha_leader)

        assert match.status == MatchStatus.PENDING
        assert match.challenger_id == squads.alpha
        assert match.ready_created_at == T0
        assert [e.player_id for e in match.challenger_roster] == [101, 102, 103, 104]
        assert recorder.topics() == ["match.created"]

    def test_officer_can_create(self, lifecycle_service, actors):
        match = _create_ready(lifecycle_service, actors.alpha_officer)
        assert match.created_by == 102

    def test_member_cannot_create(self, lifecycle_service, actors):
        result = lifecycle_service.create_match(
            actors.alpha_member, "squad-team", "hardcore", "Search & Destroy", 4
        )
        assert result.error_code == error_codes.PERMISSION_DENIED

    def test_player_without_squad(self, lifecycle_service, actors):
        result = lifecycle_service.create_match(
            actors.outsider, "squad-team", "hardcore", "Search & Destroy", 4
        )
        assert result.error_code == error_codes.NOT_SQUAD_MEMBER

    def test_unknown_ladder(self, lifecycle_service, actors):
        result = lifecycle_service.create_match(
            actors.alpha_leader, "no-such-ladder", "hardcore", "Search & Destroy", 4
        )
        assert result.error_code == error_codes.LADDER_NOT_FOUND

    def test_unregistered_squad(self, lifecycle_service, actors):
        result = lifecycle_service.create_match(
            actors.delta_leader, "squad-team", "hardcore", "Search & Destroy", 4
        )
        assert result.error_code == error_codes.NOT_REGISTERED

    def test_not_registered_on_ranked(self, lifecycle_service, actors):
        result = lifecycle_service.create_match(
            actors.alpha_leader, "ranked", "cdl", "Hardpoint", 4
        )
        assert result.error_code == error_codes.NOT_REGISTERED

    @pytest.mark.parametrize("team_size", [3, 6])
    def test_team_size_outside_ladder_bounds(self, lifecycle_service, actors, team_size):
        result = lifecycle_service.create_match(
            actors.alpha_leader, "squad-team", "hardcore", "Search & Destroy", team_size
        )
        assert result.error_code == error_codes.INVALID_TEAM_SIZE
        assert result.data == {"min": 4, "max": 5}

    def test_unknown_mode(self, lifecycle_service, actors):
        result = lifecycle_service.create_match(
            actors.alpha_leader, "squad-team", "arcade", "Search & Destroy", 4
        )
        assert result.error_code == error_codes.VALIDATION_ERROR

    def test_blank_game_mode(self, lifecycle_service, actors):
        result = lifecycle_service.create_match(actors.alpha_leader, "squad-team", "cdl", "  ", 4)
        assert result.error_code == error_codes.VALIDATION_ERROR

    def test_explicit_roster_marks_helpers(self, lifecycle_service, actors):
        roster = [
            RosterEntry(101, "Alpha1"),
            RosterEntry(102, "Alpha2"),
            RosterEntry(103, "Alpha3"),
            RosterEntry(777, "Ringer"),
        ]
        match = _create_ready(lifecycle_service, actors.alpha_leader, roster=roster)

        helpers = {e.player_id: e.is_helper for e in match.challenger_roster}
        assert helpers == {101: False, 102: False, 103: False, 777: True}

    def test_roster_larger_than_team_size(self, lifecycle_service, actors):
        roster = [RosterEntry(pid, f"P{pid}") for pid in (101, 102, 103, 104, 105)]
        result = lifecycle_service.create_match(
            actors.alpha_leader, "squad-team", "hardcore", "Search & Destroy", 4, roster=roster
        )
        assert result.error_code == error_codes.INVALID_TEAM_SIZE

    def test_roster_with_duplicate_player(self, lifecycle_service, actors):
        roster = [RosterEntry(101, "A"), RosterEntry(101, "A"), RosterEntry(102, "B")]
        result = lifecycle_service.create_match(
            actors.alpha_leader, "squad-team", "hardcore", "Search & Destroy", 4, roster=roster
        )
        assert result.error_code == error_codes.VALIDATION_ERROR

    def test_fixed_map_is_kept(self, lifecycle_service, actors):
        match = _create_ready(lifecycle_service, actors.alpha_leader, map_name=" Crash ")
        assert match.maps == ["Crash"]


class TestReadyMatchUniqueness:
    def test_second_ready_match_rejected(self, lifecycle_service, actors):
        first = _create_ready(lifecycle_service, actors.alpha_leader)

        result = lifecycle_service.create_match(
            actors.alpha_officer, "squad-team", "hardcore", "Search & Destroy", 4
        )

        assert result.error_code == error_codes.READY_MATCH_EXISTS
        assert result.data["match_id"] == first.match_id

    def test_new_ready_match_allowed_once_old_one_expired(self, lifecycle_service, actors, clock):
        first = _create_ready(lifecycle_service, actors.alpha_leader)
        clock.advance(601)

        second = _create_ready(lifecycle_service, actors.alpha_leader)

        assert second.match_id != first.match_id
        assert lifecycle_service.get_match(first.match_id).value.status == MatchStatus.EXPIRED

    def test_storage_rejects_racing_second_ready_match(
        self, lifecycle_service, match_repository, actors, monkeypatch
    ):
        _create_ready(lifecycle_service, actors.alpha_leader)
        # Both requests passed the read check before either inserted
        monkeypatch.setattr(match_repository, "find_pending_ready_match", lambda squad_id: None)

        result = lifecycle_service.create_match(
            actors.alpha_officer, "squad-team", "hardcore", "Search & Destroy", 4
        )

        assert result.error_code == error_codes.READY_MATCH_EXISTS
        assert len(match_repository.list_pending()) == 1

    def test_other_squads_unaffected(self, lifecycle_service, actors):
        _create_ready(lifecycle_service, actors.alpha_leader)
        _create_ready(lifecycle_service, actors.bravo_leader)


class TestReadyMatchExpiry:
    def test_still_acceptable_at_expiry_instant(self, lifecycle_service, actors, clock):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        clock.advance(600)

        result = lifecycle_service.accept_match(actors.bravo_leader, match.match_id)

        assert result.success
        assert result.value.status == MatchStatus.IN_PROGRESS

    def test_expired_one_second_later(self, lifecycle_service, actors, clock, recorder):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        clock.advance(601)

        result = lifecycle_service.accept_match(actors.bravo_leader, match.match_id)

        assert result.error_code == error_codes.MATCH_EXPIRED
        assert error_codes.is_temporal(result.error_code)
        assert lifecycle_service.get_match(match.match_id).value.status == MatchStatus.EXPIRED
        assert "match.expired" in recorder.topics()

    def test_sweep_expires_in_bulk(self, lifecycle_service, actors, clock, recorder):
        alpha = _create_ready(lifecycle_service, actors.alpha_leader)
        bravo = _create_ready(lifecycle_service, actors.bravo_leader)
        clock.advance(601)

        expired = lifecycle_service.sweep_expired_matches()

        assert sorted(expired) == sorted([alpha.match_id, bravo.match_id])
        assert recorder.topics().count("match.expired") == 2
        assert lifecycle_service.sweep_expired_matches() == []

    def test_available_list_hides_expired(self, lifecycle_service, actors, clock):
        _create_ready(lifecycle_service, actors.alpha_leader)
        assert len(lifecycle_service.list_available_matches()) == 1

        clock.advance(601)

        assert lifecycle_service.list_available_matches() == []

    def test_available_list_announces_what_it_expires(
        self, lifecycle_service, actors, clock, recorder
    ):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        clock.advance(601)

        assert lifecycle_service.list_available_matches() == []

        assert recorder.topics() == ["match.created", "match.expired"]
        assert recorder.events[-1][1].match_id == match.match_id
        assert lifecycle_service.sweep_expired_matches() == []


class TestScheduling:
    def test_too_soon(self, lifecycle_service, actors):
        result = lifecycle_service.create_match(
            actors.alpha_leader,
            "squad-team",
            "cdl",
            "Hardpoint",
            4,
            scheduled_at=T0 + 200,
        )

        assert result.error_code == error_codes.SCHEDULE_TOO_SOON
        assert result.data == {"earliest_scheduled_at": T0 + 300, "min_lead_seconds": 300}

    def test_exactly_minimum_lead_is_allowed(self, lifecycle_service, actors):
        result = lifecycle_service.create_match(
            actors.alpha_leader, "squad-team", "cdl", "Hardpoint", 4, scheduled_at=T0 + 300
        )
        assert result.success
        assert result.value.ready_created_at is None

    def test_overlap_window(self, lifecycle_service, actors):
        start = T0 + 3600
        assert lifecycle_service.create_match(
            actors.alpha_leader, "squad-team", "cdl", "Hardpoint", 4, scheduled_at=start
        ).success

        clash = lifecycle_service.create_match(
            actors.alpha_leader, "squad-team", "cdl", "Hardpoint", 4, scheduled_at=start + 1799
        )
        clear = lifecycle_service.create_match(
            actors.alpha_leader, "squad-team", "cdl", "Hardpoint", 4, scheduled_at=start + 1800
        )

        assert clash.error_code == error_codes.SCHEDULE_CONFLICT
        assert clear.success

    def test_overlap_counts_matches_the_squad_accepted(self, lifecycle_service, actors):
        start = T0 + 3600
        bravo_match = lifecycle_service.create_match(
            actors.bravo_leader, "squad-team", "cdl", "Hardpoint", 4, scheduled_at=start
        ).value
        assert lifecycle_service.accept_match(actors.alpha_leader, bravo_match.match_id).success

        clash = lifecycle_service.create_match(
            actors.alpha_leader, "squad-team", "cdl", "Hardpoint", 4, scheduled_at=start + 600
        )

        assert clash.error_code == error_codes.SCHEDULE_CONFLICT

    def test_accepted_scheduled_match_starts_on_time(self, lifecycle_service, actors, clock, recorder):
        start = T0 + 3600
        match = lifecycle_service.create_match(
            actors.alpha_leader, "squad-team", "cdl", "Hardpoint", 4, scheduled_at=start
        ).value
        accepted = lifecycle_service.accept_match(actors.bravo_leader, match.match_id).value
        assert accepted.status == MatchStatus.ACCEPTED

        clock.advance(3599)
        assert lifecycle_service.get_match(match.match_id).value.status == MatchStatus.ACCEPTED

        clock.advance(1)
        started = lifecycle_service.get_match(match.match_id).value
        assert started.status == MatchStatus.IN_PROGRESS
        assert started.started_at == start
        assert "match.started" in recorder.topics()

    def test_sweep_promotes_and_expires_scheduled(self, lifecycle_service, actors, clock):
        start = T0 + 3600
        accepted = lifecycle_service.create_match(
            actors.alpha_leader, "squad-team", "cdl", "Hardpoint", 4, scheduled_at=start
        ).value
        lifecycle_service.accept_match(actors.bravo_leader, accepted.match_id)
        unclaimed = lifecycle_service.create_match(
            actors.charlie_leader, "squad-team", "cdl", "Hardpoint", 4, scheduled_at=start
        ).value
        clock.advance(3601)

        expired = lifecycle_service.sweep_expired_matches()

        assert expired == [unclaimed.match_id]
        refreshed = lifecycle_service.match_repo.get(accepted.match_id)
        assert refreshed.status == MatchStatus.IN_PROGRESS


class TestAcceptMatch:
    def test_ready_match_goes_live(self, lifecycle_service, actors, squads, recorder):
        match = _create_ready(lifecycle_service, actors.alpha_leader)

        result = lifecycle_service.accept_match(actors.bravo_officer, match.match_id)

        accepted = result.value
        assert accepted.status == MatchStatus.IN_PROGRESS
        assert accepted.opponent_id == squads.bravo
        assert accepted.accepted_at == T0
        assert accepted.started_at == T0
        assert accepted.accepted_by == 202
        assert accepted.host_team in (squads.alpha, squads.bravo)
        assert [e.player_id for e in accepted.opponent_roster] == [201, 202, 203, 204]
        assert recorder.topics() == ["match.created", "match.accepted"]

    def test_member_cannot_accept(self, lifecycle_service, actors):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        result = lifecycle_service.accept_match(actors.bravo_member, match.match_id)
        assert result.error_code == error_codes.PERMISSION_DENIED

    def test_own_match(self, lifecycle_service, actors):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        result = lifecycle_service.accept_match(actors.alpha_officer, match.match_id)
        assert result.error_code == error_codes.SELF_CHALLENGE

    def test_unregistered_acceptor(self, lifecycle_service, actors):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        result = lifecycle_service.accept_match(actors.delta_leader, match.match_id)
        assert result.error_code == error_codes.NOT_REGISTERED

    def test_second_acceptor_is_told_already_accepted(self, lifecycle_service, actors):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        assert lifecycle_service.accept_match(actors.bravo_leader, match.match_id).success

        result = lifecycle_service.accept_match(actors.charlie_leader, match.match_id)

        assert result.error_code == error_codes.ALREADY_ACCEPTED
        assert error_codes.is_conflict(result.error_code)

    def test_cancelled_match_cannot_be_accepted(self, lifecycle_service, actors):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        lifecycle_service.cancel_match(actors.alpha_leader, match.match_id)

        result = lifecycle_service.accept_match(actors.bravo_leader, match.match_id)

        assert result.error_code == error_codes.ALREADY_RESOLVED

    def test_missing_match(self, lifecycle_service, actors):
        result = lifecycle_service.accept_match(actors.bravo_leader, 4242)
        assert result.error_code == error_codes.MATCH_NOT_FOUND

    def test_player_cannot_play_for_both_sides(self, lifecycle_service, actors):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        roster = [
            RosterEntry(201, "Bravo1"),
            RosterEntry(202, "Bravo2"),
            RosterEntry(203, "Bravo3"),
            RosterEntry(101, "Alpha1"),
        ]

        result = lifecycle_service.accept_match(actors.bravo_leader, match.match_id, roster=roster)

        assert result.error_code == error_codes.VALIDATION_ERROR

    def test_random_maps_drawn_on_accept(self, lifecycle_service, actors):
        match = _create_ready(lifecycle_service, actors.alpha_leader, map_policy="random")
        assert match.maps == []

        accepted = lifecycle_service.accept_match(actors.bravo_leader, match.match_id).value

        pool = {"Crash", "Crossfire", "Backlot", "Vacant", "Strike", "Overgrown"}
        assert len(accepted.maps) == 3
        assert len(set(accepted.maps)) == 3
        assert set(accepted.maps) <= pool


class TestRematchCooldown:
    def test_cooldown_blocks_rematch_with_countdown(self, lifecycle_service, actors, clock, play_match):
        play_match()
        clock.advance(2 * 3600)
        rematch = _create_ready(lifecycle_service, actors.alpha_leader)

        result = lifecycle_service.accept_match(actors.bravo_leader, rematch.match_id)

        assert result.error_code == error_codes.REMATCH_COOLDOWN
        assert result.data["hours"] == 1
        assert result.data["minutes"] == 0
        assert result.data["remaining_seconds"] == 3600
        assert result.data["available_at"] == T0 + 3 * 3600

    def test_cooldown_applies_in_either_direction(self, lifecycle_service, actors, clock, play_match):
        play_match()
        clock.advance(60)
        reverse = _create_ready(lifecycle_service, actors.bravo_leader)

        result = lifecycle_service.accept_match(actors.alpha_leader, reverse.match_id)

        assert result.error_code == error_codes.REMATCH_COOLDOWN

    def test_other_squads_not_blocked(self, lifecycle_service, actors, clock, play_match):
        play_match()
        rematch = _create_ready(lifecycle_service, actors.alpha_leader)

        assert lifecycle_service.accept_match(actors.charlie_leader, rematch.match_id).success

    def test_cooldown_ends_at_boundary(self, lifecycle_service, actors, clock, play_match):
        play_match()
        clock.advance(3 * 3600)
        rematch = _create_ready(lifecycle_service, actors.alpha_leader)

        assert lifecycle_service.accept_match(actors.bravo_leader, rematch.match_id).success


class TestResults:
    def _live(self, lifecycle_service, actors):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        return lifecycle_service.accept_match(actors.bravo_leader, match.match_id).value

    def test_declare_completes_and_pays(self, lifecycle_service, actors, squads, recorder):
        match = self._live(lifecycle_service, actors)

        result = lifecycle_service.declare_result(actors.alpha_leader, match.match_id, squads.bravo)

        completed = result.value
        assert completed.status == MatchStatus.COMPLETED
        assert completed.result.winner == squads.bravo
        assert completed.result.confirmed is True
        assert completed.completed_at == T0
        assert completed.result.rewards_given["winner_id"] == squads.bravo
        assert recorder.topics()[-2:] == ["match.completed", "rewards.distributed"]

    def test_only_leader_declares(self, lifecycle_service, actors, squads):
        match = self._live(lifecycle_service, actors)
        result = lifecycle_service.declare_result(actors.alpha_officer, match.match_id, squads.alpha)
        assert result.error_code == error_codes.PERMISSION_DENIED

    def test_outsider_cannot_declare(self, lifecycle_service, actors, squads):
        match = self._live(lifecycle_service, actors)
        result = lifecycle_service.declare_result(
            actors.charlie_leader, match.match_id, squads.charlie
        )
        assert result.error_code == error_codes.NOT_PARTICIPANT

    def test_winner_must_be_participant(self, lifecycle_service, actors, squads):
        match = self._live(lifecycle_service, actors)
        result = lifecycle_service.declare_result(
            actors.alpha_leader, match.match_id, squads.charlie
        )
        assert result.error_code == error_codes.INVALID_WINNER

    def test_cannot_declare_before_acceptance(self, lifecycle_service, actors, squads):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        result = lifecycle_service.declare_result(actors.alpha_leader, match.match_id, squads.alpha)
        assert result.error_code == error_codes.INVALID_STATUS

    def test_report_then_confirm(self, lifecycle_service, actors, squads, recorder):
        match = self._live(lifecycle_service, actors)

        reported = lifecycle_service.report_result(actors.bravo_officer, match.match_id, 3, 6)
        assert reported.value.status == MatchStatus.IN_PROGRESS
        assert reported.value.result.winner == squads.bravo
        assert reported.value.result.confirmed is False

        confirmed = lifecycle_service.confirm_result(actors.alpha_officer, match.match_id)

        assert confirmed.value.status == MatchStatus.COMPLETED
        assert confirmed.value.result.confirmed_by == squads.alpha
        assert recorder.topics() == [
            "match.created",
            "match.accepted",
            "match.result_reported",
            "match.completed",
            "rewards.distributed",
        ]

    def test_reporter_cannot_confirm_own_report(self, lifecycle_service, actors):
        match = self._live(lifecycle_service, actors)
        lifecycle_service.report_result(actors.alpha_leader, match.match_id, 6, 3)

        result = lifecycle_service.confirm_result(actors.alpha_officer, match.match_id)

        assert result.error_code == error_codes.CANNOT_CONFIRM_OWN_REPORT

    def test_confirm_without_report(self, lifecycle_service, actors):
        match = self._live(lifecycle_service, actors)
        result = lifecycle_service.confirm_result(actors.bravo_leader, match.match_id)
        assert result.error_code == error_codes.NO_PENDING_REPORT

    @pytest.mark.parametrize("scores", [(3, 3), (-1, 2)])
    def test_invalid_scores(self, lifecycle_service, actors, scores):
        match = self._live(lifecycle_service, actors)
        result = lifecycle_service.report_result(actors.alpha_leader, match.match_id, *scores)
        assert result.error_code == error_codes.VALIDATION_ERROR

    def test_report_starts_accepted_scheduled_match(self, lifecycle_service, actors, clock):
        match = lifecycle_service.create_match(
            actors.alpha_leader, "squad-team", "cdl", "Hardpoint", 4, scheduled_at=T0 + 3600
        ).value
        lifecycle_service.accept_match(actors.bravo_leader, match.match_id)

        reported = lifecycle_service.report_result(actors.alpha_leader, match.match_id, 250, 180)

        assert reported.value.status == MatchStatus.IN_PROGRESS
        assert reported.value.started_at == T0

    def test_declare_after_report_wins_and_confirm_loses(
        self, lifecycle_service, actors, squads, ladder_registry_service
    ):
        match = self._live(lifecycle_service, actors)
        lifecycle_service.report_result(actors.alpha_leader, match.match_id, 6, 2)
        declared = lifecycle_service.declare_result(
            actors.bravo_leader, match.match_id, squads.alpha
        )
        assert declared.success

        late = lifecycle_service.confirm_result(actors.bravo_leader, match.match_id)

        assert late.error_code == error_codes.ALREADY_RESOLVED
        standing = ladder_registry_service.get_standing(squads.alpha, "squad-team")
        assert standing.points == 25
        assert standing.wins == 1

    def test_history_lists_completed(self, lifecycle_service, squads, play_match):
        completed = play_match()

        history = lifecycle_service.get_match_history(squads.alpha)

        assert [m.match_id for m in history] == [completed.match_id]
        assert lifecycle_service.list_active_matches(squads.alpha) == []


class TestCancellation:
    def test_challenger_cancels_pending(self, lifecycle_service, actors, recorder):
        match = _create_ready(lifecycle_service, actors.alpha_leader)

        result = lifecycle_service.cancel_match(actors.alpha_officer, match.match_id)

        assert result.value.status == MatchStatus.CANCELLED
        assert result.value.cancelled_by == 102
        assert recorder.topics()[-1] == "match.cancelled"

    def test_opponent_cannot_cancel_pending(self, lifecycle_service, actors):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        result = lifecycle_service.cancel_match(actors.bravo_leader, match.match_id)
        assert result.error_code == error_codes.NOT_PARTICIPANT

    def test_member_cannot_cancel(self, lifecycle_service, actors):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        result = lifecycle_service.cancel_match(actors.alpha_member, match.match_id)
        assert result.error_code == error_codes.PERMISSION_DENIED

    def test_accepted_match_needs_both_squads(self, lifecycle_service, actors):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        lifecycle_service.accept_match(actors.bravo_leader, match.match_id)

        result = lifecycle_service.cancel_match(actors.alpha_leader, match.match_id)

        assert result.error_code == error_codes.INVALID_STATUS

    def test_lockout_before_scheduled_start(self, lifecycle_service, actors, clock):
        match = lifecycle_service.create_match(
            actors.alpha_leader, "squad-team", "cdl", "Hardpoint", 4, scheduled_at=T0 + 3600
        ).value
        clock.advance(3600 - 299)

        result = lifecycle_service.cancel_match(actors.alpha_leader, match.match_id)

        assert result.error_code == error_codes.CANCEL_WINDOW_CLOSED
        assert result.data["lockout_seconds"] == 300
        assert result.data["remaining_seconds"] == 299

    def test_cancel_allowed_at_lockout_boundary(self, lifecycle_service, actors, clock):
        match = lifecycle_service.create_match(
            actors.alpha_leader, "squad-team", "cdl", "Hardpoint", 4, scheduled_at=T0 + 3600
        ).value
        clock.advance(3600 - 300)

        assert lifecycle_service.cancel_match(actors.alpha_leader, match.match_id).success

    def test_cooperative_cancel(self, lifecycle_service, actors, squads, recorder):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        lifecycle_service.accept_match(actors.bravo_leader, match.match_id)

        first = lifecycle_service.request_cooperative_cancel(actors.alpha_officer, match.match_id)
        assert first.value.status == MatchStatus.IN_PROGRESS
        assert first.value.cancel_requests == {squads.alpha}
        assert recorder.topics()[-1] == "match.cancel_requested"

        repeat = lifecycle_service.request_cooperative_cancel(actors.alpha_leader, match.match_id)
        assert repeat.error_code == error_codes.CANCEL_ALREADY_REQUESTED

        second = lifecycle_service.request_cooperative_cancel(actors.bravo_leader, match.match_id)
        assert second.value.status == MatchStatus.CANCELLED
        assert recorder.topics()[-1] == "match.cancelled"

        after = lifecycle_service.request_cooperative_cancel(actors.alpha_leader, match.match_id)
        assert after.error_code == error_codes.ALREADY_RESOLVED

    def test_cooperative_cancel_on_pending_match(self, lifecycle_service, actors):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        result = lifecycle_service.request_cooperative_cancel(actors.alpha_leader, match.match_id)
        assert result.error_code == error_codes.INVALID_STATUS

    def test_completion_clears_cancel_requests(self, lifecycle_service, actors, squads):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        lifecycle_service.accept_match(actors.bravo_leader, match.match_id)
        lifecycle_service.request_cooperative_cancel(actors.alpha_leader, match.match_id)

        completed = lifecycle_service.declare_result(
            actors.bravo_leader, match.match_id, squads.bravo
        ).value

        assert completed.cancel_requests == set()


class TestGameCode:
    def _live(self, lifecycle_service, actors):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        return lifecycle_service.accept_match(actors.bravo_leader, match.match_id).value

    def test_host_submits_normalized_code(self, lifecycle_service, actors, squads):
        match = self._live(lifecycle_service, actors)
        host_member = actors.alpha_member if match.host_team == squads.alpha else actors.bravo_member

        result = lifecycle_service.submit_game_code(host_member, match.match_id, "  ab12cd ")

        assert result.value.game_code == "AB12CD"

    def test_guest_team_rejected(self, lifecycle_service, actors, squads):
        match = self._live(lifecycle_service, actors)
        guest = actors.bravo_leader if match.host_team == squads.alpha else actors.alpha_leader

        result = lifecycle_service.submit_game_code(guest, match.match_id, "AB12")

        assert result.error_code == error_codes.NOT_HOST_TEAM

    @pytest.mark.parametrize("code", ["   ", "X" * 33])
    def test_invalid_code(self, lifecycle_service, actors, squads, code):
        match = self._live(lifecycle_service, actors)
        host = actors.alpha_leader if match.host_team == squads.alpha else actors.bravo_leader

        result = lifecycle_service.submit_game_code(host, match.match_id, code)

        assert result.error_code == error_codes.VALIDATION_ERROR


class TestQueries:
    def test_active_matches_for_both_sides(self, lifecycle_service, actors, squads):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        lifecycle_service.accept_match(actors.bravo_leader, match.match_id)

        assert [m.match_id for m in lifecycle_service.list_active_matches(squads.alpha)] == [
            match.match_id
        ]
        assert [m.match_id for m in lifecycle_service.list_active_matches(squads.bravo)] == [
            match.match_id
        ]
        assert lifecycle_service.list_active_matches(squads.charlie) == []

    def test_available_filters(self, lifecycle_service, actors):
        _create_ready(lifecycle_service, actors.alpha_leader, mode="cdl", game_mode="Hardpoint")
        _create_ready(lifecycle_service, actors.bravo_leader)

        assert len(lifecycle_service.list_available_matches(mode="cdl")) == 1
        assert len(lifecycle_service.list_available_matches(ladder_id="squad-team")) == 2
        assert lifecycle_service.list_available_matches(ladder_id="duo-trio") == []

    def test_get_missing_match(self, lifecycle_service):
        assert lifecycle_service.get_match(999).error_code == error_codes.MATCH_NOT_FOUND

    def test_resolve_actor(self, lifecycle_service, actors, squads):
        assert actors.alpha_officer.squad_id == squads.alpha
        assert actors.alpha_officer.squad_role.value == "officer"
        assert actors.outsider.squad_id is None


class TestFailClosed:
    def test_registry_outage_denies_creation(
        self, match_repository, squad_repository, reward_distribution_service, actors
    ):
        broken_repo = MagicMock()
        broken_repo.get_ladder.side_effect = sqlite3.OperationalError("database is locked")
        service = MatchLifecycleService(
            match_repo=match_repository,
            squad_repo=squad_repository,
            ladder_registry=LadderRegistryService(broken_repo),
            reward_distribution=reward_distribution_service,
        )

        result = service.create_match(
            actors.alpha_leader, "squad-team", "hardcore", "Search & Destroy", 4
        )

        assert result.error_code == error_codes.DEPENDENCY_UNAVAILABLE
        assert error_codes.error_category(result.error_code) == error_codes.DEPENDENCY
        assert match_repository.list_pending() == []

    def test_registry_outage_denies_acceptance(
        self, lifecycle_service, match_repository, squad_repository, reward_distribution_service, actors
    ):
        match = _create_ready(lifecycle_service, actors.alpha_leader)
        broken_repo = MagicMock()
        broken_repo.is_registered.side_effect = sqlite3.OperationalError("disk I/O error")
        service = MatchLifecycleService(
            match_repo=match_repository,
            squad_repo=squad_repository,
            ladder_registry=LadderRegistryService(broken_repo),
            reward_distribution=reward_distribution_service,
            clock=lambda: T0,
        )

        result = service.accept_match(actors.bravo_leader, match.match_id)

        assert result.error_code == error_codes.DEPENDENCY_UNAVAILABLE
        assert match_repository.get(match.match_id).status == MatchStatus.PENDING
