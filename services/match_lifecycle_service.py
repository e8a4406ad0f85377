"""
Match lifecycle engine.

Every command follows the same shape: load the match (applying time-based
transitions first), validate and mutate it in memory, then persist with a
version compare-and-swap. A lost swap reloads and re-validates against the
fresh state, so a racing second acceptor sees "already accepted" and a
second cancel request sees the first one already recorded.

The transition into COMPLETED is the only place rewards are paid.
"""

import functools
import logging
import random
import time
from collections.abc import Callable

from config import (
    CANCEL_LOCKOUT_SECONDS,
    MAX_CHAT_MESSAGE_LENGTH,
    MAX_DISPUTE_REASON_LENGTH,
    MAX_EVIDENCE_PER_SQUAD,
    READY_MATCH_EXPIRY_SECONDS,
    REMATCH_COOLDOWN_SECONDS,
    SCHEDULE_MIN_LEAD_SECONDS,
    SCHEDULE_OVERLAP_WINDOW_SECONDS,
)
from domain.models.match import (
    COOLDOWN_STATUSES,
    PLAYABLE_STATUSES,
    ChatMessage,
    DisputeInfo,
    Evidence,
    GameVariant,
    MapPolicy,
    Match,
    MatchStatus,
    RosterEntry,
)
from domain.models.squad import Squad
from domain.services import match_rules
from domain.services.match_permissions import Actor, Capability, has_capability
from repositories.interfaces import IMatchRepository, ISquadRepository
from services import error_codes
from services import notification_service as events
from services.exceptions import DependencyUnavailableError
from services.interfaces import IMatchLifecycleService
from services.ladder_registry_service import LadderRegistryService
from services.map_pool_service import MapPoolService
from services.notification_service import EventPublisher, MatchEvent
from services.result import Result
from services.reward_distribution_service import RewardDistributionService

logger = logging.getLogger("ladder_bot.services.match_lifecycle")

MAX_SAVE_ATTEMPTS = 5
MAX_GAME_CODE_LENGTH = 32
DEFAULT_DISPUTE_REASON = "No reason provided"

ACTIVE_STATUSES = [
    MatchStatus.PENDING,
    MatchStatus.ACCEPTED,
    MatchStatus.IN_PROGRESS,
    MatchStatus.DISPUTED,
]


def fails_closed(fn):
    """Turn a collaborator outage into a dependency failure instead of an exception."""

    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except DependencyUnavailableError as exc:
            logger.error(f"{fn.__name__} failed closed: {exc}")
            return Result.fail(
                f"{exc.dependency.replace('_', ' ').capitalize()} is unavailable. Try again later.",
                code=error_codes.DEPENDENCY_UNAVAILABLE,
            )

    return wrapper


class MatchLifecycleService(IMatchLifecycleService):
    """
    Creates, accepts, finalizes, disputes and cancels ladder matches.
    """

    def __init__(
        self,
        match_repo: IMatchRepository,
        squad_repo: ISquadRepository,
        ladder_registry: LadderRegistryService,
        reward_distribution: RewardDistributionService,
        map_pool: MapPoolService | None = None,
        publisher: EventPublisher | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
        ready_expiry_seconds: int | None = None,
        rematch_cooldown_seconds: int | None = None,
        schedule_min_lead_seconds: int | None = None,
        schedule_overlap_window_seconds: int | None = None,
        cancel_lockout_seconds: int | None = None,
        max_evidence_per_squad: int | None = None,
        max_chat_message_length: int | None = None,
    ):
        self.match_repo = match_repo
        self.squad_repo = squad_repo
        self.ladder_registry = ladder_registry
        self.reward_distribution = reward_distribution
        self.map_pool = map_pool
        self.publisher = publisher
        self._rng = rng or random.Random()
        self._clock = clock
        self.ready_expiry_seconds = (
            ready_expiry_seconds if ready_expiry_seconds is not None else READY_MATCH_EXPIRY_SECONDS
        )
        self.rematch_cooldown_seconds = (
            rematch_cooldown_seconds
            if rematch_cooldown_seconds is not None
            else REMATCH_COOLDOWN_SECONDS
        )
        self.schedule_min_lead_seconds = (
            schedule_min_lead_seconds
            if schedule_min_lead_seconds is not None
            else SCHEDULE_MIN_LEAD_SECONDS
        )
        self.schedule_overlap_window_seconds = (
            schedule_overlap_window_seconds
            if schedule_overlap_window_seconds is not None
            else SCHEDULE_OVERLAP_WINDOW_SECONDS
        )
        self.cancel_lockout_seconds = (
            cancel_lockout_seconds if cancel_lockout_seconds is not None else CANCEL_LOCKOUT_SECONDS
        )
        self.max_evidence_per_squad = (
            max_evidence_per_squad if max_evidence_per_squad is not None else MAX_EVIDENCE_PER_SQUAD
        )
        self.max_chat_message_length = (
            max_chat_message_length
            if max_chat_message_length is not None
            else MAX_CHAT_MESSAGE_LENGTH
        )

    # =========================================================================
    # Plumbing
    # =========================================================================

    def _now(self) -> int:
        return int(self._clock())

    def _publish(self, topic: str, match: Match, actor_id: int | None = None, **payload) -> None:
        if not self.publisher:
            return
        payload.setdefault("status", match.status.value)
        self.publisher.publish(
            topic,
            MatchEvent(
                topic=topic,
                match_id=match.match_id,
                actor_id=actor_id,
                squad_ids=match.squad_ids(),
                payload=payload,
            ),
        )

    def _apply_time_rules(self, match: Match, now: int) -> str | None:
        """Mutate a match for elapsed time. Returns the event topic if anything changed."""
        if match.is_terminal:
            return None
        if match_rules.is_expired(match, now, self.ready_expiry_seconds):
            match.status = MatchStatus.EXPIRED
            return events.MATCH_EXPIRED
        if (
            match.status == MatchStatus.ACCEPTED
            and match.scheduled_at is not None
            and now >= match.scheduled_at
        ):
            match.status = MatchStatus.IN_PROGRESS
            match.started_at = match.scheduled_at
            return events.MATCH_STARTED
        return None

    def _load(self, match_id: int, now: int) -> Match | None:
        """Fetch a match, persisting any time-based transition that is due."""
        for _ in range(MAX_SAVE_ATTEMPTS):
            match = self.match_repo.get(match_id)
            if match is None:
                return None
            expected = match.version
            topic = self._apply_time_rules(match, now)
            if topic is None:
                return match
            if self.match_repo.save_if_unchanged(match, expected):
                logger.info(f"Match {match_id} moved to {match.status.value} by elapsed time")
                self._publish(topic, match)
                return match
        return self.match_repo.get(match_id)

    def _mutate(
        self,
        match_id: int,
        apply: Callable[[Match, int], Result],
        actor_id: int | None = None,
    ) -> Result[Match]:
        """
        Run `apply` against the latest match state and compare-and-swap the result.

        `apply` validates and mutates the match in place, returning Result.ok(topic)
        on success or a failure Result. It is re-run on a fresh copy whenever the
        stored version moved underneath it.
        """
        for _ in range(MAX_SAVE_ATTEMPTS):
            now = self._now()
            match = self._load(match_id, now)
            if match is None:
                return Result.fail("Match not found.", code=error_codes.MATCH_NOT_FOUND)
            previous_status = match.status
            expected = match.version
            outcome = apply(match, now)
            if not outcome.success:
                logger.debug(
                    f"Match {match_id} rejected for actor {actor_id}: "
                    f"[{outcome.error_code}] {outcome.error}"
                )
                return outcome
            if not self.match_repo.save_if_unchanged(match, expected):
                continue
            logger.info(
                f"Match {match_id}: {previous_status.value} -> {match.status.value} "
                f"({outcome.value}) by {actor_id}"
            )
            self._publish(outcome.value, match, actor_id)
            if match.status == MatchStatus.COMPLETED and previous_status != MatchStatus.COMPLETED:
                self._on_completed(match)
            return Result.ok(match)
        logger.warning(f"Match {match_id}: gave up after {MAX_SAVE_ATTEMPTS} version conflicts")
        return Result.fail(
            "The match changed while you were acting on it. Please try again.",
            code=error_codes.CONCURRENT_MODIFICATION,
        )

    def _complete(self, match: Match, winner_id: int, now: int) -> None:
        """Shared terminal transition for every way a match can be won."""
        match.status = MatchStatus.COMPLETED
        match.completed_at = now
        match.result.winner = winner_id
        match.cancel_requests.clear()

    def _on_completed(self, match: Match) -> None:
        try:
            result = self.reward_distribution.distribute(match)
        except Exception:
            logger.exception(f"Reward distribution crashed for match {match.match_id}")
            return
        if not result.success:
            # The match stays completed without a ledger; resume_pending_distributions repairs it.
            logger.error(
                f"Reward distribution failed for match {match.match_id}: "
                f"[{result.error_code}] {result.error}"
            )

    @staticmethod
    def _status_failure(match: Match) -> Result:
        """Failure for an action attempted in a status that does not allow it."""
        if match.status == MatchStatus.EXPIRED:
            return Result.fail(
                "This match has expired.",
                code=error_codes.MATCH_EXPIRED,
                data={"status": match.status.value},
            )
        if match.status in (MatchStatus.COMPLETED, MatchStatus.CANCELLED):
            return Result.fail(
                f"This match is already {match.status.value}.",
                code=error_codes.ALREADY_RESOLVED,
                data={"status": match.status.value},
            )
        return Result.fail(
            f"This action is not allowed while the match is {match.status.value}.",
            code=error_codes.INVALID_STATUS,
            data={"status": match.status.value},
        )

    @staticmethod
    def _require_participant(actor: Actor, match: Match, capability: Capability) -> Result | None:
        if not match.is_participant(actor.squad_id):
            return Result.fail(
                "Your squad is not part of this match.", code=error_codes.NOT_PARTICIPANT
            )
        if not has_capability(actor, capability, actor.squad_id):
            return Result.fail(
                "You do not have permission to do that for your squad.",
                code=error_codes.PERMISSION_DENIED,
            )
        return None

    def _snapshot_roster(
        self, squad: Squad, team_size: int, roster: list[RosterEntry] | None
    ) -> Result[list[RosterEntry]]:
        """Freeze who plays. Without an explicit roster, the first team_size members play."""
        member_ids = {m.player_id for m in squad.members}
        if roster is None:
            return Result.ok(
                [
                    RosterEntry(player_id=m.player_id, display_name=m.display_name)
                    for m in squad.members[:team_size]
                ]
            )
        if len(roster) > team_size:
            return Result.fail(
                f"Roster has {len(roster)} players but the match is {team_size}v{team_size}.",
                code=error_codes.INVALID_TEAM_SIZE,
            )
        player_ids = [entry.player_id for entry in roster]
        if len(set(player_ids)) != len(player_ids):
            return Result.fail("A player appears twice in the roster.", code=error_codes.VALIDATION_ERROR)
        return Result.ok(
            [
                RosterEntry(
                    player_id=entry.player_id,
                    display_name=entry.display_name,
                    is_helper=entry.player_id not in member_ids,
                )
                for entry in roster
            ]
        )

    # =========================================================================
    # Actors
    # =========================================================================

    def resolve_actor(self, user_id: int, is_staff: bool = False, display_name: str = "") -> Actor:
        """Build an Actor from the user's current squad membership."""
        squad = self.squad_repo.get_squad_for_player(user_id)
        if squad is None:
            return Actor(user_id=user_id, is_staff=is_staff, display_name=display_name)
        return Actor(
            user_id=user_id,
            squad_id=squad.squad_id,
            squad_role=squad.role_of(user_id),
            is_staff=is_staff,
            display_name=display_name,
        )

    # =========================================================================
    # Commands
    # =========================================================================

    @fails_closed
    def create_match(
        self,
        actor: Actor,
        ladder_id: str,
        mode: str,
        game_mode: str,
        team_size: int,
        scheduled_at: int | None = None,
        map_policy: MapPolicy | str = MapPolicy.FIXED,
        map_name: str | None = None,
        roster: list[RosterEntry] | None = None,
    ) -> Result[Match]:
        """
        Post a challenge for the actor's squad.

        A ready match (no scheduled_at) is open for READY_MATCH_EXPIRY_SECONDS;
        a squad may only have one such match pending. A scheduled match must
        start at least SCHEDULE_MIN_LEAD_SECONDS from now and not overlap
        another scheduled match of the squad.
        """
        if actor.squad_id is None:
            return Result.fail("You are not in a squad.", code=error_codes.NOT_SQUAD_MEMBER)
        if not has_capability(actor, Capability.CREATE_MATCH):
            return Result.fail(
                "Only squad leaders and officers can post matches.",
                code=error_codes.PERMISSION_DENIED,
            )
        try:
            variant = GameVariant(mode)
            policy = MapPolicy(map_policy)
        except ValueError:
            return Result.fail(
                f"Unknown mode or map policy: {mode}/{map_policy}.",
                code=error_codes.VALIDATION_ERROR,
            )
        game_mode = (game_mode or "").strip()
        if not game_mode:
            return Result.fail("A game mode is required.", code=error_codes.VALIDATION_ERROR)

        bounds = self.ladder_registry.team_size_bounds(ladder_id)
        if bounds is None:
            return Result.fail(f"Unknown ladder '{ladder_id}'.", code=error_codes.LADDER_NOT_FOUND)
        if not self.ladder_registry.is_registered(actor.squad_id, ladder_id):
            return Result.fail(
                "Your squad is not registered to this ladder.", code=error_codes.NOT_REGISTERED
            )
        min_size, max_size = bounds
        if not min_size <= team_size <= max_size:
            return Result.fail(
                f"Team size must be between {min_size} and {max_size} on this ladder.",
                code=error_codes.INVALID_TEAM_SIZE,
                data={"min": min_size, "max": max_size},
            )

        squad = self.squad_repo.get_squad(actor.squad_id)
        if squad is None:
            return Result.fail("Squad not found.", code=error_codes.SQUAD_NOT_FOUND)
        roster_result = self._snapshot_roster(squad, team_size, roster)
        if not roster_result:
            return roster_result

        now = self._now()
        if scheduled_at is not None:
            earliest = now + self.schedule_min_lead_seconds
            if scheduled_at < earliest:
                return Result.fail(
                    "Scheduled matches must start at least "
                    f"{self.schedule_min_lead_seconds // 60} minutes from now.",
                    code=error_codes.SCHEDULE_TOO_SOON,
                    data={
                        "earliest_scheduled_at": earliest,
                        "min_lead_seconds": self.schedule_min_lead_seconds,
                    },
                )
            clashes = self.match_repo.find_scheduled_near(
                actor.squad_id, scheduled_at, self.schedule_overlap_window_seconds
            )
            if clashes:
                return Result.fail(
                    "Your squad already has a match scheduled around that time.",
                    code=error_codes.SCHEDULE_CONFLICT,
                    data={"conflicting_match_ids": [m.match_id for m in clashes]},
                )
        else:
            existing = self.match_repo.find_pending_ready_match(actor.squad_id)
            if existing is not None:
                existing = self._load(existing.match_id, now)
            if existing is not None and existing.status == MatchStatus.PENDING:
                return Result.fail(
                    "Your squad already has a ready match waiting for an opponent.",
                    code=error_codes.READY_MATCH_EXISTS,
                    data={"match_id": existing.match_id},
                )

        match = Match(
            ladder_id=ladder_id,
            mode=variant,
            game_mode=game_mode,
            team_size=team_size,
            challenger_id=actor.squad_id,
            created_by=actor.user_id,
            created_at=now,
            map_policy=policy,
            scheduled_at=scheduled_at,
            ready_created_at=now if scheduled_at is None else None,
            challenger_roster=roster_result.value,
            maps=[map_name.strip()] if policy == MapPolicy.FIXED and map_name else [],
        )
        try:
            match = self.match_repo.create(match)
        except ValueError as exc:
            # Lost a race with a concurrent ready challenge from the same squad
            logger.info(f"Ready match for squad {actor.squad_id} rejected by storage: {exc}")
            return Result.fail(
                "Your squad already has a ready match waiting for an opponent.",
                code=error_codes.READY_MATCH_EXISTS,
            )
        logger.info(
            f"Match {match.match_id} created by {actor.user_id} for squad {actor.squad_id} "
            f"on {ladder_id} ({'ready' if scheduled_at is None else f'scheduled {scheduled_at}'})"
        )
        self._publish(events.MATCH_CREATED, match, actor.user_id)
        return Result.ok(match)

    @fails_closed
    def accept_match(
        self, actor: Actor, match_id: int, roster: list[RosterEntry] | None = None
    ) -> Result[Match]:
        """
        Accept a pending challenge for the actor's squad.

        Ready matches start immediately; scheduled matches wait in ACCEPTED
        until their start time.
        """
        if actor.squad_id is None:
            return Result.fail("You are not in a squad.", code=error_codes.NOT_SQUAD_MEMBER)
        if not has_capability(actor, Capability.ACCEPT_MATCH):
            return Result.fail(
                "Only squad leaders and officers can accept matches.",
                code=error_codes.PERMISSION_DENIED,
            )
        squad = self.squad_repo.get_squad(actor.squad_id)
        if squad is None:
            return Result.fail("Squad not found.", code=error_codes.SQUAD_NOT_FOUND)

        def apply(match: Match, now: int) -> Result:
            if match.status != MatchStatus.PENDING:
                if match.opponent_id is not None and match.status != MatchStatus.CANCELLED:
                    return Result.fail(
                        "This match was already accepted.", code=error_codes.ALREADY_ACCEPTED
                    )
                return self._status_failure(match)
            if match.challenger_id == actor.squad_id:
                return Result.fail(
                    "You cannot accept your own squad's match.", code=error_codes.SELF_CHALLENGE
                )
            if not self.ladder_registry.is_registered(actor.squad_id, match.ladder_id):
                return Result.fail(
                    "Your squad is not registered to this ladder.", code=error_codes.NOT_REGISTERED
                )

            last_accepted = self.match_repo.get_last_accepted_between(
                match.challenger_id, actor.squad_id, list(COOLDOWN_STATUSES)
            )
            ends_at = match_rules.cooldown_ends_at(last_accepted, self.rematch_cooldown_seconds)
            if ends_at is not None and now < ends_at:
                wait = match_rules.remaining_wait(ends_at, now)
                return Result.fail(
                    "You played this squad recently. Try again in "
                    f"{wait['hours']}h {wait['minutes']}m.",
                    code=error_codes.REMATCH_COOLDOWN,
                    data=wait,
                )

            roster_result = self._snapshot_roster(squad, match.team_size, roster)
            if not roster_result:
                return roster_result
            challenger_players = {entry.player_id for entry in match.challenger_roster}
            if challenger_players & {entry.player_id for entry in roster_result.value}:
                return Result.fail(
                    "A player cannot play on both sides of a match.",
                    code=error_codes.VALIDATION_ERROR,
                )

            if match.map_policy == MapPolicy.RANDOM and self.map_pool is not None:
                match.maps = self.map_pool.draw_random_maps(match.ladder_id, match.game_mode)

            match.opponent_id = actor.squad_id
            match.opponent_roster = roster_result.value
            match.accepted_at = now
            match.accepted_by = actor.user_id
            match.host_team = match.challenger_id if self._rng.random() < 0.5 else actor.squad_id
            if match.is_ready_match:
                match.status = MatchStatus.IN_PROGRESS
                match.started_at = now
            else:
                match.status = MatchStatus.ACCEPTED
            return Result.ok(events.MATCH_ACCEPTED)

        return self._mutate(match_id, apply, actor.user_id)

    @fails_closed
    def declare_result(self, actor: Actor, match_id: int, winner_squad_id: int) -> Result[Match]:
        """Trusted declaration by a participant squad leader; completes the match at once."""

        def apply(match: Match, now: int) -> Result:
            denied = self._require_participant(actor, match, Capability.DECLARE_RESULT)
            if denied:
                return denied
            if match.status not in PLAYABLE_STATUSES:
                return self._status_failure(match)
            if not match.is_participant(winner_squad_id):
                return Result.fail(
                    "The winner must be one of the two squads in this match.",
                    code=error_codes.INVALID_WINNER,
                )
            match.result.reported_by = actor.squad_id
            match.result.reported_at = now
            match.result.confirmed = True
            match.result.confirmed_by = actor.squad_id
            match.result.confirmed_at = now
            self._complete(match, winner_squad_id, now)
            return Result.ok(events.MATCH_COMPLETED)

        return self._mutate(match_id, apply, actor.user_id)

    @fails_closed
    def report_result(
        self, actor: Actor, match_id: int, challenger_score: int, opponent_score: int
    ) -> Result[Match]:
        """First half of the two-step path: propose a score for the other squad to confirm."""

        def apply(match: Match, now: int) -> Result:
            denied = self._require_participant(actor, match, Capability.REPORT_RESULT)
            if denied:
                return denied
            if match.status not in PLAYABLE_STATUSES:
                return self._status_failure(match)
            if challenger_score < 0 or opponent_score < 0:
                return Result.fail("Scores cannot be negative.", code=error_codes.VALIDATION_ERROR)
            winner = match_rules.winner_from_scores(match, challenger_score, opponent_score)
            if winner is None:
                return Result.fail(
                    "Ladder matches cannot end in a draw.", code=error_codes.VALIDATION_ERROR
                )
            match.result.winner = winner
            match.result.challenger_score = challenger_score
            match.result.opponent_score = opponent_score
            match.result.reported_by = actor.squad_id
            match.result.reported_at = now
            match.result.confirmed = False
            match.result.confirmed_by = None
            match.result.confirmed_at = None
            if match.status == MatchStatus.ACCEPTED:
                match.status = MatchStatus.IN_PROGRESS
                match.started_at = match.started_at or now
            return Result.ok(events.MATCH_RESULT_REPORTED)

        return self._mutate(match_id, apply, actor.user_id)

    @fails_closed
    def confirm_result(self, actor: Actor, match_id: int) -> Result[Match]:
        """Second half of the two-step path; only the non-reporting squad may confirm."""

        def apply(match: Match, now: int) -> Result:
            denied = self._require_participant(actor, match, Capability.CONFIRM_RESULT)
            if denied:
                return denied
            if match.status not in PLAYABLE_STATUSES:
                return self._status_failure(match)
            if match.result.reported_by is None or match.result.winner is None:
                return Result.fail(
                    "No result has been reported yet.", code=error_codes.NO_PENDING_REPORT
                )
            if match.result.reported_by == actor.squad_id:
                return Result.fail(
                    "The other squad must confirm your report.",
                    code=error_codes.CANNOT_CONFIRM_OWN_REPORT,
                )
            match.result.confirmed = True
            match.result.confirmed_by = actor.squad_id
            match.result.confirmed_at = now
            self._complete(match, match.result.winner, now)
            return Result.ok(events.MATCH_COMPLETED)

        return self._mutate(match_id, apply, actor.user_id)

    @fails_closed
    def cancel_match(self, actor: Actor, match_id: int) -> Result[Match]:
        """Unilateral cancel by the challenging squad before anyone accepted."""

        def apply(match: Match, now: int) -> Result:
            if actor.squad_id != match.challenger_id:
                return Result.fail(
                    "Only the squad that posted this match can cancel it.",
                    code=error_codes.NOT_PARTICIPANT,
                )
            if not has_capability(actor, Capability.CANCEL_MATCH, match.challenger_id):
                return Result.fail(
                    "Only squad leaders and officers can cancel matches.",
                    code=error_codes.PERMISSION_DENIED,
                )
            if match.status != MatchStatus.PENDING:
                if match.status in PLAYABLE_STATUSES:
                    return Result.fail(
                        "This match was accepted; both squads must request cancellation.",
                        code=error_codes.INVALID_STATUS,
                        data={"status": match.status.value},
                    )
                return self._status_failure(match)
            if (
                match.scheduled_at is not None
                and match.scheduled_at - now < self.cancel_lockout_seconds
            ):
                return Result.fail(
                    "Scheduled matches cannot be cancelled within "
                    f"{self.cancel_lockout_seconds // 60} minutes of the start.",
                    code=error_codes.CANCEL_WINDOW_CLOSED,
                    data={
                        "scheduled_at": match.scheduled_at,
                        "lockout_seconds": self.cancel_lockout_seconds,
                        **match_rules.remaining_wait(match.scheduled_at, now),
                    },
                )
            match.status = MatchStatus.CANCELLED
            match.cancelled_by = actor.user_id
            return Result.ok(events.MATCH_CANCELLED)

        return self._mutate(match_id, apply, actor.user_id)

    @fails_closed
    def request_cooperative_cancel(self, actor: Actor, match_id: int) -> Result[Match]:
        """
        Record the actor squad's wish to cancel an accepted match.

        The request that finds the other squad already present cancels the match.
        """

        def apply(match: Match, now: int) -> Result:
            denied = self._require_participant(actor, match, Capability.REQUEST_CANCEL)
            if denied:
                return denied
            if match.status not in PLAYABLE_STATUSES:
                if match.status == MatchStatus.PENDING:
                    return Result.fail(
                        "This match has not been accepted; cancel it directly instead.",
                        code=error_codes.INVALID_STATUS,
                        data={"status": match.status.value},
                    )
                return self._status_failure(match)
            if actor.squad_id in match.cancel_requests:
                return Result.fail(
                    "Your squad already requested cancellation.",
                    code=error_codes.CANCEL_ALREADY_REQUESTED,
                )
            match.cancel_requests.add(actor.squad_id)
            if set(match.squad_ids()) <= match.cancel_requests:
                match.status = MatchStatus.CANCELLED
                match.cancelled_by = actor.user_id
                return Result.ok(events.MATCH_CANCELLED)
            return Result.ok(events.MATCH_CANCEL_REQUESTED)

        return self._mutate(match_id, apply, actor.user_id)

    @fails_closed
    def raise_dispute(self, actor: Actor, match_id: int, reason: str = "") -> Result[Match]:
        def apply(match: Match, now: int) -> Result:
            denied = self._require_participant(actor, match, Capability.RAISE_DISPUTE)
            if denied:
                return denied
            if match.status not in PLAYABLE_STATUSES:
                return self._status_failure(match)
            text = (reason or "").strip()[:MAX_DISPUTE_REASON_LENGTH] or DEFAULT_DISPUTE_REASON
            match.dispute = DisputeInfo(
                is_disputed=True,
                disputed_by=actor.squad_id,
                disputed_by_user=actor.user_id,
                disputed_at=now,
                reason=text,
                evidence=list(match.dispute.evidence),
            )
            match.status = MatchStatus.DISPUTED
            return Result.ok(events.MATCH_DISPUTED)

        return self._mutate(match_id, apply, actor.user_id)

    @fails_closed
    def attach_dispute_evidence(
        self, actor: Actor, match_id: int, url: str, description: str = ""
    ) -> Result[Match]:
        """Add a screenshot/link to an open dispute. Each squad may add a limited number."""

        def apply(match: Match, now: int) -> Result:
            participant = match.is_participant(actor.squad_id)
            if not participant and not actor.is_staff:
                return Result.fail(
                    "Your squad is not part of this match.", code=error_codes.NOT_PARTICIPANT
                )
            squad_scope = actor.squad_id if participant else None
            if not has_capability(actor, Capability.ATTACH_EVIDENCE, squad_scope):
                return Result.fail(
                    "You do not have permission to add evidence.",
                    code=error_codes.PERMISSION_DENIED,
                )
            if match.status != MatchStatus.DISPUTED:
                return self._status_failure(match)
            link = (url or "").strip()
            if not link:
                return Result.fail("Evidence needs a link.", code=error_codes.VALIDATION_ERROR)
            if participant and match.dispute.evidence_count(actor.squad_id) >= self.max_evidence_per_squad:
                return Result.fail(
                    f"Your squad already submitted {self.max_evidence_per_squad} pieces of evidence.",
                    code=error_codes.EVIDENCE_LIMIT_REACHED,
                    data={"limit": self.max_evidence_per_squad},
                )
            match.dispute.evidence.append(
                Evidence(
                    squad_id=actor.squad_id if participant else 0,
                    submitted_by=actor.user_id,
                    url=link,
                    description=(description or "").strip()[:MAX_DISPUTE_REASON_LENGTH],
                    submitted_at=now,
                )
            )
            return Result.ok(events.MATCH_EVIDENCE_ADDED)

        return self._mutate(match_id, apply, actor.user_id)

    @fails_closed
    def resolve_dispute(
        self,
        actor: Actor,
        match_id: int,
        winner_squad_id: int | None = None,
        cancel: bool = False,
    ) -> Result[Match]:
        """Staff decision on a dispute: award the match to a squad, or cancel it."""
        if not has_capability(actor, Capability.RESOLVE_DISPUTE):
            return Result.fail("Only staff can resolve disputes.", code=error_codes.PERMISSION_DENIED)
        if cancel == (winner_squad_id is not None):
            return Result.fail(
                "Choose either a winner or cancellation.", code=error_codes.VALIDATION_ERROR
            )

        def apply(match: Match, now: int) -> Result:
            if match.status != MatchStatus.DISPUTED:
                return self._status_failure(match)
            match.dispute.resolved_by = actor.user_id
            match.dispute.resolved_at = now
            if cancel:
                match.dispute.resolution = "cancelled"
                match.status = MatchStatus.CANCELLED
                match.cancelled_by = actor.user_id
                return Result.ok(events.MATCH_CANCELLED)
            if not match.is_participant(winner_squad_id):
                return Result.fail(
                    "The winner must be one of the two squads in this match.",
                    code=error_codes.INVALID_WINNER,
                )
            match.dispute.resolution = "winner"
            match.dispute.winner = winner_squad_id
            match.result.confirmed = True
            match.result.confirmed_at = now
            self._complete(match, winner_squad_id, now)
            return Result.ok(events.MATCH_COMPLETED)

        return self._mutate(match_id, apply, actor.user_id)

    @fails_closed
    def revert_dispute(self, actor: Actor, match_id: int) -> Result[Match]:
        """Staff reopen: the match returns to in-progress with no result decided."""
        if not has_capability(actor, Capability.RESOLVE_DISPUTE):
            return Result.fail("Only staff can revert disputes.", code=error_codes.PERMISSION_DENIED)

        def apply(match: Match, now: int) -> Result:
            if match.status != MatchStatus.DISPUTED:
                return self._status_failure(match)
            match.dispute.is_disputed = False
            match.dispute.resolved_by = actor.user_id
            match.dispute.resolved_at = now
            match.dispute.resolution = "reverted"
            match.status = MatchStatus.IN_PROGRESS
            match.started_at = match.started_at or now
            return Result.ok(events.MATCH_DISPUTE_REVERTED)

        return self._mutate(match_id, apply, actor.user_id)

    @fails_closed
    def submit_game_code(self, actor: Actor, match_id: int, code: str) -> Result[Match]:
        """The host team shares the lobby join code."""

        def apply(match: Match, now: int) -> Result:
            denied = self._require_participant(actor, match, Capability.SUBMIT_GAME_CODE)
            if denied:
                return denied
            if match.status not in PLAYABLE_STATUSES:
                return self._status_failure(match)
            if actor.squad_id != match.host_team:
                return Result.fail(
                    "Only the host team can submit the game code.", code=error_codes.NOT_HOST_TEAM
                )
            cleaned = (code or "").strip().upper()
            if not cleaned or len(cleaned) > MAX_GAME_CODE_LENGTH:
                return Result.fail(
                    f"Game code must be 1-{MAX_GAME_CODE_LENGTH} characters.",
                    code=error_codes.VALIDATION_ERROR,
                )
            match.game_code = cleaned
            return Result.ok(events.MATCH_GAME_CODE)

        return self._mutate(match_id, apply, actor.user_id)

    @fails_closed
    def post_chat_message(self, actor: Actor, match_id: int, message: str) -> Result[Match]:
        """Append a line to the match chat. Open to both squads and to staff."""
        text = (message or "").strip()
        if not text:
            return Result.fail("A message is required.", code=error_codes.VALIDATION_ERROR)
        if len(text) > self.max_chat_message_length:
            return Result.fail(
                f"Messages are limited to {self.max_chat_message_length} characters.",
                code=error_codes.VALIDATION_ERROR,
                data={"limit": self.max_chat_message_length},
            )

        def apply(match: Match, now: int) -> Result:
            participant = match.is_participant(actor.squad_id)
            if not participant and not actor.is_staff:
                return Result.fail(
                    "Your squad is not part of this match.", code=error_codes.NOT_PARTICIPANT
                )
            squad_scope = actor.squad_id if participant else None
            if not has_capability(actor, Capability.POST_CHAT, squad_scope):
                return Result.fail(
                    "You do not have permission to chat in this match.",
                    code=error_codes.PERMISSION_DENIED,
                )
            match.chat.append(
                ChatMessage(
                    author_id=actor.user_id,
                    author_name=actor.display_name,
                    squad_id=squad_scope,
                    message=text,
                    is_staff=actor.is_staff,
                    created_at=now,
                )
            )
            return Result.ok(events.MATCH_CHAT_MESSAGE)

        return self._mutate(match_id, apply, actor.user_id)

    # =========================================================================
    # Queries and maintenance
    # =========================================================================

    def get_match(self, match_id: int) -> Result[Match]:
        match = self._load(match_id, self._now())
        if match is None:
            return Result.fail("Match not found.", code=error_codes.MATCH_NOT_FOUND)
        return Result.ok(match)

    def _expire_stale(self, now: int) -> list[int]:
        """Bulk-expire stale pending matches and announce each one."""
        expired_ids = self.match_repo.expire_stale(now, self.ready_expiry_seconds)
        for match_id in expired_ids:
            match = self.match_repo.get(match_id)
            if match is not None:
                self._publish(events.MATCH_EXPIRED, match)
        if expired_ids:
            logger.info(f"Expired stale matches: {expired_ids}")
        return expired_ids

    def sweep_expired_matches(self) -> list[int]:
        """
        Expire stale pending matches and start scheduled matches whose time came.

        Returns the ids of matches that expired.
        """
        now = self._now()
        expired_ids = self._expire_stale(now)
        for match in self.match_repo.list_by_status(MatchStatus.ACCEPTED):
            if match.scheduled_at is not None and now >= match.scheduled_at:
                self._load(match.match_id, now)
        return expired_ids

    def list_available_matches(
        self, ladder_id: str | None = None, mode: str | None = None
    ) -> list[Match]:
        """Open challenges, ready matches first, with stale ones expired on the way."""
        self._expire_stale(self._now())
        return self.match_repo.list_pending(ladder_id, mode)

    def list_active_matches(self, squad_id: int) -> list[Match]:
        now = self._now()
        matches = []
        for match in self.match_repo.list_for_squad(squad_id, ACTIVE_STATUSES):
            refreshed = self._load(match.match_id, now)
            if refreshed is not None and refreshed.status in ACTIVE_STATUSES:
                matches.append(refreshed)
        return matches

    def get_match_history(self, squad_id: int, limit: int = 10) -> list[Match]:
        return self.match_repo.list_for_squad(squad_id, [MatchStatus.COMPLETED], limit=limit)

    def get_match_chat(self, actor: Actor, match_id: int) -> Result[list[ChatMessage]]:
        """The chat log, visible to the two squads and to staff."""
        match = self._load(match_id, self._now())
        if match is None:
            return Result.fail("Match not found.", code=error_codes.MATCH_NOT_FOUND)
        if not match.is_participant(actor.squad_id) and not actor.is_staff:
            return Result.fail(
                "Your squad is not part of this match.", code=error_codes.NOT_PARTICIPANT
            )
        return Result.ok(list(match.chat))

    def get_player_history(self, player_id: int, limit: int = 10) -> list[Match]:
        """Completed matches the player was rostered in, for whichever squad."""
        return self.match_repo.list_for_player(player_id, [MatchStatus.COMPLETED], limit=limit)

    def list_disputed_matches(self) -> list[Match]:
        return self.match_repo.list_by_status(MatchStatus.DISPUTED)
