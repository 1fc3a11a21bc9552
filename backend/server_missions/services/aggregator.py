# backend/server_missions/services/aggregator.py
"""
Contribution ingestion.

A contribution is folded into the participant's per-key counters and the
mission's per-key progress counters with ``UPDATE ... SET x = x + :delta``
statements inside one transaction. The transaction opens with a conditional
version bump on the mission row (``status = 'active' AND ends_at > now``),
which both re-checks that the mission is still open and serializes
contributions to the same mission, so the completion check that follows sees
every earlier contribution and no later one.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from server_missions.models.mission import ACTIVE, COMPLETED, ServerMission
from server_missions.models.mission_resource import MissionResource
from server_missions.models.participant import MissionParticipant
from server_missions.models.participant_contribution import ParticipantContribution
from server_missions.services import lifecycle, tiers
from server_missions.services.errors import Expired, InvalidInput, InvalidState
from server_missions.services.quantities import from_units, to_units
from server_missions.services.store import (
    contribution_of,
    get_mission,
    get_participant,
    progress_of,
    requirements_of,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass
class ContributionResult:
    mission_id: int
    user_id: str
    participant_contribution: dict[str, float]
    global_progress: dict[str, float]
    just_completed: bool
    score: float
    tier: Optional[str]
    status: str


def validate_deltas(deltas: Mapping[str, Any], requirement_keys: Iterable[str]) -> dict[str, int]:
    """Return the positive deltas of a flat ``key -> amount`` map, in stored units.

    Zero amounts are allowed next to positive ones and dropped; a set with
    nothing positive is rejected with InvalidInput.
    """
    keys = set(requirement_keys)
    if not isinstance(deltas, Mapping) or not deltas:
        raise InvalidInput("No contributions given")

    positive: dict[str, int] = {}
    for key, value in deltas.items():
        if key not in keys:
            raise InvalidInput(f"Unknown resource key for this mission: {key!r}")
        units = to_units(value, f"Contribution for {key!r}")
        if units < 0:
            raise InvalidInput(f"Contribution for {key!r} must not be negative")
        if units > 0:
            positive[key] = units

    if not positive:
        raise InvalidInput("Contribution must include at least one positive amount")
    return positive


def _check_open(mission: ServerMission, now: datetime) -> None:
    if mission.status != ACTIVE:
        raise InvalidState(f"Mission is {mission.status}, not accepting contributions")
    if now >= mission.ends_at:
        raise Expired("Mission has ended")


def _open_for_writes(db: Session, mission_id: int, now: datetime) -> bool:
    res = db.execute(
        update(ServerMission)
        .where(
            ServerMission.id == mission_id,
            ServerMission.status == ACTIVE,
            ServerMission.ends_at > now,
        )
        .values(version=ServerMission.version + 1)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


def _reject_closed(db: Session, mission_id: int, now: datetime) -> None:
    """The guarded update matched nothing: report why and apply nothing."""
    db.rollback()
    mission = get_mission(db, mission_id)
    _check_open(mission, now)
    raise InvalidState("Mission is not accepting contributions")


def _get_or_join(
    db: Session,
    mission_id: int,
    user_id: str,
    guild_id: Optional[str],
    requirement_keys: Iterable[str],
    now: datetime,
) -> tuple[MissionParticipant, bool]:
    participant = get_participant(db, mission_id, user_id)
    if participant:
        if guild_id and participant.guild_id is None:
            participant.guild_id = guild_id
            db.flush()
        return participant, False

    participant = MissionParticipant(
        mission_id=mission_id,
        user_id=user_id,
        guild_id=guild_id,
        joined_at=now,
        reward_claimed=False,
    )
    participant.contributions = [
        ParticipantContribution(resource_key=k, amount=0) for k in sorted(requirement_keys)
    ]
    db.add(participant)
    db.flush()
    return participant, True


def contribute(
    db: Session,
    mission_id: int,
    user_id: str,
    deltas: Mapping[str, Any],
    guild_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ContributionResult:
    now = now or utcnow()
    try:
        mission = get_mission(db, mission_id)
        _check_open(mission, now)
        requirements = requirements_of(db, mission_id)
        applied = validate_deltas(deltas, requirements)

        if not _open_for_writes(db, mission_id, now):
            _reject_closed(db, mission_id, now)

        participant, joined = _get_or_join(db, mission_id, user_id, guild_id, requirements, now)

        # fixed key order keeps row locks acquired in the same order everywhere
        for key in sorted(applied):
            db.execute(
                update(ParticipantContribution)
                .where(
                    ParticipantContribution.participant_id == participant.id,
                    ParticipantContribution.resource_key == key,
                )
                .values(amount=ParticipantContribution.amount + applied[key])
                .execution_options(synchronize_session=False)
            )
            db.execute(
                update(MissionResource)
                .where(
                    MissionResource.mission_id == mission_id,
                    MissionResource.resource_key == key,
                )
                .values(progress=MissionResource.progress + applied[key])
                .execution_options(synchronize_session=False)
            )

        just_completed = lifecycle.complete_if_requirements_met(db, mission_id, now)
        contribution = contribution_of(db, participant.id)
        progress = progress_of(db, mission_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    score, tier = tiers.evaluate(
        contribution, requirements, mission.tier_thresholds, mission.personal_share
    )
    shown = {k: from_units(v) for k, v in applied.items()}
    logger.info(
        f"[contribute] mission={mission_id} user={user_id} deltas={shown} "
        f"new_participant={joined} score={score:.3f} completed={just_completed}"
    )
    return ContributionResult(
        mission_id=mission_id,
        user_id=user_id,
        participant_contribution=contribution,
        global_progress=progress,
        just_completed=just_completed,
        score=score,
        tier=tier,
        status=COMPLETED if just_completed else ACTIVE,
    )


def join_mission(
    db: Session,
    mission_id: int,
    user_id: str,
    guild_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[MissionParticipant, bool]:
    """Explicitly join an active mission with zero contribution. Idempotent."""
    now = now or utcnow()
    try:
        mission = get_mission(db, mission_id)
        _check_open(mission, now)
        requirements = requirements_of(db, mission_id)
        if not _open_for_writes(db, mission_id, now):
            _reject_closed(db, mission_id, now)
        participant, joined = _get_or_join(db, mission_id, user_id, guild_id, requirements, now)
        db.commit()
    except Exception:
        db.rollback()
        raise

    if joined:
        logger.info(f"[contribute] user={user_id} joined mission={mission_id} guild={guild_id}")
    return participant, joined
