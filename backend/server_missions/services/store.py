# backend/server_missions/services/store.py
"""Read helpers over the mission tables.

Writes to ``progress``/``amount`` never go through here: the aggregator issues
its own ``UPDATE ... SET x = x + :delta`` statements. Counters are stored as
integer units (see ``quantities``) and returned here as plain numbers.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from server_missions.models.mission import ServerMission
from server_missions.models.mission_resource import MissionResource
from server_missions.models.participant import MissionParticipant
from server_missions.models.participant_contribution import ParticipantContribution
from server_missions.services import tiers
from server_missions.services.errors import NotFound
from server_missions.services.quantities import from_units


def utcnow() -> datetime:
    """Naive UTC; the schema stores naive datetimes."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


@dataclass
class Standing:
    participant_id: int
    user_id: str
    guild_id: Optional[str]
    joined_at: datetime
    contribution: dict[str, float] = field(default_factory=dict)
    score: float = 0.0
    tier: Optional[str] = None
    rank: Optional[int] = None
    reward_claimed: bool = False


def get_mission(db: Session, mission_id: int) -> ServerMission:
    mission = db.get(ServerMission, mission_id, populate_existing=True)
    if not mission:
        raise NotFound("Mission not found")
    return mission


def get_participant(db: Session, mission_id: int, user_id: str) -> Optional[MissionParticipant]:
    return db.scalar(
        select(MissionParticipant)
        .where(
            MissionParticipant.mission_id == mission_id,
            MissionParticipant.user_id == user_id,
        )
        .execution_options(populate_existing=True)
    )


def requirements_of(db: Session, mission_id: int) -> dict[str, float]:
    rows = db.execute(
        select(MissionResource.resource_key, MissionResource.required)
        .where(MissionResource.mission_id == mission_id)
        .order_by(MissionResource.resource_key)
    ).all()
    return {r.resource_key: from_units(r.required) for r in rows}


def progress_of(db: Session, mission_id: int) -> dict[str, float]:
    rows = db.execute(
        select(MissionResource.resource_key, MissionResource.progress)
        .where(MissionResource.mission_id == mission_id)
        .order_by(MissionResource.resource_key)
    ).all()
    return {r.resource_key: from_units(r.progress) for r in rows}


def contribution_of(db: Session, participant_id: int) -> dict[str, float]:
    rows = db.execute(
        select(ParticipantContribution.resource_key, ParticipantContribution.amount)
        .where(ParticipantContribution.participant_id == participant_id)
        .order_by(ParticipantContribution.resource_key)
    ).all()
    return {r.resource_key: from_units(r.amount) for r in rows}


def requirements_met(db: Session, mission_id: int) -> bool:
    short = db.scalar(
        select(func.count())
        .select_from(MissionResource)
        .where(
            MissionResource.mission_id == mission_id,
            MissionResource.progress < MissionResource.required,
        )
    )
    return short == 0


def load_standings(db: Session, mission: ServerMission, frozen: bool = False) -> list[Standing]:
    """Every participant of a mission with contribution maps and scores.

    ``frozen`` returns the stored final score/tier/rank instead of computing
    them from current contributions.
    """
    participants = db.scalars(
        select(MissionParticipant)
        .where(MissionParticipant.mission_id == mission.id)
        .execution_options(populate_existing=True)
    ).all()
    if not participants:
        return []

    amounts = db.execute(
        select(
            ParticipantContribution.participant_id,
            ParticipantContribution.resource_key,
            ParticipantContribution.amount,
        )
        .join(MissionParticipant, MissionParticipant.id == ParticipantContribution.participant_id)
        .where(MissionParticipant.mission_id == mission.id)
    ).all()
    by_participant: dict[int, dict[str, float]] = {}
    for row in amounts:
        by_participant.setdefault(row.participant_id, {})[row.resource_key] = from_units(row.amount)

    requirements = requirements_of(db, mission.id)
    out: list[Standing] = []
    for p in participants:
        contribution = by_participant.get(p.id, {})
        if frozen:
            score, tier, rank = p.final_score or 0.0, p.tier, p.rank
        else:
            score, tier = tiers.evaluate(
                contribution, requirements, mission.tier_thresholds, mission.personal_share
            )
            rank = None
        out.append(
            Standing(
                participant_id=p.id,
                user_id=p.user_id,
                guild_id=p.guild_id,
                joined_at=p.joined_at,
                contribution=contribution,
                score=score,
                tier=tier,
                rank=rank,
                reward_claimed=p.reward_claimed,
            )
        )
    return out
