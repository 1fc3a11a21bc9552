# backend/server_missions/services/lifecycle.py
"""
Mission lifecycle: scheduled -> active -> completed | failed.

Every transition is a conditional UPDATE keyed on the current status, so when
several callers race (auto-completion inside a contribution, an operator's
end call, the expiry sweep) exactly one of them moves the row and only that
caller runs the finalize pass that freezes tiers, scores and ranks.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from server_missions.models.mission import (
    ACTIVE,
    COMPLETED,
    FAILED,
    SCHEDULED,
    TERMINAL_STATUSES,
    ServerMission,
)
from server_missions.models.mission_resource import MissionResource
from server_missions.models.participant import MissionParticipant
from server_missions.services import tiers
from server_missions.services.errors import Expired, InvalidInput, InvalidState
from server_missions.services.leaderboard import order_standings
from server_missions.services.quantities import to_units
from server_missions.services.store import (
    get_mission,
    load_standings,
    requirements_met,
    to_naive_utc,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    mission: ServerMission
    transitioned: bool

    @property
    def status(self) -> str:
        return self.mission.status


# ----------------------------------------------------------------------
# Validation
# ----------------------------------------------------------------------
def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def validate_requirements(requirements: Mapping[str, Any]) -> dict[str, int]:
    """Flat ``key -> quantity`` map with finite, non-negative values, in stored units."""
    if not isinstance(requirements, Mapping) or not requirements:
        raise InvalidInput("requirements must be a non-empty mapping of resource key to quantity")
    out: dict[str, int] = {}
    for key, value in requirements.items():
        k = (key or "").strip() if isinstance(key, str) else ""
        if not k:
            raise InvalidInput("requirement keys must be non-empty strings")
        if not _is_number(value):
            raise InvalidInput(f"requirement {k!r} must be a number, got {type(value).__name__}")
        units = to_units(value, f"requirement {k!r}")
        if units < 0:
            raise InvalidInput(f"requirement {k!r} must be >= 0")
        if k in out:
            raise InvalidInput(f"duplicate requirement key {k!r}")
        out[k] = units
    return out


def validate_rewards(rewards_by_tier: Mapping[str, Any], tier_names: Sequence[str]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for tier, bundle in (rewards_by_tier or {}).items():
        if tier not in tier_names:
            raise InvalidInput(f"rewards given for unknown tier {tier!r}")
        bundle = dict(bundle or {})
        gold = bundle.get("gold", 0) or 0
        if not _is_number(gold) or not math.isfinite(gold) or gold < 0:
            raise InvalidInput(f"tier {tier!r}: reward gold must be finite and >= 0")
        for item in bundle.get("items") or []:
            if not item.get("item_key") or not _is_number(item.get("quantity")) or item["quantity"] <= 0:
                raise InvalidInput(f"tier {tier!r}: reward items need an item_key and a positive quantity")
        out[tier] = bundle
    return out


# ----------------------------------------------------------------------
# Create / start
# ----------------------------------------------------------------------
def create_mission(
    db: Session,
    *,
    name: str,
    requirements: Mapping[str, Any],
    tiers_config: Sequence[Mapping[str, Any]],
    ends_at: datetime,
    rewards_by_tier: Optional[Mapping[str, Any]] = None,
    description: str = "",
    mission_type: str = "general",
    personal_share: float = 1.0,
    start_immediately: bool = False,
    now: Optional[datetime] = None,
) -> ServerMission:
    now = now or utcnow()
    name = (name or "").strip()
    if not name:
        raise InvalidInput("Name required")
    reqs = validate_requirements(requirements)
    thresholds = tiers.validate_thresholds(tiers_config)
    rewards = validate_rewards(rewards_by_tier or {}, [t["name"] for t in thresholds])
    if not _is_number(personal_share) or not math.isfinite(personal_share) or personal_share <= 0:
        raise InvalidInput("personal_share must be a positive number")
    ends_at = to_naive_utc(ends_at)
    if ends_at <= now:
        raise InvalidInput("ends_at must be in the future")

    mission = ServerMission(
        name=name,
        description=description or "",
        type=mission_type or "general",
        tier_thresholds=thresholds,
        rewards_by_tier=rewards,
        personal_share=float(personal_share),
        status=ACTIVE if start_immediately else SCHEDULED,
        version=0,
        archived=False,
        created_at=now,
        started_at=now if start_immediately else None,
        ends_at=ends_at,
    )
    mission.resources = [
        MissionResource(resource_key=k, required=v, progress=0) for k, v in sorted(reqs.items())
    ]
    db.add(mission)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(mission)
    logger.info(
        f"[lifecycle] Created mission {mission.id} '{mission.name}' status={mission.status} "
        f"keys={sorted(reqs)} ends_at={mission.ends_at.isoformat()}"
    )
    return mission


def start_mission(db: Session, mission_id: int, now: Optional[datetime] = None) -> ServerMission:
    now = now or utcnow()
    res = db.execute(
        update(ServerMission)
        .where(
            ServerMission.id == mission_id,
            ServerMission.status == SCHEDULED,
            ServerMission.ends_at > now,
        )
        .values(status=ACTIVE, started_at=now)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        db.rollback()
        mission = get_mission(db, mission_id)
        if mission.status != SCHEDULED:
            raise InvalidState(f"Mission is {mission.status}, only scheduled missions can start")
        raise Expired("Mission end time has already passed")
    db.commit()
    mission = get_mission(db, mission_id)
    logger.info(f"[lifecycle] Mission {mission_id} started")
    return mission


# ----------------------------------------------------------------------
# Terminal transitions
# ----------------------------------------------------------------------
def _lock_active(db: Session, mission_id: int) -> bool:
    """Bump the version of an active mission, taking its row lock for the transaction."""
    res = db.execute(
        update(ServerMission)
        .where(ServerMission.id == mission_id, ServerMission.status == ACTIVE)
        .values(version=ServerMission.version + 1)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


def _transition(db: Session, mission_id: int, target: str, now: datetime) -> bool:
    """Flip active -> target; the winner finalizes inside the same transaction."""
    res = db.execute(
        update(ServerMission)
        .where(ServerMission.id == mission_id, ServerMission.status == ACTIVE)
        .values(status=target, completed_at=now)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        return False
    finalize(db, mission_id, now)
    return True


def finalize(db: Session, mission_id: int, now: datetime) -> int:
    """Freeze every participant's score, tier and rank. Returns participants processed."""
    mission = db.get(ServerMission, mission_id, populate_existing=True)
    standings = order_standings(load_standings(db, mission))
    if standings:
        db.execute(
            update(MissionParticipant),
            [
                {"id": s.participant_id, "tier": s.tier, "rank": s.rank, "final_score": s.score}
                for s in standings
            ],
        )
    db.execute(
        update(ServerMission)
        .where(ServerMission.id == mission_id)
        .values(finalized_at=now)
        .execution_options(synchronize_session=False)
    )
    logger.info(
        f"[lifecycle] Finalized mission {mission_id} as {mission.status}: "
        f"{len(standings)} participants ranked"
    )
    return len(standings)


def complete_if_requirements_met(db: Session, mission_id: int, now: datetime) -> bool:
    """Auto-completion step; runs in the caller's transaction and does not commit."""
    if not requirements_met(db, mission_id):
        return False
    return _transition(db, mission_id, COMPLETED, now)


def end_mission(
    db: Session, mission_id: int, forced: bool = False, now: Optional[datetime] = None
) -> TransitionResult:
    """
    Operator end. ``forced`` completes the mission regardless of progress;
    otherwise it completes only when every requirement is met and fails if not.
    A mission another caller already ended is returned unchanged.
    """
    now = now or utcnow()
    # take the mission row first so the requirement check sees settled progress
    if not _lock_active(db, mission_id):
        db.rollback()
        mission = get_mission(db, mission_id)
        if mission.status in TERMINAL_STATUSES:
            logger.warning(f"[lifecycle] End of mission {mission_id} ignored: already {mission.status}")
            return TransitionResult(mission=mission, transitioned=False)
        raise InvalidState(f"Mission is {mission.status}, only active missions can end")

    target = COMPLETED if forced or requirements_met(db, mission_id) else FAILED
    try:
        moved = _transition(db, mission_id, target, now)
        db.commit()
    except Exception:
        db.rollback()
        raise
    mission = get_mission(db, mission_id)
    logger.info(f"[lifecycle] Mission {mission_id} ended by operator (forced={forced}) -> {mission.status}")
    return TransitionResult(mission=mission, transitioned=moved)


def expire_due_missions(db: Session, now: Optional[datetime] = None) -> list[TransitionResult]:
    """Close every active mission whose end time has passed."""
    now = now or utcnow()
    due = db.scalars(
        select(ServerMission.id)
        .where(ServerMission.status == ACTIVE, ServerMission.ends_at <= now)
        .order_by(ServerMission.id)
    ).all()
    db.rollback()

    results: list[TransitionResult] = []
    for mission_id in due:
        moved = False
        try:
            if _lock_active(db, mission_id):
                target = COMPLETED if requirements_met(db, mission_id) else FAILED
                moved = _transition(db, mission_id, target, now)
            db.commit()
        except Exception:
            db.rollback()
            raise
        mission = get_mission(db, mission_id)
        if moved:
            logger.info(f"[lifecycle] Mission {mission_id} expired -> {mission.status}")
        results.append(TransitionResult(mission=mission, transitioned=moved))
    return results


def archive_mission(db: Session, mission_id: int) -> ServerMission:
    mission = get_mission(db, mission_id)
    if not mission.is_terminal:
        raise InvalidState("Only completed or failed missions can be archived")
    mission.archived = True
    db.commit()
    db.refresh(mission)
    logger.info(f"[lifecycle] Mission {mission_id} archived")
    return mission
