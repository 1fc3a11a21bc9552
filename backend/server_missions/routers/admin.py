# backend/server_missions/routers/admin.py
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from server_missions.auth import Caller, require_admin
from server_missions.db import get_db
from server_missions.routers.missions import mission_out
from server_missions.schemas.mission import (
    EndRequest,
    MissionCreate,
    MissionOut,
    TemplateCreate,
    TransitionOut,
)
from server_missions.services import lifecycle, stats, templates

router = APIRouter(prefix="/admin/server-missions", tags=["admin"])
logger = logging.getLogger(__name__)


@router.post("", response_model=MissionOut, status_code=201)
def create_mission(payload: MissionCreate, caller: Caller = Depends(require_admin), db: Session = Depends(get_db)):
    """Create a mission, scheduled by default or active with start_immediately."""
    logger.info(f"[admin] {caller.user_id} creating mission '{payload.name}'")
    mission = lifecycle.create_mission(
        db,
        name=payload.name,
        description=payload.description,
        mission_type=payload.type,
        requirements=payload.requirements,
        tiers_config=[t.model_dump() for t in payload.tiers],
        rewards_by_tier={k: v.model_dump(exclude_none=True) for k, v in payload.rewards_by_tier.items()},
        ends_at=payload.ends_at,
        personal_share=payload.personal_share,
        start_immediately=payload.start_immediately,
    )
    return mission_out(db, mission)


@router.get("/templates", response_model=List[str])
def list_templates(caller: Caller = Depends(require_admin)):
    return sorted(templates.MISSION_TEMPLATES)


@router.post("/templates/{template_key}", response_model=MissionOut, status_code=201)
def create_from_template(
    template_key: str,
    payload: Optional[TemplateCreate] = None,
    caller: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
):
    payload = payload or TemplateCreate()
    logger.info(f"[admin] {caller.user_id} creating mission from template '{template_key}'")
    mission = templates.create_from_template(
        db, template_key, ends_at=payload.ends_at, start_immediately=payload.start_immediately
    )
    return mission_out(db, mission)


@router.post("/expire", response_model=List[TransitionOut])
def expire_missions(caller: Caller = Depends(require_admin), db: Session = Depends(get_db)):
    """Close every active mission past its end time."""
    results = lifecycle.expire_due_missions(db)
    return [TransitionOut(mission=mission_out(db, r.mission), transitioned=r.transitioned) for r in results]


@router.post("/{mission_id}/start", response_model=MissionOut)
def start_mission(mission_id: int, caller: Caller = Depends(require_admin), db: Session = Depends(get_db)):
    logger.info(f"[admin] {caller.user_id} starting mission {mission_id}")
    return mission_out(db, lifecycle.start_mission(db, mission_id))


@router.post("/{mission_id}/end", response_model=TransitionOut)
def end_mission(
    mission_id: int,
    payload: Optional[EndRequest] = None,
    caller: Caller = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """End an active mission. forced=true completes it regardless of progress."""
    payload = payload or EndRequest()
    logger.info(f"[admin] {caller.user_id} ending mission {mission_id} (forced={payload.forced})")
    result = lifecycle.end_mission(db, mission_id, forced=payload.forced)
    return TransitionOut(mission=mission_out(db, result.mission), transitioned=result.transitioned)


@router.post("/{mission_id}/archive", response_model=MissionOut)
def archive_mission(mission_id: int, caller: Caller = Depends(require_admin), db: Session = Depends(get_db)):
    return mission_out(db, lifecycle.archive_mission(db, mission_id))


@router.get("/{mission_id}/stats")
def mission_stats(mission_id: int, caller: Caller = Depends(require_admin), db: Session = Depends(get_db)):
    return stats.mission_stats(db, mission_id)
