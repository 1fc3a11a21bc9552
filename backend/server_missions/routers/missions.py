# backend/server_missions/routers/missions.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from server_missions.auth import Caller, get_caller, get_optional_caller
from server_missions.db import get_db
from server_missions.models.mission import STATUSES, ServerMission
from server_missions.schemas.claim import ClaimOut
from server_missions.schemas.contribution import ContributionIn, ContributionOut, JoinOut
from server_missions.schemas.leaderboard import LeaderboardEntry, LeaderboardOut
from server_missions.schemas.mission import MissionDetail, MissionOut, MyStanding
from server_missions.services import aggregator, leaderboard, rewards
from server_missions.services.errors import InvalidInput
from server_missions.services.ledger import RewardLedger, get_ledger
from server_missions.services.store import get_mission, progress_of, requirements_of

router = APIRouter(prefix="/server-missions", tags=["server-missions"])


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def mission_out(db: Session, mission: ServerMission) -> MissionOut:
    """Mission row plus its requirement/progress maps read fresh from the counters."""
    return MissionOut(
        id=mission.id,
        name=mission.name,
        description=mission.description,
        type=mission.type,
        status=mission.status,
        archived=mission.archived,
        requirements=requirements_of(db, mission.id),
        progress=progress_of(db, mission.id),
        tiers=mission.tier_thresholds,
        rewards_by_tier=mission.rewards_by_tier or {},
        personal_share=mission.personal_share,
        created_at=mission.created_at,
        started_at=mission.started_at,
        ends_at=mission.ends_at,
        completed_at=mission.completed_at,
    )


# ----------------------------------------------------------------------
# Missions
# ----------------------------------------------------------------------
@router.get("", response_model=List[MissionOut])
def list_missions(
    status: Optional[str] = Query(None, description="scheduled | active | completed | failed"),
    include_archived: bool = Query(False),
    db: Session = Depends(get_db),
):
    if status is not None and status not in STATUSES:
        raise InvalidInput(f"Unknown status filter: {status}")
    q = select(ServerMission).order_by(ServerMission.id).execution_options(populate_existing=True)
    if status is not None:
        q = q.where(ServerMission.status == status)
    if not include_archived:
        q = q.where(ServerMission.archived.is_(False))
    return [mission_out(db, m) for m in db.scalars(q).all()]


@router.get("/{mission_id}", response_model=MissionDetail)
def get_mission_detail(
    mission_id: int,
    caller: Optional[Caller] = Depends(get_optional_caller),
    db: Session = Depends(get_db),
):
    """Mission with the caller's live (or frozen) standing when an identity is sent."""
    mission = get_mission(db, mission_id)
    board = leaderboard.get_leaderboard(
        db, mission_id, user_id=caller.user_id if caller else None, page=1, page_size=1
    )
    me = None
    if board.user_position is not None:
        s = board.user_position
        me = MyStanding(
            user_id=s.user_id,
            guild_id=s.guild_id,
            contribution=s.contribution,
            score=s.score,
            tier=s.tier,
            rank=s.rank,
            reward_claimed=s.reward_claimed,
        )
    out = mission_out(db, mission)
    return MissionDetail(**out.model_dump(), participant_count=board.pagination["total"], me=me)


# ----------------------------------------------------------------------
# Participation
# ----------------------------------------------------------------------
@router.post("/{mission_id}/participate", response_model=JoinOut)
def participate(mission_id: int, caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    participant, joined = aggregator.join_mission(db, mission_id, caller.user_id, caller.guild_id)
    return JoinOut(
        mission_id=mission_id,
        user_id=participant.user_id,
        guild_id=participant.guild_id,
        joined_at=participant.joined_at,
        joined=joined,
    )


@router.post("/{mission_id}/contribute", response_model=ContributionOut)
def contribute(
    mission_id: int,
    payload: ContributionIn,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    result = aggregator.contribute(
        db, mission_id, caller.user_id, payload.contributions, guild_id=caller.guild_id
    )
    return ContributionOut(
        mission_id=result.mission_id,
        participant_contribution=result.participant_contribution,
        global_progress=result.global_progress,
        just_completed=result.just_completed,
        score=result.score,
        tier=result.tier,
        status=result.status,
    )


# ----------------------------------------------------------------------
# Leaderboard
# ----------------------------------------------------------------------
@router.get("/{mission_id}/leaderboard", response_model=LeaderboardOut)
def get_leaderboard(
    mission_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=leaderboard.MAX_PAGE_SIZE),
    guild: Optional[str] = Query(None, description="Only participants of this guild"),
    tier: Optional[str] = Query(None, description="Only this tier; 'none' for participants without one"),
    caller: Optional[Caller] = Depends(get_optional_caller),
    db: Session = Depends(get_db),
):
    board = leaderboard.get_leaderboard(
        db,
        mission_id,
        user_id=caller.user_id if caller else None,
        guild_filter=guild,
        tier_filter=tier,
        page=page,
        page_size=page_size,
    )
    return LeaderboardOut(
        mission_id=board.mission_id,
        status=board.status,
        frozen=board.frozen,
        entries=[LeaderboardEntry.model_validate(s) for s in board.entries],
        user_position=(
            LeaderboardEntry.model_validate(board.user_position) if board.user_position else None
        ),
        pagination=board.pagination,
    )


# ----------------------------------------------------------------------
# Rewards
# ----------------------------------------------------------------------
@router.post("/{mission_id}/claim", response_model=ClaimOut)
def claim(
    mission_id: int,
    caller: Caller = Depends(get_caller),
    ledger: RewardLedger = Depends(get_ledger),
    db: Session = Depends(get_db),
):
    result = rewards.claim_reward(db, mission_id, caller.user_id, ledger)
    return ClaimOut(mission_id=result.mission_id, tier=result.tier, reward=result.reward)
