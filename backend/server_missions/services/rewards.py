# backend/server_missions/services/rewards.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from server_missions.models.mission import COMPLETED
from server_missions.models.participant import MissionParticipant
from server_missions.services.errors import (
    Conflict,
    InvalidState,
    NotFound,
    RewardGrantFailed,
)
from server_missions.services.ledger import LedgerError, RewardLedger
from server_missions.services.store import get_mission, get_participant, utcnow

logger = logging.getLogger(__name__)


@dataclass
class ClaimResult:
    mission_id: int
    user_id: str
    tier: str
    reward: dict[str, Any]


def idempotency_key(mission_id: int, user_id: str) -> str:
    return f"server-mission:{mission_id}:user:{user_id}"


def claim_reward(
    db: Session,
    mission_id: int,
    user_id: str,
    ledger: RewardLedger,
    now: Optional[datetime] = None,
) -> ClaimResult:
    """
    Pay a participant's frozen-tier reward exactly once.

    The claimed flag is flipped by a conditional update before the ledger is
    called and committed only after the grant succeeds, in one transaction.
    A concurrent claim either waits on the flipped row and then finds it
    claimed, or finds it claimed outright; a failed grant rolls the flag back
    so the claim can be retried.

    If an earlier attempt was paid but its commit was lost, the ledger reports
    the idempotency key as already paid: the flag is committed to match and
    the claim is rejected as a duplicate.
    """
    now = now or utcnow()
    try:
        mission = get_mission(db, mission_id)
        if mission.status != COMPLETED:
            raise InvalidState(f"Mission is {mission.status}; rewards are paid for completed missions only")

        participant = get_participant(db, mission_id, user_id)
        if not participant:
            raise NotFound("Not participating in this mission")
        if participant.reward_claimed:
            raise Conflict("Rewards already claimed")
        if not participant.tier:
            raise InvalidState("No tier achieved for rewards")
        reward = (mission.rewards_by_tier or {}).get(participant.tier)
        if reward is None:
            raise InvalidState(f"No reward configured for tier {participant.tier}")

        res = db.execute(
            update(MissionParticipant)
            .where(
                MissionParticipant.id == participant.id,
                MissionParticipant.reward_claimed.is_(False),
            )
            .values(reward_claimed=True, claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            raise Conflict("Rewards already claimed")

        key = idempotency_key(mission_id, user_id)
        try:
            granted = ledger.grant(
                user_id,
                reward,
                key,
                reason=f"Server Mission Reward: {mission.name} ({participant.tier})",
            )
        except LedgerError as exc:
            raise RewardGrantFailed(f"Reward grant failed, try again: {exc}") from exc

        db.commit()
        if not granted:
            logger.warning(
                f"[claim] Ledger already paid mission={mission_id} user={user_id}; claim recorded"
            )
            raise Conflict("Rewards already claimed")
    except RewardGrantFailed:
        db.rollback()
        logger.error(f"[claim] Grant failed for mission={mission_id} user={user_id}; claim left open")
        raise
    except Conflict:
        db.rollback()
        logger.warning(f"[claim] Duplicate claim for mission={mission_id} user={user_id}")
        raise
    except Exception:
        db.rollback()
        raise

    logger.info(f"[claim] mission={mission_id} user={user_id} tier={participant.tier} reward={reward}")
    return ClaimResult(
        mission_id=mission_id,
        user_id=user_id,
        tier=participant.tier,
        reward=dict(reward),
    )
