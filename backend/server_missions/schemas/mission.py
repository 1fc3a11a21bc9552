# backend/server_missions/schemas/mission.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, field_validator


class TierThreshold(BaseModel):
    name: str = Field(..., min_length=1, max_length=32)
    multiplier: float = Field(..., ge=0)


class RewardItem(BaseModel):
    item_key: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)


class RewardBundle(BaseModel):
    gold: float = Field(0, ge=0)
    items: List[RewardItem] = []
    server_wide: Optional[Dict[str, Any]] = None


class MissionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    description: str = ""
    type: str = "general"
    # flat resource key -> quantity, strict so booleans and numeric strings fail validation
    requirements: Dict[str, Union[StrictInt, StrictFloat]]
    tiers: List[TierThreshold]
    rewards_by_tier: Dict[str, RewardBundle] = {}
    ends_at: datetime
    personal_share: float = Field(1.0, gt=0)
    start_immediately: bool = False

    @field_validator("requirements")
    @classmethod
    def _non_empty(cls, v):
        if not v:
            raise ValueError("requirements must not be empty")
        return v


class TemplateCreate(BaseModel):
    ends_at: Optional[datetime] = None
    start_immediately: bool = False


class EndRequest(BaseModel):
    forced: bool = False


class MissionOut(BaseModel):
    id: int
    name: str
    description: str
    type: str
    status: str
    archived: bool
    requirements: Dict[str, float]
    progress: Dict[str, float]
    tiers: List[TierThreshold]
    rewards_by_tier: Dict[str, RewardBundle]
    personal_share: float
    created_at: datetime
    started_at: Optional[datetime] = None
    ends_at: datetime
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MyStanding(BaseModel):
    user_id: str
    guild_id: Optional[str] = None
    contribution: Dict[str, float]
    score: float
    tier: Optional[str] = None
    rank: Optional[int] = None
    reward_claimed: bool = False


class MissionDetail(MissionOut):
    participant_count: int
    me: Optional[MyStanding] = None


class TransitionOut(BaseModel):
    mission: MissionOut
    transitioned: bool
