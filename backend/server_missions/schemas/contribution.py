# backend/server_missions/schemas/contribution.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional, Union

from pydantic import BaseModel, StrictFloat, StrictInt


class ContributionIn(BaseModel):
    # strict so JSON booleans and numeric strings are refused instead of coerced
    contributions: Dict[str, Union[StrictInt, StrictFloat]]


class ContributionOut(BaseModel):
    mission_id: int
    participant_contribution: Dict[str, float]
    global_progress: Dict[str, float]
    just_completed: bool
    score: float
    tier: Optional[str] = None
    status: str


class JoinOut(BaseModel):
    mission_id: int
    user_id: str
    guild_id: Optional[str] = None
    joined_at: datetime
    joined: bool
