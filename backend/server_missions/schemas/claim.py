# backend/server_missions/schemas/claim.py
from pydantic import BaseModel

from server_missions.schemas.mission import RewardBundle


class ClaimOut(BaseModel):
    mission_id: int
    tier: str
    reward: RewardBundle
