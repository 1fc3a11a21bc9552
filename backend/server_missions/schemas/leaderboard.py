# backend/server_missions/schemas/leaderboard.py
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class LeaderboardEntry(BaseModel):
    rank: Optional[int] = None
    user_id: str
    guild_id: Optional[str] = None
    score: float
    tier: Optional[str] = None
    contribution: Dict[str, float]

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class LeaderboardOut(BaseModel):
    mission_id: int
    status: str
    frozen: bool
    entries: List[LeaderboardEntry]
    user_position: Optional[LeaderboardEntry] = None
    pagination: Pagination
