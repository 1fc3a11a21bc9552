# backend/server_missions/services/leaderboard.py
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from server_missions.services.errors import InvalidInput
from server_missions.services.store import Standing, get_mission, load_standings

MAX_PAGE_SIZE = 200
NO_TIER = "none"


@dataclass
class Leaderboard:
    mission_id: int
    status: str
    frozen: bool
    entries: list[Standing] = field(default_factory=list)
    user_position: Optional[Standing] = None
    pagination: dict = field(default_factory=dict)


def _sort_key(s: Standing):
    # score desc, earlier joiners first, participant id as the last word
    return (-s.score, s.joined_at, s.participant_id)


def order_standings(standings: Iterable[Standing]) -> list[Standing]:
    """Sort standings into leaderboard order and number them from 1."""
    ordered = sorted(standings, key=_sort_key)
    for i, s in enumerate(ordered, start=1):
        s.rank = i
    return ordered


def _frozen_order(standings: Iterable[Standing]) -> list[Standing]:
    return sorted(
        standings,
        key=lambda s: (s.rank if s.rank is not None else math.inf, _sort_key(s)),
    )


def _matches(s: Standing, guild_filter: Optional[str], tier_filter: Optional[str]) -> bool:
    if guild_filter is not None and s.guild_id != guild_filter:
        return False
    if tier_filter is not None:
        if tier_filter == NO_TIER:
            return s.tier is None
        return s.tier == tier_filter
    return True


def get_leaderboard(
    db: Session,
    mission_id: int,
    user_id: Optional[str] = None,
    guild_filter: Optional[str] = None,
    tier_filter: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
) -> Leaderboard:
    """
    Ranked participants of a mission, filtered then paginated.

    Ranks are positions in the unfiltered ordering. Once the mission has been
    finalized the stored scores, tiers and ranks are served as-is; before that
    they are computed on every call and never written back.
    """
    if page < 1:
        raise InvalidInput("page must be >= 1")
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        raise InvalidInput(f"page_size must be between 1 and {MAX_PAGE_SIZE}")

    mission = get_mission(db, mission_id)
    frozen = mission.finalized_at is not None
    standings = load_standings(db, mission, frozen=frozen)
    ordered = _frozen_order(standings) if frozen else order_standings(standings)

    filtered = [s for s in ordered if _matches(s, guild_filter, tier_filter)]
    total = len(filtered)
    total_pages = math.ceil(total / page_size) if total else 0
    offset = (page - 1) * page_size

    user_position = None
    if user_id is not None:
        user_position = next((s for s in ordered if s.user_id == user_id), None)

    return Leaderboard(
        mission_id=mission.id,
        status=mission.status,
        frozen=frozen,
        entries=filtered[offset:offset + page_size],
        user_position=user_position,
        pagination={
            "page": page,
            "page_size": page_size,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    )
