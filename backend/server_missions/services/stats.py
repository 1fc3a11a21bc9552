# backend/server_missions/services/stats.py
from __future__ import annotations

from collections import Counter

from sqlalchemy.orm import Session

from server_missions.services import tiers
from server_missions.services.store import get_mission, load_standings, progress_of, requirements_of


def mission_stats(db: Session, mission_id: int) -> dict:
    """Participation, tier distribution and per-key completion for one mission."""
    mission = get_mission(db, mission_id)
    frozen = mission.finalized_at is not None
    standings = load_standings(db, mission, frozen=frozen)

    # configured tiers only; participants without a tier are counted apart
    distribution = {name: 0 for name in tiers.tier_order(mission.tier_thresholds)}
    unranked = 0
    for s in standings:
        if s.tier in distribution:
            distribution[s.tier] += 1
        else:
            unranked += 1

    guilds = Counter(s.guild_id for s in standings if s.guild_id)

    requirements = requirements_of(db, mission_id)
    progress = progress_of(db, mission_id)
    completion = {}
    for key, required in requirements.items():
        done = progress.get(key, 0.0)
        pct = 100.0 if required <= 0 else min(100.0, done / required * 100.0)
        completion[key] = {"required": required, "progress": done, "percent": round(pct, 2)}

    return {
        "mission_id": mission.id,
        "status": mission.status,
        "frozen": frozen,
        "participants": len(standings),
        "rewards_claimed": sum(1 for s in standings if s.reward_claimed),
        "tier_distribution": distribution,
        "unranked": unranked,
        "guilds": [{"guild_id": g, "participants": n} for g, n in guilds.most_common()],
        "completion": completion,
    }
