# backend/server_missions/services/templates.py
"""Ready-made mission configs operators can launch without writing one by hand."""
from __future__ import annotations

import copy
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from server_missions.models.mission import ServerMission
from server_missions.services import lifecycle
from server_missions.services.errors import NotFound
from server_missions.services.store import utcnow

MISSION_TEMPLATES: dict[str, dict[str, Any]] = {
    "trade_boost": {
        "name": "Grand Trade Festival",
        "description": (
            "Boost the server economy through increased trading activity. "
            "Complete trades to earn rewards and unlock server-wide bonuses."
        ),
        "type": "trade_festival",
        "duration_hours": 48,
        "personal_share": 0.01,
        "requirements": {"trades": 1000, "gold": 500000},
        "tiers": [
            {"name": "bronze", "multiplier": 0.1},
            {"name": "silver", "multiplier": 0.25},
            {"name": "gold", "multiplier": 0.5},
            {"name": "legendary", "multiplier": 1.5},
        ],
        "rewards_by_tier": {
            "bronze": {"gold": 500, "items": [{"item_key": "merchant_badge", "quantity": 1}]},
            "silver": {"gold": 1500, "items": [{"item_key": "trade_certificate", "quantity": 1}]},
            "gold": {"gold": 5000, "items": [{"item_key": "master_trader_seal", "quantity": 1}]},
            "legendary": {
                "gold": 15000,
                "items": [{"item_key": "legendary_merchant_crown", "quantity": 1}],
                "server_wide": {"trade_bonus": 0.25, "duration_hours": 48},
            },
        },
    },
    "resource_drive": {
        "name": "Great Resource Gathering",
        "description": (
            "Collect vital resources to build new server infrastructure. "
            "Contribute items to unlock new areas and features."
        ),
        "type": "resource_drive",
        "duration_hours": 72,
        "personal_share": 0.01,
        "requirements": {"iron_ore": 10000, "herb": 5000, "hide": 3000},
        "tiers": [
            {"name": "bronze", "multiplier": 0.05},
            {"name": "silver", "multiplier": 0.15},
            {"name": "gold", "multiplier": 0.3},
            {"name": "legendary", "multiplier": 1.0},
        ],
        "rewards_by_tier": {
            "bronze": {"gold": 300, "items": [{"item_key": "gatherer_badge", "quantity": 1}]},
            "silver": {"gold": 800, "items": [{"item_key": "resource_specialist", "quantity": 1}]},
            "gold": {"gold": 2000, "items": [{"item_key": "master_gatherer", "quantity": 1}]},
            "legendary": {"gold": 8000, "items": [{"item_key": "resource_lord", "quantity": 1}]},
        },
    },
}


def get_template(key: str) -> dict[str, Any]:
    tpl = MISSION_TEMPLATES.get(key)
    if tpl is None:
        raise NotFound(f"Unknown mission template: {key}")
    return copy.deepcopy(tpl)


def create_from_template(
    db: Session,
    key: str,
    ends_at: Optional[datetime] = None,
    start_immediately: bool = False,
    now: Optional[datetime] = None,
) -> ServerMission:
    tpl = get_template(key)
    now = now or utcnow()
    return lifecycle.create_mission(
        db,
        name=tpl["name"],
        description=tpl["description"],
        mission_type=tpl["type"],
        requirements=tpl["requirements"],
        tiers_config=tpl["tiers"],
        rewards_by_tier=tpl["rewards_by_tier"],
        personal_share=tpl["personal_share"],
        ends_at=ends_at or now + timedelta(hours=tpl["duration_hours"]),
        start_immediately=start_immediately,
        now=now,
    )
