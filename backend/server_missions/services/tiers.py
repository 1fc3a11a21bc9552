# backend/server_missions/services/tiers.py
"""
Contribution scores and tier assignment.

A participant's score is the unweighted mean, over every requirement key, of
``contribution / fair_share`` where ``fair_share = required * personal_share``.
Item ratios are capped at 1.0; the reserved ``gold`` and ``trades`` keys are
left uncapped so that multipliers above 1.0 (legendary style tiers) can be
reached by over-contributing currency or trades.
"""
from __future__ import annotations

import math
from typing import Iterable, Mapping, Optional, Sequence

from server_missions.services.errors import InvalidInput

RESERVED_KEYS = ("gold", "trades")
ITEM_RATIO_CAP = 1.0


def fair_share(required: float, personal_share: float = 1.0) -> float:
    return required * personal_share


def key_ratio(key: str, contributed: float, required: float, personal_share: float = 1.0) -> float:
    share = fair_share(required, personal_share)
    if share <= 0:
        # nothing asked of anyone for this key
        return 1.0
    ratio = max(0.0, contributed) / share
    if key in RESERVED_KEYS:
        return ratio
    return min(ratio, ITEM_RATIO_CAP)


def contribution_score(
    contribution: Mapping[str, float],
    requirements: Mapping[str, float],
    personal_share: float = 1.0,
) -> float:
    """Mean per-key ratio over all requirement keys (0.0 with no contribution)."""
    if not requirements or not contribution:
        return 0.0
    if not any(contribution.get(k, 0) > 0 for k in requirements):
        return 0.0
    total = sum(
        key_ratio(key, contribution.get(key, 0.0), required, personal_share)
        for key, required in requirements.items()
    )
    return total / len(requirements)


def tier_for_score(score: float, thresholds: Sequence[Mapping]) -> Optional[str]:
    """Highest tier whose multiplier the score meets, or None below every tier."""
    for t in reversed(sorted(thresholds, key=lambda t: t["multiplier"])):
        if score >= t["multiplier"]:
            return t["name"]
    return None


def evaluate(
    contribution: Mapping[str, float],
    requirements: Mapping[str, float],
    thresholds: Sequence[Mapping],
    personal_share: float = 1.0,
) -> tuple[float, Optional[str]]:
    score = contribution_score(contribution, requirements, personal_share)
    return score, tier_for_score(score, thresholds)


def validate_thresholds(thresholds: Sequence[Mapping]) -> list[dict]:
    """Check a tier config and return it normalized (lowest multiplier first).

    Tiers must be listed lowest to highest with non-decreasing multipliers,
    unique non-empty names and finite, non-negative multipliers.
    """
    if not thresholds:
        raise InvalidInput("At least one tier is required")

    out: list[dict] = []
    seen: set[str] = set()
    prev = None
    for t in thresholds:
        name = (t.get("name") or "").strip()
        mult = t.get("multiplier")
        if not name:
            raise InvalidInput("Tier name required")
        if name in seen:
            raise InvalidInput(f"Duplicate tier name: {name}")
        if isinstance(mult, bool) or not isinstance(mult, (int, float)):
            raise InvalidInput(f"Tier {name}: multiplier must be a number")
        if not math.isfinite(mult) or mult < 0:
            raise InvalidInput(f"Tier {name}: multiplier must be finite and >= 0")
        if prev is not None and mult < prev:
            raise InvalidInput(
                f"Tier {name}: multipliers must be listed lowest to highest ({mult} < {prev})"
            )
        seen.add(name)
        prev = mult
        out.append({"name": name, "multiplier": float(mult)})
    return out


def tier_order(thresholds: Iterable[Mapping]) -> dict[str, int]:
    """Tier name -> position, 0 being the lowest tier."""
    ordered = sorted(thresholds, key=lambda t: t["multiplier"])
    return {t["name"]: i for i, t in enumerate(ordered)}
