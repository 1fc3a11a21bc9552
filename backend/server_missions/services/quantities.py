# backend/server_missions/services/quantities.py
"""Fixed-point storage for requirement, progress and contribution counters.

Quantities are stored as integer thousandths so that increments applied in SQL
add up exactly on every backend (SQLite has no exact decimal arithmetic).
Callers see plain numbers; anything finer than a thousandth is rejected.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from server_missions.services.errors import InvalidInput

SCALE = 1000
DECIMAL_PLACES = 3
MAX_QUANTITY = 10 ** 12


def to_units(value: Any, what: str = "quantity") -> int:
    """Number -> stored integer units, or InvalidInput."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise InvalidInput(f"{what} must be a number")
    try:
        d = Decimal(str(value))
    except InvalidOperation as exc:
        raise InvalidInput(f"{what} must be a number") from exc
    if not d.is_finite():
        raise InvalidInput(f"{what} must be finite")
    if abs(d) > MAX_QUANTITY:
        raise InvalidInput(f"{what} must not exceed {MAX_QUANTITY}")
    scaled = d * SCALE
    if scaled != scaled.to_integral_value():
        raise InvalidInput(f"{what} allows at most {DECIMAL_PLACES} decimal places")
    return int(scaled)


def from_units(units: int) -> float:
    return units / SCALE
