# backend/server_missions/auth.py
"""Caller identity as forwarded by the upstream auth gateway.

The gateway authenticates the player and sets ``X-User-Id`` (and optionally
``X-Guild-Id`` / ``X-User-Role``) before the request reaches this service.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException

from server_missions.services.errors import Forbidden


@dataclass(frozen=True)
class Caller:
    user_id: str
    guild_id: Optional[str] = None
    is_admin: bool = False


def _admin_ids() -> set[str]:
    raw = os.getenv("ADMIN_USER_IDS", "")
    return {x.strip() for x in raw.split(",") if x.strip()}


def get_caller(
    x_user_id: Optional[str] = Header(None),
    x_guild_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Caller:
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    role = (x_user_role or "").strip().lower()
    return Caller(
        user_id=user_id,
        guild_id=(x_guild_id or "").strip() or None,
        is_admin=role == "admin" or user_id in _admin_ids(),
    )


def get_optional_caller(
    x_user_id: Optional[str] = Header(None),
    x_guild_id: Optional[str] = Header(None),
) -> Optional[Caller]:
    if not (x_user_id or "").strip():
        return None
    return Caller(user_id=x_user_id.strip(), guild_id=(x_guild_id or "").strip() or None)


def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_admin:
        raise Forbidden("Admin access required")
    return caller
