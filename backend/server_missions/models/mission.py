# backend/server_missions/models/mission.py
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from server_missions.db import Base

# Mission status values; transitions only ever move forward.
SCHEDULED = "scheduled"
ACTIVE = "active"
COMPLETED = "completed"
FAILED = "failed"

STATUSES = (SCHEDULED, ACTIVE, COMPLETED, FAILED)
TERMINAL_STATUSES = (COMPLETED, FAILED)


class ServerMission(Base):
    __tablename__ = "server_missions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    type: Mapped[str] = mapped_column(String(64), default="general", nullable=False)

    # [{"name": "bronze", "multiplier": 0.25}, ...] lowest multiplier first
    tier_thresholds: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    # {"bronze": {"gold": 500, "items": [...], "server_wide": {...}}, ...}
    rewards_by_tier: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    personal_share: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=SCHEDULED)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    __table_args__ = (
        Index("ix_server_missions_status_ends", "status", "ends_at"),
    )

    resources = relationship(
        "MissionResource",
        back_populates="mission",
        cascade="all, delete-orphan",
        order_by="MissionResource.resource_key",
    )
    participants = relationship(
        "MissionParticipant",
        back_populates="mission",
        cascade="all, delete-orphan",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def tier_names(self) -> list[str]:
        return [t["name"] for t in (self.tier_thresholds or [])]
