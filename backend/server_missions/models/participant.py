# backend/server_missions/models/participant.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from server_missions.db import Base


class MissionParticipant(Base):
    __tablename__ = "mission_participants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mission_id: Mapped[int] = mapped_column(
        ForeignKey("server_missions.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    guild_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Frozen by the lifecycle finalize pass; null while the mission runs
    tier: Mapped[str | None] = mapped_column(String(32), nullable=True)
    rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    final_score: Mapped[float | None] = mapped_column(Float, nullable=True)

    reward_claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    __table_args__ = (
        UniqueConstraint("mission_id", "user_id", name="uq_mission_participant_user"),
        Index("ix_mission_participants_mission_rank", "mission_id", "rank"),
    )

    mission = relationship("ServerMission", back_populates="participants")
    contributions = relationship(
        "ParticipantContribution",
        back_populates="participant",
        cascade="all, delete-orphan",
        order_by="ParticipantContribution.resource_key",
    )
