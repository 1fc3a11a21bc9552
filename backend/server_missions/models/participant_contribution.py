# backend/server_missions/models/participant_contribution.py
from sqlalchemy import BigInteger, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from server_missions.db import Base


class ParticipantContribution(Base):
    __tablename__ = "participant_contributions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    participant_id: Mapped[int] = mapped_column(
        ForeignKey("mission_participants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    resource_key: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("participant_id", "resource_key", name="uq_participant_resource_key"),
    )

    participant = relationship("MissionParticipant", back_populates="contributions")
