# backend/server_missions/models/mission_resource.py
from sqlalchemy import BigInteger, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from server_missions.db import Base


class MissionResource(Base):
    """One requirement key of a mission and the global progress counter for it.

    Quantities are integer thousandths, see ``services.quantities``.
    """

    __tablename__ = "mission_resources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mission_id: Mapped[int] = mapped_column(
        ForeignKey("server_missions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    resource_key: Mapped[str] = mapped_column(String(64), nullable=False)
    required: Mapped[int] = mapped_column(BigInteger, nullable=False)
    progress: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("mission_id", "resource_key", name="uq_mission_resource_key"),
    )

    mission = relationship("ServerMission", back_populates="resources")
