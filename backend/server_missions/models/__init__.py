# backend/server_missions/models/__init__.py
# IMPORTANT: Use Base from server_missions.db since all models import from there
from server_missions.db import Base

# import all model modules so tables get registered on Base.metadata
from .mission import ServerMission
from .mission_resource import MissionResource
from .participant import MissionParticipant
from .participant_contribution import ParticipantContribution


__all__ = [
    "Base",
    "ServerMission",
    "MissionResource",
    "MissionParticipant",
    "ParticipantContribution",
]
