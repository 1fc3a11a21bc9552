# backend/server_missions/schemas/__init__.py

# Missions
from .mission import (
    MissionCreate,
    MissionOut,
    MissionDetail,
    TemplateCreate,
    EndRequest,
    TransitionOut,
)

# Contributions / leaderboard / claims
from .contribution import ContributionIn, ContributionOut, JoinOut
from .leaderboard import LeaderboardOut
from .claim import ClaimOut

__all__ = [
    "MissionCreate", "MissionOut", "MissionDetail", "TemplateCreate", "EndRequest", "TransitionOut",
    "ContributionIn", "ContributionOut", "JoinOut",
    "LeaderboardOut",
    "ClaimOut",
]
