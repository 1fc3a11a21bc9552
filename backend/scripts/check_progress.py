#!/usr/bin/env python3
"""Audit that every mission's progress equals the sum of its participants' contributions.

Read-only: prints any mismatching mission/key pair and exits non-zero if one
is found. Progress is only ever written by atomic increments, so a mismatch
means something wrote to the tables outside the engine.

Run this from the backend directory:
    python scripts/check_progress.py [mission_id ...]
"""

import os
import sys

# Add parent directory to path to import server_missions modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import func, select

from server_missions.db import SessionLocal
from server_missions.models import MissionParticipant, MissionResource, ParticipantContribution
from server_missions.services.quantities import from_units


def find_mismatches(session, mission_ids=None):
    """Return (mission_id, key, progress, summed) in stored units for every key that disagrees."""
    summed = (
        select(
            MissionParticipant.mission_id.label("mission_id"),
            ParticipantContribution.resource_key.label("resource_key"),
            func.sum(ParticipantContribution.amount).label("total"),
        )
        .join(MissionParticipant, MissionParticipant.id == ParticipantContribution.participant_id)
        .group_by(MissionParticipant.mission_id, ParticipantContribution.resource_key)
        .subquery()
    )
    q = (
        select(
            MissionResource.mission_id,
            MissionResource.resource_key,
            MissionResource.progress,
            func.coalesce(summed.c.total, 0),
        )
        .outerjoin(
            summed,
            (summed.c.mission_id == MissionResource.mission_id)
            & (summed.c.resource_key == MissionResource.resource_key),
        )
        .order_by(MissionResource.mission_id, MissionResource.resource_key)
    )
    if mission_ids:
        q = q.where(MissionResource.mission_id.in_(mission_ids))
    return [
        (mid, key, progress, total)
        for mid, key, progress, total in session.execute(q).all()
        if progress != total
    ]


def main(argv) -> int:
    mission_ids = [int(x) for x in argv]
    with SessionLocal() as session:
        bad = find_mismatches(session, mission_ids or None)
    if not bad:
        print("✓ progress matches participant contributions")
        return 0
    for mid, key, progress, total in bad:
        print(f"ERROR: mission {mid} key {key}: progress={from_units(progress)} sum(contributions)={from_units(total)}")
    return 1


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
