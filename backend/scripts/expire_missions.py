#!/usr/bin/env python3
"""Close every active server mission whose end time has passed.

Meant for cron / a scheduler; safe to run concurrently with live traffic and
with itself, since each mission is closed by a status-guarded update.

Run this from the backend directory:
    python scripts/expire_missions.py
"""

import logging
import os
import sys

# Add parent directory to path to import server_missions modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from server_missions.db import SessionLocal
from server_missions.services.lifecycle import expire_due_missions


def main() -> int:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
    with SessionLocal() as session:
        results = expire_due_missions(session)
    closed = [r for r in results if r.transitioned]
    for r in closed:
        print(f"✓ Mission {r.mission.id} '{r.mission.name}' -> {r.mission.status}")
    print(f"{len(closed)} mission(s) closed, {len(results) - len(closed)} already closed by another caller")
    return 0


if __name__ == "__main__":
    sys.exit(main())
