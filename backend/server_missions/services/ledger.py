# backend/server_missions/services/ledger.py
"""Clients for the external inventory/wallet ledger that actually pays rewards.

The engine only authorizes grants. Every grant carries an idempotency key so a
claim retried after an ambiguous failure cannot pay twice.
"""
from __future__ import annotations

import logging
import os
import threading
from typing import Any, Mapping, Optional

import httpx
from fastapi import Request

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    pass


class RewardLedger:
    def grant(
        self,
        user_id: str,
        reward: Mapping[str, Any],
        idempotency_key: str,
        reason: str = "",
    ) -> bool:
        """Pay ``reward`` once per key. False means the key was already paid."""
        raise NotImplementedError


class HttpRewardLedger(RewardLedger):
    """POSTs grants to ``{base_url}/grants`` with an ``Idempotency-Key`` header.

    The ledger answers a repeated key with the stored result and an
    ``Idempotent-Replayed: true`` header; that is reported as a duplicate.
    """

    def __init__(self, base_url: str, timeout: float = 10.0, client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(timeout=timeout)

    def grant(self, user_id, reward, idempotency_key, reason=""):
        body = {
            "user_id": user_id,
            "gold": reward.get("gold", 0) or 0,
            "items": list(reward.get("items") or []),
            "reason": reason,
        }
        try:
            resp = self.client.post(
                f"{self.base_url}/grants",
                json=body,
                headers={"Idempotency-Key": idempotency_key},
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(f"[ledger] Grant {idempotency_key} failed: {exc}")
            raise LedgerError(str(exc)) from exc
        if resp.headers.get("Idempotent-Replayed", "").lower() == "true":
            logger.warning(f"[ledger] Grant {idempotency_key} was already paid")
            return False
        logger.info(f"[ledger] Granted {idempotency_key} to user={user_id}")
        return True

    def close(self) -> None:
        self.client.close()


class InMemoryRewardLedger(RewardLedger):
    """Process-local ledger for development and tests; deduplicates by idempotency key."""

    def __init__(self):
        self._lock = threading.Lock()
        self.grants: dict[str, dict[str, Any]] = {}
        self.calls = 0

    def grant(self, user_id, reward, idempotency_key, reason=""):
        with self._lock:
            self.calls += 1
            if idempotency_key in self.grants:
                logger.warning(f"[ledger] Duplicate grant {idempotency_key} ignored")
                return False
            self.grants[idempotency_key] = {
                "user_id": user_id,
                "gold": reward.get("gold", 0) or 0,
                "items": list(reward.get("items") or []),
                "reason": reason,
            }
            return True

    def gold_for(self, user_id: str) -> float:
        with self._lock:
            return sum(g["gold"] for g in self.grants.values() if g["user_id"] == user_id)


def build_ledger() -> RewardLedger:
    url = os.getenv("LEDGER_URL")
    if url:
        return HttpRewardLedger(url, timeout=float(os.getenv("LEDGER_TIMEOUT", "10")))
    logger.warning("[ledger] LEDGER_URL not set; rewards are recorded in memory only")
    return InMemoryRewardLedger()


# FastAPI dependency; build_app puts the ledger on app.state
def get_ledger(request: Request) -> RewardLedger:
    return request.app.state.ledger
