# backend/server_missions/services/errors.py
"""Error kinds raised by the mission engine.

Every error carries the HTTP status it maps to and a short machine-readable
``kind``; ``main.build_app`` renders them as ``{"detail": ..., "error": kind}``.
"""


class MissionError(Exception):
    status_code = 400
    kind = "mission_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(MissionError):
    status_code = 404
    kind = "not_found"


class InvalidState(MissionError):
    status_code = 409
    kind = "invalid_state"


class Expired(MissionError):
    status_code = 410
    kind = "expired"


class InvalidInput(MissionError):
    status_code = 400
    kind = "invalid_input"


class Conflict(MissionError):
    status_code = 409
    kind = "conflict"


class Forbidden(MissionError):
    status_code = 403
    kind = "forbidden"


class RewardGrantFailed(MissionError):
    """The ledger refused or failed the grant; the claim stays open and can be retried."""

    status_code = 503
    kind = "reward_grant_failed"
