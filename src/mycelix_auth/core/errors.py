"""Rejection taxonomy shared by the authorization components.

Every expected failure is a value carrying a stable, externally documented
reason string and the HTTP status it maps to. `AuthRejected` carries one of
these values out of a FastAPI dependency to the application's exception handler.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from fastapi import status


class RejectionReason(str, Enum):
    INVALID_REQUEST = "invalid_request"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    REPLAYED = "replayed"
    FORBIDDEN = "forbidden"
    UPLOADS_DISABLED = "uploads_disabled"
    MANUAL_PLAY_DISABLED = "manual_play_disabled"
    REPLAY_STORE_UNAVAILABLE = "replay_store_unavailable"


REASON_STATUS: dict[RejectionReason, int] = {
    RejectionReason.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    RejectionReason.EXPIRED: status.HTTP_400_BAD_REQUEST,
    RejectionReason.INVALID_SIGNATURE: status.HTTP_403_FORBIDDEN,
    RejectionReason.REPLAYED: status.HTTP_403_FORBIDDEN,
    RejectionReason.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    RejectionReason.UPLOADS_DISABLED: status.HTTP_503_SERVICE_UNAVAILABLE,
    RejectionReason.MANUAL_PLAY_DISABLED: status.HTTP_503_SERVICE_UNAVAILABLE,
    RejectionReason.REPLAY_STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@dataclass(frozen=True)
class Rejection:
    """Terminal rejection produced by the guard or the capability gate."""

    reason: RejectionReason
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def status_code(self) -> int:
        return REASON_STATUS[self.reason]

    def to_body(self) -> dict[str, Any]:
        return {"reason": self.reason.value, **self.context}


class AuthRejected(Exception):
    """Raised by API dependencies to abort a request with a rejection body."""

    def __init__(self, rejection: Rejection) -> None:
        super().__init__(rejection.reason.value)
        self.rejection = rejection
