"""Shared-secret capability gate for operations without a per-caller identity."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from mycelix_auth.core.errors import Rejection, RejectionReason
from mycelix_auth.core.security import keys_match
from mycelix_auth.core.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdminCapability:
    """Static admin secret; an empty or missing secret admits nobody."""

    secret: str | None

    def matches(self, provided: str | None) -> bool:
        return keys_match(provided, self.secret)


class CapabilityGate:
    """Blunt on/off gate combining a feature flag with the admin key.

    The flag is checked first and independently of the key: with the flag off,
    even the correct key is refused.
    """

    def __init__(
        self,
        capability: AdminCapability,
        *,
        disabled_reason: RejectionReason = RejectionReason.UPLOADS_DISABLED,
        require_key: bool = True,
    ) -> None:
        self.capability = capability
        self.disabled_reason = disabled_reason
        self.require_key = require_key

    def authorize(self, provided_key: str | None, feature_enabled: bool) -> Rejection | None:
        """Return None when allowed, otherwise the rejection to send."""
        if not feature_enabled:
            return Rejection(self.disabled_reason)
        if not self.require_key:
            return None
        if self.capability.secret is None:
            logger.warning("Admin key requested but API_ADMIN_KEY is not configured")
        if not self.capability.matches(provided_key):
            return Rejection(RejectionReason.FORBIDDEN)
        return None


def get_admin_capability() -> AdminCapability:
    """Return the admin capability from process configuration."""
    return AdminCapability(secret=settings.api_admin_key)


def get_upload_gate() -> CapabilityGate:
    """Return the gate protecting file uploads."""
    return CapabilityGate(
        get_admin_capability(),
        disabled_reason=RejectionReason.UPLOADS_DISABLED,
        require_key=settings.upload_auth_mode == "admin",
    )
