"""Shared API dependencies for request authorization."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Annotated, Any

from fastapi import Depends, status
from fastapi.security import APIKeyHeader

from mycelix_auth.core.errors import AuthRejected, Rejection, RejectionReason
from mycelix_auth.core.settings import settings
from mycelix_auth.schemas.auth import RejectionResponse
from mycelix_auth.schemas.songs import SignatureEnvelope
from mycelix_auth.services.canonical import CanonicalizationError, OperationKind, SigningMethod
from mycelix_auth.services.capability import (
    AdminCapability,
    CapabilityGate,
    get_admin_capability,
    get_upload_gate,
)
from mycelix_auth.services.catalog import SongCatalog, get_song_catalog
from mycelix_auth.services.guard import (
    AuthorizationGuard,
    SignedRequest,
    build_authorization_guard,
)
from mycelix_auth.services.replay import ReplayStore, get_replay_store

API_KEY_HEADER = "x-api-key"

# Admin key header extractor; absence is not an error at this layer
api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)

# OpenAPI documentation for rejection bodies
REJECTION_RESPONSES: dict[int | str, dict[str, Any]] = {
    status.HTTP_400_BAD_REQUEST: {"model": RejectionResponse},
    status.HTTP_403_FORBIDDEN: {"model": RejectionResponse},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": RejectionResponse},
}


def get_replay_store_dep() -> ReplayStore:
    return get_replay_store()


def get_catalog_dep() -> SongCatalog:
    return get_song_catalog()


ApiKeyDep = Annotated[str | None, Depends(api_key_header)]
ReplayStoreDep = Annotated[ReplayStore, Depends(get_replay_store_dep)]
AdminCapabilityDep = Annotated[AdminCapability, Depends(get_admin_capability)]
CatalogDep = Annotated[SongCatalog, Depends(get_catalog_dep)]


def get_authorization_guard_dep(store: ReplayStoreDep) -> AuthorizationGuard:
    """Build the guard for this request from current settings and the replay store."""
    return build_authorization_guard(settings, store)


GuardDep = Annotated[AuthorizationGuard, Depends(get_authorization_guard_dep)]


@dataclass(frozen=True)
class AuthorizedCaller:
    """Who was admitted and how.

    ``signer`` is the recovered address for signature callers and None for
    admin-key callers.
    """

    via: str
    signer: str | None = None


def _invalid_request(detail: str) -> AuthRejected:
    return AuthRejected(Rejection(RejectionReason.INVALID_REQUEST, {"detail": detail}))


def build_signed_request(
    kind: OperationKind,
    envelope: SignatureEnvelope,
    fields: Mapping[str, object],
) -> SignedRequest:
    """Assemble a `SignedRequest` from a parsed body.

    Raises:
        AuthRejected: ``invalid_request`` if signature fields are missing or the
            signing method is unknown.
    """
    signer, signature, timestamp = envelope.signer, envelope.signature, envelope.timestamp
    if not signer or not signature or timestamp is None:
        missing = [
            name
            for name, value in (("signer", signer), ("signature", signature), ("timestamp", timestamp))
            if value in (None, "")
        ]
        raise _invalid_request(f"Missing signature fields: {', '.join(missing)}")
    try:
        method = SigningMethod.parse(envelope.method)
    except CanonicalizationError as err:
        raise _invalid_request(str(err)) from err
    return SignedRequest(
        kind=kind,
        fields=fields,
        signer=signer,
        signature=signature,
        timestamp=timestamp,
        method=method,
        nonce=envelope.nonce or None,
    )


def authorize_signed(
    kind: OperationKind,
    envelope: SignatureEnvelope,
    fields: Mapping[str, object],
    *,
    api_key: str | None,
    capability: AdminCapability,
    guard: AuthorizationGuard,
) -> AuthorizedCaller:
    """Admit a mutating request by admin key or by a fresh, unused signature.

    A matching admin key bypasses the signature pipeline entirely and leaves no
    replay record.

    Raises:
        AuthRejected: With the guard's terminal rejection.
    """
    if capability.matches(api_key):
        return AuthorizedCaller(via="admin_key")

    outcome = guard.admit(build_signed_request(kind, envelope, fields))
    if isinstance(outcome, Rejection):
        raise AuthRejected(outcome)
    return AuthorizedCaller(via="signature", signer=outcome.signer)


def require_upload_capability(
    api_key: ApiKeyDep,
    gate: Annotated[CapabilityGate, Depends(get_upload_gate)],
) -> None:
    """Gate uploads on the ENABLE_UPLOADS flag and, in admin mode, the admin key."""
    rejection = gate.authorize(api_key, settings.enable_uploads)
    if rejection is not None:
        raise AuthRejected(rejection)


def require_manual_play(capability: AdminCapabilityDep) -> None:
    """Refuse play logging entirely unless ENABLE_MANUAL_PLAY is set."""
    gate = CapabilityGate(
        capability,
        disabled_reason=RejectionReason.MANUAL_PLAY_DISABLED,
        require_key=False,
    )
    rejection = gate.authorize(None, settings.enable_manual_play)
    if rejection is not None:
        raise AuthRejected(rejection)


def require_admin_or_public_config(api_key: ApiKeyDep, capability: AdminCapabilityDep) -> None:
    """Expose configuration to administrators, or to everyone when AUTH_CONFIG_PUBLIC is set."""
    gate = CapabilityGate(capability, require_key=not settings.auth_config_public)
    rejection = gate.authorize(api_key, True)
    if rejection is not None:
        raise AuthRejected(rejection)
