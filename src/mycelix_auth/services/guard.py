"""Authorization pipeline for signed mutating requests.

A request moves through a fixed sequence of checks and ends in exactly one
terminal outcome::

    canonicalize -> verify signature -> check freshness -> check replay -> admit

Only the final replay step mutates shared state, so a request rejected at any
earlier stage leaves no trace and can be re-signed and resubmitted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from mycelix_auth.core.errors import Rejection, RejectionReason
from mycelix_auth.core.security import is_valid_address
from mycelix_auth.core.settings import Settings
from mycelix_auth.services.canonical import (
    CanonicalizationError,
    CanonicalMessage,
    OperationKind,
    SigningMethod,
    TypedDataDomain,
    canonicalize,
)
from mycelix_auth.services.crypto import SignatureVerifier
from mycelix_auth.services.freshness import check_freshness, now_ms
from mycelix_auth.services.replay import (
    ReplayGuard,
    ReplayStatus,
    ReplayStore,
    ReplayStoreUnavailable,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedRequest:
    """One operation's domain fields plus its signature envelope."""

    kind: OperationKind
    fields: Mapping[str, object]
    signer: str
    signature: str
    timestamp: int
    method: SigningMethod = SigningMethod.LEGACY
    nonce: str | None = None


@dataclass(frozen=True)
class Admission:
    """Terminal accept: the caller is the claimed signer and the request is fresh and unused."""

    signer: str
    fingerprint: str
    method: SigningMethod


GuardOutcome = Admission | Rejection


class AuthorizationGuard:
    """Compose canonicalization, signature recovery, freshness and replay checks."""

    def __init__(
        self,
        verifier: SignatureVerifier,
        replay_guard: ReplayGuard,
        *,
        ttl_ms: int,
        domain: TypedDataDomain | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.verifier = verifier
        self.replay_guard = replay_guard
        self.ttl_ms = ttl_ms
        self.domain = domain
        self._clock = clock

    def canonical_message(self, request: SignedRequest) -> CanonicalMessage:
        """Return the canonical form `request` must have been signed over."""
        return canonicalize(
            request.kind,
            request.fields,
            request.timestamp,
            method=request.method,
            nonce=request.nonce,
            domain=self.domain,
        )

    def admit(self, request: SignedRequest) -> GuardOutcome:
        """Run the pipeline once and return its terminal outcome."""
        try:
            message = self.canonical_message(request)
        except CanonicalizationError as err:
            logger.warning("Rejected %s request: %s", request.kind.value, err)
            return Rejection(RejectionReason.INVALID_REQUEST, {"detail": str(err)})

        result = self.verifier.verify(message, request.signature, request.signer)
        if not result.ok or result.fingerprint is None or result.recovered is None:
            logger.warning(
                "Rejected %s request from %s: invalid signature (%s)",
                request.kind.value,
                request.signer,
                result.detail,
            )
            return Rejection(RejectionReason.INVALID_SIGNATURE)

        freshness = check_freshness(request.timestamp, self._clock(), self.ttl_ms)
        if not freshness.fresh:
            logger.warning(
                "Rejected %s request from %s: timestamp off by %d ms",
                request.kind.value,
                request.signer,
                freshness.diff_ms,
            )
            return Rejection(
                RejectionReason.EXPIRED,
                {"ts_diff_ms": abs(freshness.diff_ms)},
            )

        try:
            replay_status = self.replay_guard.check_and_record(result.fingerprint)
        except ReplayStoreUnavailable as err:
            logger.error("Replay store unavailable, failing closed: %s", err)
            return Rejection(RejectionReason.REPLAY_STORE_UNAVAILABLE)

        if replay_status is ReplayStatus.ALREADY_USED:
            logger.warning(
                "Rejected %s request from %s: signature replayed",
                request.kind.value,
                request.signer,
            )
            return Rejection(RejectionReason.REPLAYED)

        logger.debug("Admitted %s request from %s", request.kind.value, result.recovered)
        return Admission(
            signer=result.recovered,
            fingerprint=result.fingerprint,
            method=request.method,
        )


def typed_data_domain(config: Settings) -> TypedDataDomain | None:
    """Return the EIP-712 domain, or None without a usable verifying contract.

    A malformed contract address disables typed-data signing instead of failing
    every typed-data request at recovery time.
    """
    if not config.verifying_contract:
        return None
    if not is_valid_address(config.verifying_contract):
        logger.error("Ignoring malformed EIP-712 verifying contract %r", config.verifying_contract)
        return None
    return TypedDataDomain(
        name=config.eip712_name,
        version=config.eip712_version,
        chain_id=config.eip712_chain_id,
        verifying_contract=config.verifying_contract,
    )


def build_authorization_guard(config: Settings, store: ReplayStore) -> AuthorizationGuard:
    """Return a guard wired to `config` and the given replay store.

    The replay record TTL always equals the freshness TTL.
    """
    return AuthorizationGuard(
        SignatureVerifier(),
        ReplayGuard(store, ttl_ms=config.signature_ttl_ms, key_prefix=config.replay_key_prefix),
        ttl_ms=config.signature_ttl_ms,
        domain=typed_data_domain(config),
    )
