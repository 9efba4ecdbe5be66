# src/mycelix_auth/services/crypto.py
"""Cryptographic services for Mycelix request authorization."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from eth_account import Account
from eth_account.messages import SignableMessage, encode_defunct, encode_typed_data
from eth_keys.constants import SECPK1_N

from mycelix_auth.core.security import ZERO_ADDRESS, addresses_match, is_valid_address
from mycelix_auth.services.canonical import CanonicalMessage, LegacyMessage, TypedMessage
from mycelix_auth.utils.hash import blake3_hexdigest

logger = logging.getLogger(__name__)

SIGNATURE_LENGTH_BYTES = 65
SECP256K1_N = SECPK1_N
_SECP256K1_HALF_N = SECP256K1_N // 2


class InvalidSignatureError(ValueError):
    """Raised when signature bytes cannot be parsed into a canonical (r, s, v)."""


@dataclass(frozen=True)
class ParsedSignature:
    """Recoverable secp256k1 signature with ``v`` normalized to 27/28."""

    r: int
    s: int
    v: int

    def to_bytes(self) -> bytes:
        return self.r.to_bytes(32, "big") + self.s.to_bytes(32, "big") + bytes([self.v])

    @property
    def fingerprint(self) -> str:
        """Digest identifying this signature in the replay store."""
        return blake3_hexdigest(self.to_bytes())


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of checking a signature against a claimed signer."""

    ok: bool
    recovered: str | None = None
    fingerprint: str | None = None
    detail: str | None = None


def parse_signature(signature_hex: str) -> ParsedSignature:
    """Decode a 65-byte hex signature (``0x`` optional) into its components.

    Raises:
        InvalidSignatureError: On bad hex, wrong length, out-of-range ``r``/``s``,
            an upper-half ``s`` (EIP-2) or an unknown recovery id.
    """
    if not isinstance(signature_hex, str):
        raise InvalidSignatureError("Signature must be a hex string")
    cleaned = signature_hex.strip()
    if cleaned[:2].lower() == "0x":
        cleaned = cleaned[2:]
    try:
        raw = bytes.fromhex(cleaned)
    except ValueError as err:
        raise InvalidSignatureError(f"Invalid hex encoding: {err}") from err
    if len(raw) != SIGNATURE_LENGTH_BYTES:
        raise InvalidSignatureError(
            f"Signature must be {SIGNATURE_LENGTH_BYTES} bytes, got {len(raw)}"
        )

    r = int.from_bytes(raw[:32], "big")
    s = int.from_bytes(raw[32:64], "big")
    v = raw[64]
    if v in (0, 1):
        v += 27
    if v not in (27, 28):
        raise InvalidSignatureError(f"Unsupported recovery id {raw[64]}")
    if not 0 < r < SECP256K1_N:
        raise InvalidSignatureError("Signature r value out of range")
    if not 0 < s <= _SECP256K1_HALF_N:
        raise InvalidSignatureError("Signature s value out of range")
    return ParsedSignature(r=r, s=s, v=v)


def signable_for(message: CanonicalMessage) -> SignableMessage:
    """Return the EIP-191 envelope that was signed for a canonical message."""
    if isinstance(message, LegacyMessage):
        return encode_defunct(text=message.text)
    if isinstance(message, TypedMessage):
        return encode_typed_data(full_message=message.as_eip712())
    raise TypeError(f"Unsupported canonical message: {type(message).__name__}")


class SignatureVerifier:
    """Recover signers from personal-message and typed-data signatures."""

    @staticmethod
    def recover(message: CanonicalMessage, signature: ParsedSignature) -> str:
        """Return the checksummed address that produced `signature` over `message`."""
        signable = signable_for(message)
        recovered: str = Account.recover_message(
            signable, vrs=(signature.v, signature.r, signature.s)
        )
        return recovered

    def verify(
        self,
        message: CanonicalMessage,
        signature_hex: str,
        claimed_signer: str,
    ) -> VerificationResult:
        """Check that `claimed_signer` produced `signature_hex` over `message`.

        Args:
            message: Canonical legacy or typed-data message.
            signature_hex: Hex-encoded 65-byte signature.
            claimed_signer: Address the caller claims signed the request.

        Returns:
            A result with ``ok=True`` and the signature fingerprint when the
            recovered address equals the claim; ``ok=False`` otherwise. Malformed
            input never raises.
        """
        if not is_valid_address(claimed_signer):
            return VerificationResult(ok=False, detail="malformed signer address")
        try:
            parsed = parse_signature(signature_hex)
        except InvalidSignatureError as err:
            return VerificationResult(ok=False, detail=str(err))

        try:
            recovered = self.recover(message, parsed)
        except Exception as err:  # eth_account/eth_keys raise several unrelated types
            logger.debug("Signature recovery failed: %s", err)
            return VerificationResult(ok=False, detail="signature recovery failed")

        if recovered.lower() == ZERO_ADDRESS:
            return VerificationResult(ok=False, recovered=recovered, detail="recovered zero address")
        if not addresses_match(recovered, claimed_signer):
            return VerificationResult(ok=False, recovered=recovered, detail="signer mismatch")
        return VerificationResult(ok=True, recovered=recovered, fingerprint=parsed.fingerprint)
