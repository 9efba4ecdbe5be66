# tests/test_signature.py
"""Tests for signature parsing and signer recovery."""

import pytest
from eth_account import Account

from mycelix_auth.services.canonical import OperationKind, TypedDataDomain, legacy_message, typed_message
from mycelix_auth.services.crypto import (
    SECP256K1_N,
    InvalidSignatureError,
    SignatureVerifier,
    parse_signature,
)
from mycelix_auth.services.signing import sign_legacy_payload, sign_typed_payload
from tests.conftest import VERIFYING_CONTRACT, WALLET_PRIVATE_KEY

TIMESTAMP = 1_700_000_000_000
FIELDS = {
    "id": "song-1",
    "artistAddress": "0x70997970C51812dc3A010C7d01b50e0d17dc79C8",
    "ipfsHash": "bafyhash",
    "paymentModel": "pay_per_stream",
}
DOMAIN = TypedDataDomain("MycelixMusic", "1", 31337, VERIFYING_CONTRACT)
WALLET_ADDRESS = Account.from_key(WALLET_PRIVATE_KEY).address


def _signed_legacy() -> tuple[str, str]:
    envelope = sign_legacy_payload(WALLET_PRIVATE_KEY, OperationKind.SONG, FIELDS, timestamp=TIMESTAMP)
    return envelope["signer"], envelope["signature"]


def _high_s_variant(signature_hex: str) -> str:
    raw = bytes.fromhex(signature_hex.removeprefix("0x"))
    s = int.from_bytes(raw[32:64], "big")
    flipped_v = 55 - raw[64]  # 27 <-> 28
    return "0x" + (raw[:32] + (SECP256K1_N - s).to_bytes(32, "big") + bytes([flipped_v])).hex()


def test_legacy_signature_recovers_signer() -> None:
    signer, signature = _signed_legacy()
    message = legacy_message(OperationKind.SONG, FIELDS, TIMESTAMP)

    result = SignatureVerifier().verify(message, signature, signer)

    assert signer == WALLET_ADDRESS
    assert result.ok is True
    assert result.recovered == WALLET_ADDRESS
    assert result.fingerprint == parse_signature(signature).fingerprint


def test_claimed_signer_comparison_is_case_insensitive() -> None:
    signer, signature = _signed_legacy()
    message = legacy_message(OperationKind.SONG, FIELDS, TIMESTAMP)

    assert SignatureVerifier().verify(message, signature, signer.lower()).ok is True


def test_typed_signature_recovers_signer() -> None:
    envelope = sign_typed_payload(
        WALLET_PRIVATE_KEY, OperationKind.SONG, FIELDS, DOMAIN, timestamp=TIMESTAMP, nonce="n-1"
    )
    message = typed_message(OperationKind.SONG, FIELDS, TIMESTAMP, "n-1", DOMAIN)

    result = SignatureVerifier().verify(message, envelope["signature"], WALLET_ADDRESS)

    assert result.ok is True


def test_typed_signature_is_bound_to_domain() -> None:
    envelope = sign_typed_payload(
        WALLET_PRIVATE_KEY, OperationKind.SONG, FIELDS, DOMAIN, timestamp=TIMESTAMP, nonce="n-1"
    )
    other_chain = TypedDataDomain("MycelixMusic", "1", 1, VERIFYING_CONTRACT)
    message = typed_message(OperationKind.SONG, FIELDS, TIMESTAMP, "n-1", other_chain)

    assert SignatureVerifier().verify(message, envelope["signature"], WALLET_ADDRESS).ok is False


def test_tampered_message_fails() -> None:
    signer, signature = _signed_legacy()
    tampered = legacy_message(OperationKind.SONG, {**FIELDS, "ipfsHash": "bafyother"}, TIMESTAMP)

    result = SignatureVerifier().verify(tampered, signature, signer)

    assert result.ok is False
    assert result.fingerprint is None
    assert result.detail == "signer mismatch"


def test_signer_mismatch_fails() -> None:
    _, signature = _signed_legacy()
    message = legacy_message(OperationKind.SONG, FIELDS, TIMESTAMP)
    other = Account.create().address

    result = SignatureVerifier().verify(message, signature, other)

    assert result.ok is False
    assert result.recovered == WALLET_ADDRESS


@pytest.mark.parametrize("claimed", ["", "0x1234", "not-an-address", None])
def test_malformed_claimed_signer_fails(claimed: object) -> None:
    _, signature = _signed_legacy()
    message = legacy_message(OperationKind.SONG, FIELDS, TIMESTAMP)

    assert SignatureVerifier().verify(message, signature, claimed).ok is False  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "signature",
    ["", "0x", "zz" * 65, "0x" + "ab" * 64, "0x" + "ab" * 66],
)
def test_malformed_signature_fails_without_raising(signature: str) -> None:
    message = legacy_message(OperationKind.SONG, FIELDS, TIMESTAMP)

    result = SignatureVerifier().verify(message, signature, WALLET_ADDRESS)

    assert result.ok is False


def test_parse_signature_accepts_missing_prefix_and_low_v() -> None:
    _, signature = _signed_legacy()
    raw = bytes.fromhex(signature[2:])
    low_v = raw[:64] + bytes([raw[64] - 27])

    with_prefix = parse_signature(signature)
    without_prefix = parse_signature(signature[2:])
    normalized = parse_signature(low_v.hex())

    assert with_prefix == without_prefix == normalized
    assert with_prefix.v in (27, 28)
    assert with_prefix.fingerprint == normalized.fingerprint


def test_high_s_signature_is_rejected() -> None:
    """The malleated twin of a valid signature must not verify or earn a second fingerprint."""
    signer, signature = _signed_legacy()
    twin = _high_s_variant(signature)
    message = legacy_message(OperationKind.SONG, FIELDS, TIMESTAMP)

    with pytest.raises(InvalidSignatureError, match="s value"):
        parse_signature(twin)
    assert SignatureVerifier().verify(message, twin, signer).ok is False


@pytest.mark.parametrize(
    ("signature", "message_fragment"),
    [
        ("0x" + "00" * 32 + "01" * 32 + "1b", "r value"),
        ("0x" + "01" * 32 + "00" * 32 + "1b", "s value"),
        ("0x" + "01" * 64 + "05", "recovery id"),
        ("0x" + "gg" * 65, "hex"),
        ("0x" + "01" * 10, "65 bytes"),
    ],
)
def test_parse_signature_errors(signature: str, message_fragment: str) -> None:
    with pytest.raises(InvalidSignatureError, match=message_fragment):
        parse_signature(signature)


def test_curve_order_matches_secp256k1() -> None:
    from eth_keys.constants import SECPK1_N

    assert SECP256K1_N == SECPK1_N
    assert SECP256K1_N.bit_length() == 256


def test_fresh_wallet_signatures_all_parse_and_verify() -> None:
    """Randomly generated keys produce signatures spanning the full r/s range."""
    verifier = SignatureVerifier()
    message = legacy_message(OperationKind.SONG, FIELDS, TIMESTAMP)
    for _ in range(64):
        account = Account.create()
        envelope = sign_legacy_payload(account.key, OperationKind.SONG, FIELDS, timestamp=TIMESTAMP)

        parse_signature(envelope["signature"])
        assert verifier.verify(message, envelope["signature"], account.address).ok is True
