"""High-level signing workflows used by API clients and operator tooling.

These helpers produce the ``signer``/``signature``/``timestamp`` envelope that
the authorization guard expects, using the same canonical forms it verifies.
"""
from __future__ import annotations

import secrets
from collections.abc import Mapping
from typing import Any

from eth_account import Account

from mycelix_auth.services.canonical import (
    OperationKind,
    SigningMethod,
    TypedDataDomain,
    legacy_message,
    typed_message,
)
from mycelix_auth.services.crypto import signable_for
from mycelix_auth.services.freshness import now_ms


def _sign(private_key: str | bytes, message: Any) -> tuple[str, str]:
    account = Account.from_key(private_key)
    signed = account.sign_message(signable_for(message))
    return account.address, "0x" + bytes(signed.signature).hex()


def sign_legacy_payload(
    private_key: str | bytes,
    kind: OperationKind,
    fields: Mapping[str, object],
    *,
    timestamp: int | None = None,
    nonce: str | None = None,
) -> dict[str, Any]:
    """Sign `fields` as a personal message and return the auth envelope."""
    ts = now_ms() if timestamp is None else timestamp
    signer, signature = _sign(private_key, legacy_message(kind, fields, ts, nonce))
    envelope: dict[str, Any] = {
        "signer": signer,
        "signature": signature,
        "timestamp": ts,
        "method": SigningMethod.LEGACY.value,
    }
    if nonce:
        envelope["nonce"] = nonce
    return envelope


def sign_typed_payload(
    private_key: str | bytes,
    kind: OperationKind,
    fields: Mapping[str, object],
    domain: TypedDataDomain,
    *,
    timestamp: int | None = None,
    nonce: str | None = None,
) -> dict[str, Any]:
    """Sign `fields` as EIP-712 typed data and return the auth envelope.

    A random nonce is generated when none is supplied.
    """
    ts = now_ms() if timestamp is None else timestamp
    nonce = nonce or secrets.token_hex(16)
    signer, signature = _sign(private_key, typed_message(kind, fields, ts, nonce, domain))
    return {
        "signer": signer,
        "signature": signature,
        "timestamp": ts,
        "method": SigningMethod.EIP712.value,
        "nonce": nonce,
    }
