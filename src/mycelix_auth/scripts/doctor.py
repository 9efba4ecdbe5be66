#!/usr/bin/env python3
"""
Mycelix authorization doctor

Exit code:
  0 = no critical problems found
  1 = at least one critical check failed

Checks are read-only. The sign-then-verify self-check runs against a
throwaway in-process replay store, never the configured one.

Typical usage:
  python -m mycelix_auth.scripts.doctor
  python -m mycelix_auth.scripts.doctor --base-url http://127.0.0.1:8000
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from typing import Any

import requests  # type: ignore[import-untyped]
from eth_account import Account

from mycelix_auth.core.errors import Rejection, RejectionReason
from mycelix_auth.core.security import is_valid_address
from mycelix_auth.core.settings import Settings, settings
from mycelix_auth.services.canonical import OperationKind, SigningMethod
from mycelix_auth.services.guard import (
    Admission,
    AuthorizationGuard,
    SignedRequest,
    build_authorization_guard,
    typed_data_domain,
)
from mycelix_auth.services.replay import InMemoryReplayStore, build_replay_store
from mycelix_auth.services.signing import sign_legacy_payload, sign_typed_payload

HTTP_OK = 200

SELF_CHECK_FIELDS = {
    "id": "doctor-self-check",
    "artistAddress": "0x0000000000000000000000000000000000000001",
    "ipfsHash": "bafkdoctor",
    "paymentModel": "pay_per_stream",
}

# ---------- Utilities ----------

def say(msg: str) -> None:
    print(f"[doctor] {msg}")

def warn(msg: str) -> None:
    print(f"[doctor][WARN] {msg}", file=sys.stderr)

def fail(msg: str) -> None:
    print(f"[doctor][FAIL] {msg}", file=sys.stderr)

# ---------- Checks ----------

def check_admin_key(config: Settings) -> bool:
    """A missing admin key is critical only when admin-mode uploads are enabled."""
    if config.api_admin_key:
        say("API_ADMIN_KEY configured")
        return True
    if config.enable_uploads and config.upload_auth_mode == "admin":
        fail("API_ADMIN_KEY is not set but uploads require it; every upload will be refused")
        return False
    warn("API_ADMIN_KEY is not set; admin-key callers are refused")
    return True


def check_typed_data_domain(config: Settings) -> bool:
    if not config.verifying_contract:
        warn("EIP712_VERIFIER/ROUTER_ADDRESS not set; eip712 requests will be rejected")
        return True
    if not is_valid_address(config.verifying_contract):
        fail(
            f"Verifying contract {config.verifying_contract!r} is not a 0x-prefixed address; "
            "eip712 requests will be rejected"
        )
        return False
    say(
        f"EIP-712 domain {config.eip712_name} v{config.eip712_version} "
        f"chain {config.eip712_chain_id} contract {config.verifying_contract}"
    )
    return True


def check_replay_store(config: Settings) -> bool:
    if not config.redis_url:
        warn("REDIS_URL not set; replay records are not shared between processes")
        return True
    try:
        store = build_replay_store(config)
    except ValueError as exc:
        fail(f"REDIS_URL is invalid: {exc}")
        return False
    if not store.ping():
        fail("Replay store unreachable; signed requests will fail closed")
        return False
    say("Replay store reachable")
    return True


def _admitted_once(guard: AuthorizationGuard, envelope: dict[str, Any]) -> bool:
    request = SignedRequest(
        kind=OperationKind.SONG,
        fields=SELF_CHECK_FIELDS,
        signer=envelope["signer"],
        signature=envelope["signature"],
        timestamp=envelope["timestamp"],
        method=SigningMethod.parse(envelope["method"]),
        nonce=envelope.get("nonce"),
    )
    first = guard.admit(request)
    second = guard.admit(request)
    return (
        isinstance(first, Admission)
        and first.signer == envelope["signer"]
        and isinstance(second, Rejection)
        and second.reason is RejectionReason.REPLAYED
    )


def check_self_signature(config: Settings) -> bool:
    """Sign a throwaway song request and confirm it is admitted once, then replayed."""
    private_key = Account.create().key
    guard = build_authorization_guard(config, InMemoryReplayStore())

    envelopes = [sign_legacy_payload(private_key, OperationKind.SONG, SELF_CHECK_FIELDS, nonce="doctor")]
    domain = typed_data_domain(config)
    if domain is not None:
        envelopes.append(sign_typed_payload(private_key, OperationKind.SONG, SELF_CHECK_FIELDS, domain))

    ok = True
    for envelope in envelopes:
        if _admitted_once(guard, envelope):
            say(f"Self-check passed ({envelope['method']})")
        else:
            fail(f"Self-check failed ({envelope['method']}): signature round trip not admitted exactly once")
            ok = False
    return ok


def check_server(base_url: str, timeout: float) -> bool:
    url = base_url.rstrip("/") + "/health/ready"
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        fail(f"Could not reach {url}: {exc}")
        return False
    if response.status_code != HTTP_OK:
        fail(f"{url} returned {response.status_code}: {response.text[:200]}")
        return False
    say(f"{url} ready")
    return True

# ---------- Main ----------

def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check Mycelix authorization configuration")
    parser.add_argument("--base-url", help="Also check a running server's readiness endpoint")
    parser.add_argument("--timeout", type=float, default=5.0, help="HTTP timeout in seconds")
    parser.add_argument(
        "--skip-self-check",
        action="store_true",
        help="Skip the sign-then-verify round trip",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None, config: Settings | None = None) -> int:
    args = parse_args(argv)
    config = config or settings

    results = [
        check_admin_key(config),
        check_typed_data_domain(config),
        check_replay_store(config),
    ]
    if not args.skip_self_check:
        results.append(check_self_signature(config))
    if args.base_url:
        results.append(check_server(args.base_url, args.timeout))

    if all(results):
        say("All critical checks passed")
        return 0
    fail("At least one critical check failed")
    return 1


if __name__ == "__main__":
    sys.exit(main())
