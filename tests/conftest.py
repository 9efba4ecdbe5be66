# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from eth_account import Account
from fastapi import FastAPI
from fastapi.testclient import TestClient

os.environ.setdefault("LOG_LEVEL", "DEBUG")

from mycelix_auth.api.v1.dependencies import get_catalog_dep, get_replay_store_dep
from mycelix_auth.core.settings import settings
from mycelix_auth.main import app as fastapi_app
from mycelix_auth.services.canonical import OperationKind
from mycelix_auth.services.catalog import SongCatalog
from mycelix_auth.services.guard import typed_data_domain
from mycelix_auth.services.replay import InMemoryReplayStore
from mycelix_auth.services.signing import sign_legacy_payload, sign_typed_payload

# Hardhat/Anvil development account #0
WALLET_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
ADMIN_KEY = "test-admin-key"
VERIFYING_CONTRACT = "0x5fbdb2315678afecb367f032d93f642f64180aa3"


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def configure_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pin the settings every test relies on; individual tests override further."""
    monkeypatch.setattr(settings, "api_admin_key", ADMIN_KEY)
    monkeypatch.setattr(settings, "eip712_verifier", VERIFYING_CONTRACT)
    monkeypatch.setattr(settings, "signature_ttl_ms", 300_000)
    monkeypatch.setattr(settings, "enable_uploads", True)
    monkeypatch.setattr(settings, "upload_auth_mode", "admin")
    monkeypatch.setattr(settings, "enable_manual_play", False)
    monkeypatch.setattr(settings, "auth_config_public", False)


@pytest.fixture()
def replay_store() -> InMemoryReplayStore:
    """Fresh process-local replay store for a single test."""
    return InMemoryReplayStore()


@pytest.fixture()
def catalog() -> SongCatalog:
    return SongCatalog()


@pytest.fixture(autouse=True)
def override_stores(
    app: FastAPI,
    replay_store: InMemoryReplayStore,
    catalog: SongCatalog,
) -> Iterator[None]:
    app.dependency_overrides[get_replay_store_dep] = lambda: replay_store
    app.dependency_overrides[get_catalog_dep] = lambda: catalog
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_replay_store_dep, None)
        app.dependency_overrides.pop(get_catalog_dep, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def wallet() -> dict[str, str]:
    """Deterministic signing wallet."""
    account = Account.from_key(WALLET_PRIVATE_KEY)
    return {"private_key": WALLET_PRIVATE_KEY, "address": account.address}


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"x-api-key": ADMIN_KEY}


def song_fields(song_id: str = "song-1", artist_address: str | None = None) -> dict[str, Any]:
    """Return a song registration body without signature fields."""
    return {
        "id": song_id,
        "title": "Spore Drift",
        "artist": "Hyphae",
        "artistAddress": artist_address or Account.from_key(WALLET_PRIVATE_KEY).address,
        "genre": "ambient",
        "description": "Field recordings from the forest floor",
        "ipfsHash": "bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi",
        "paymentModel": "pay_per_stream",
    }


def signed_fields_for_song(body: dict[str, Any]) -> dict[str, Any]:
    return {key: body[key] for key in ("id", "artistAddress", "ipfsHash", "paymentModel")}


@pytest.fixture()
def signed_song_body(wallet: dict[str, str]) -> Callable[..., dict[str, Any]]:
    """Build a song registration body signed by the test wallet."""

    def _build(
        song_id: str = "song-1",
        *,
        timestamp: int | None = None,
        method: str = "legacy",
        nonce: str | None = None,
    ) -> dict[str, Any]:
        body = song_fields(song_id, wallet["address"])
        fields = signed_fields_for_song(body)
        if method == "eip712":
            domain = typed_data_domain(settings)
            assert domain is not None
            envelope = sign_typed_payload(
                wallet["private_key"],
                OperationKind.SONG,
                fields,
                domain,
                timestamp=timestamp,
                nonce=nonce,
            )
        else:
            envelope = sign_legacy_payload(
                wallet["private_key"],
                OperationKind.SONG,
                fields,
                timestamp=timestamp,
                nonce=nonce,
            )
        return {**body, **envelope}

    return _build
