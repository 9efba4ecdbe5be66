# tests/v1/test_auth_config.py
"""Tests for the signing configuration endpoint."""

from fastapi import status

from mycelix_auth.core.settings import settings
from tests.conftest import ADMIN_KEY, VERIFYING_CONTRACT


def test_config_requires_admin_key(client) -> None:
    response = client.get("/api/auth/config")

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json() == {"reason": "forbidden"}


def test_config_for_admin(client, admin_headers) -> None:
    response = client.get("/api/auth/config", headers=admin_headers)

    assert response.status_code == status.HTTP_200_OK
    payload = response.json()
    assert payload["signature_ttl_ms"] == 300_000
    assert payload["methods"] == ["legacy", "eip712"]
    assert payload["eip712_domain"] == {
        "name": "MycelixMusic",
        "version": "1",
        "chainId": 31337,
        "verifyingContract": VERIFYING_CONTRACT,
    }
    assert payload["uploads_enabled"] is True
    assert payload["manual_play_enabled"] is False
    assert payload["admin_key_configured"] is True
    assert ADMIN_KEY not in response.text


def test_public_config_without_typed_data(client, monkeypatch) -> None:
    monkeypatch.setattr(settings, "auth_config_public", True)
    monkeypatch.setattr(settings, "eip712_verifier", None)
    monkeypatch.setattr(settings, "router_address", None)

    response = client.get("/api/auth/config")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["methods"] == ["legacy"]
    assert response.json()["eip712_domain"] is None
