"""Schemas describing authorization outcomes and configuration."""
from __future__ import annotations

from pydantic import BaseModel, Field


class RejectionResponse(BaseModel):
    """Body returned for every rejected request."""

    reason: str = Field(..., description="Stable machine-readable rejection reason")
    ts_diff_ms: int | None = Field(None, description="Timestamp distance for expired requests")
    detail: str | None = Field(None, description="Human-readable context, when available")


class TypedDataDomainOut(BaseModel):
    name: str
    version: str
    chainId: int
    verifyingContract: str


class AuthConfigResponse(BaseModel):
    """Public view of the signing configuration; never includes secrets."""

    signature_ttl_ms: int
    methods: list[str]
    eip712_domain: TypedDataDomainOut | None
    uploads_enabled: bool
    upload_auth_mode: str
    manual_play_enabled: bool
    admin_key_configured: bool


class UploadResponse(BaseModel):
    """Content address of an accepted upload."""

    ipfsHash: str
    gateway: str
    size: int
