"""Signing configuration endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from mycelix_auth.api.v1.dependencies import require_admin_or_public_config
from mycelix_auth.core.settings import settings
from mycelix_auth.schemas.auth import AuthConfigResponse, TypedDataDomainOut
from mycelix_auth.services.canonical import SigningMethod
from mycelix_auth.services.guard import typed_data_domain

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get(
    "/config",
    response_model=AuthConfigResponse,
    dependencies=[Depends(require_admin_or_public_config)],
)
async def get_auth_config() -> AuthConfigResponse:
    """Return a sanitized snapshot of the signing configuration.

    Excludes the admin key and connection strings; clients use it to build
    typed-data payloads and pick their timestamp window.
    """
    domain = typed_data_domain(settings)
    methods = [SigningMethod.LEGACY.value]
    if domain is not None:
        methods.append(SigningMethod.EIP712.value)
    return AuthConfigResponse(
        signature_ttl_ms=settings.signature_ttl_ms,
        methods=methods,
        eip712_domain=TypedDataDomainOut(**domain.as_dict()) if domain else None,
        uploads_enabled=settings.enable_uploads,
        upload_auth_mode=settings.upload_auth_mode,
        manual_play_enabled=settings.enable_manual_play,
        admin_key_configured=bool(settings.api_admin_key),
    )
