"""File upload endpoint guarded by the upload capability gate."""

from __future__ import annotations

import logging
from typing import Final

from fastapi import APIRouter, Depends, Request

from mycelix_auth.api.v1.dependencies import REJECTION_RESPONSES, require_upload_capability
from mycelix_auth.core.errors import AuthRejected, Rejection, RejectionReason
from mycelix_auth.core.settings import settings
from mycelix_auth.schemas.auth import UploadResponse
from mycelix_auth.utils.hash import blake3_hexdigest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"], responses=REJECTION_RESPONSES)

ALLOWED_CONTENT_TYPES: Final[frozenset[str]] = frozenset(
    {"image/png", "image/jpeg", "image/webp", "application/octet-stream"}
)
MAX_UPLOAD_BYTES: Final[int] = 50 * 1024 * 1024


def content_type_allowed(content_type: str) -> bool:
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type.startswith("audio/") or media_type in ALLOWED_CONTENT_TYPES


def content_address(data: bytes) -> str:
    """Return a CID-shaped content address for `data`."""
    return "bafk" + blake3_hexdigest(data)[:52]


def _too_large() -> AuthRejected:
    return AuthRejected(Rejection(RejectionReason.INVALID_REQUEST, {"detail": "Upload too large"}))


async def read_capped_body(request: Request, limit: int) -> bytes:
    """Read the request body, refusing it as soon as it exceeds `limit` bytes.

    A declared ``content-length`` over the limit is refused before reading.
    """
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise _too_large()

    received = bytearray()
    async for chunk in request.stream():
        received.extend(chunk)
        if len(received) > limit:
            raise _too_large()
    return bytes(received)


@router.post(
    "/upload-to-ipfs",
    response_model=UploadResponse,
    dependencies=[Depends(require_upload_capability)],
)
async def upload_to_ipfs(request: Request) -> UploadResponse:
    """Accept a raw file body and return its content address."""
    content_type = request.headers.get("content-type", "")
    if not content_type_allowed(content_type):
        raise AuthRejected(
            Rejection(
                RejectionReason.INVALID_REQUEST,
                {"detail": f"Unsupported content type: {content_type or 'none'}"},
            )
        )
    data = await read_capped_body(request, MAX_UPLOAD_BYTES)
    if not data:
        raise AuthRejected(Rejection(RejectionReason.INVALID_REQUEST, {"detail": "Empty upload"}))

    ipfs_hash = content_address(data)
    logger.info("Accepted upload %s (%d bytes)", ipfs_hash, len(data))
    return UploadResponse(
        ipfsHash=ipfs_hash,
        gateway=f"{settings.ipfs_gateway_url.rstrip('/')}/{ipfs_hash}",
        size=len(data),
    )
