"""Knowledge-graph claim endpoint."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import APIRouter

from mycelix_auth.api.v1.dependencies import (
    REJECTION_RESPONSES,
    AdminCapabilityDep,
    ApiKeyDep,
    GuardDep,
    authorize_signed,
)
from mycelix_auth.schemas.songs import ClaimCreate, ClaimResponse
from mycelix_auth.services.canonical import OperationKind
from mycelix_auth.utils.hash import blake3_hexdigest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["claims"], responses=REJECTION_RESPONSES)

# Ceramic-style stream id prefix
STREAM_ID_PREFIX = "kjzl6cwe1jw14"


def derive_stream_id(payload: ClaimCreate, issued_at: str) -> str:
    """Derive a stable stream id from the claim contents and issue time."""
    material = "|".join(
        (payload.song_id, payload.artist_address.lower(), payload.ipfs_hash, payload.title, issued_at)
    )
    return STREAM_ID_PREFIX + blake3_hexdigest(material.encode("utf-8"))[:48]


@router.post("/create-dkg-claim", response_model=ClaimResponse)
async def create_claim(
    payload: ClaimCreate,
    guard: GuardDep,
    capability: AdminCapabilityDep,
    api_key: ApiKeyDep,
) -> ClaimResponse:
    """Create a claim authorized by the admin key or the artist's signature."""
    caller = authorize_signed(
        OperationKind.CLAIM,
        payload,
        payload.signed_fields(),
        api_key=api_key,
        capability=capability,
        guard=guard,
    )
    issued_at = datetime.now(UTC).isoformat()
    stream_id = derive_stream_id(payload, issued_at)
    logger.info("Created claim %s for song %s via %s", stream_id, payload.song_id, caller.via)
    return ClaimResponse(
        stream_id=stream_id,
        song_id=payload.song_id,
        epistemic_tier=payload.epistemic_tier,
        network_tier=payload.network_tier,
        memory_tier=payload.memory_tier,
        timestamp=issued_at,
    )
