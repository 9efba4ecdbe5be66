# src/mycelix_auth/api/v1/endpoints/songs.py
"""Song registration and play logging endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, status

from mycelix_auth.api.v1.dependencies import (
    REJECTION_RESPONSES,
    AdminCapabilityDep,
    ApiKeyDep,
    CatalogDep,
    GuardDep,
    authorize_signed,
    require_manual_play,
)
from mycelix_auth.schemas.songs import PlayCreate, PlayResponse, SongCreate, SongResponse
from mycelix_auth.services.canonical import OperationKind
from mycelix_auth.services.catalog import SongExistsError, SongNotFoundError, SongRecord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/songs", tags=["songs"], responses=REJECTION_RESPONSES)

SongIdPath = Annotated[str, Path(min_length=1, max_length=256)]


@router.get("", response_model=list[SongResponse])
async def list_songs(catalog: CatalogDep) -> list[SongRecord]:
    """List indexed songs, newest first."""
    return catalog.list()


@router.get("/{song_id}", response_model=SongResponse)
async def get_song(song_id: SongIdPath, catalog: CatalogDep) -> SongRecord:
    song = catalog.get(song_id)
    if song is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Song not found")
    return song


@router.post(
    "",
    summary="Register a song in the index",
    status_code=status.HTTP_201_CREATED,
    response_model=SongResponse,
)
async def register_song(
    payload: SongCreate,
    catalog: CatalogDep,
    guard: GuardDep,
    capability: AdminCapabilityDep,
    api_key: ApiKeyDep,
) -> SongRecord:
    """Register a song authorized by the admin key or the artist's signature.

    Signed over ``mycelix-song|id|artistAddress|ipfsHash|paymentModel|nonce|timestamp``
    or the equivalent ``Song`` typed-data struct.
    """
    caller = authorize_signed(
        OperationKind.SONG,
        payload,
        payload.signed_fields(),
        api_key=api_key,
        capability=capability,
        guard=guard,
    )
    record = SongRecord(
        id=payload.id,
        title=payload.title,
        artist=payload.artist,
        artist_address=payload.artist_address,
        genre=payload.genre,
        description=payload.description or "",
        ipfs_hash=payload.ipfs_hash,
        payment_model=payload.payment_model,
        registered_by=caller.signer,
    )
    try:
        catalog.register(record)
    except SongExistsError as err:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Song with this ID already exists",
        ) from err
    logger.info("Registered song %s via %s", record.id, caller.via)
    return record


@router.post(
    "/{song_id}/play",
    summary="Record a play (manual ingest)",
    response_model=PlayResponse,
    dependencies=[Depends(require_manual_play)],
)
async def record_play(
    song_id: SongIdPath,
    payload: PlayCreate,
    catalog: CatalogDep,
    guard: GuardDep,
    capability: AdminCapabilityDep,
    api_key: ApiKeyDep,
) -> PlayResponse:
    """Log a play authorized by the admin key or the listener's signature."""
    caller = authorize_signed(
        OperationKind.PLAY,
        payload,
        payload.signed_fields(song_id),
        api_key=api_key,
        capability=capability,
        guard=guard,
    )
    try:
        catalog.record_play(
            song_id,
            listener_address=payload.listener_address,
            amount=payload.amount_value,
            payment_type=payload.payment_type,
        )
    except SongNotFoundError as err:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Song not found") from err
    logger.debug("Recorded play of %s via %s", song_id, caller.via)
    return PlayResponse(success=True)
