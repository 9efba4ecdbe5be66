"""Song, play and claim Pydantic schemas."""

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

ADDRESS_REGEX = r"^0x[a-fA-F0-9]{40}$"
PAYMENT_TYPES = ("stream", "download", "tip", "patronage", "nft_access")


class SignatureEnvelope(BaseModel):
    """Signature fields accompanying a signed mutating request.

    All fields are optional at the schema level: admin-key callers omit them,
    and the authorization dependency reports missing ones as ``invalid_request``.
    """

    signer: str | None = Field(None, description="Address claimed to have signed the request")
    signature: str | None = Field(None, description="Hex-encoded 65-byte signature")
    timestamp: int | None = Field(None, ge=0, description="Signing time in ms since epoch")
    method: str | None = Field(None, description="'legacy' (default), 'eip191' or 'eip712'")
    nonce: str | None = Field(None, max_length=128, description="Required for eip712")

    model_config = ConfigDict(populate_by_name=True)


class SongCreate(SignatureEnvelope):
    """Schema for registering a song in the index."""

    id: str = Field(..., min_length=1, max_length=256)
    title: str = Field(..., min_length=1, max_length=256)
    artist: str = Field(..., min_length=1, max_length=256)
    artist_address: str = Field(..., alias="artistAddress", pattern=ADDRESS_REGEX)
    genre: str = Field(..., min_length=1, max_length=128)
    description: str | None = Field(None, max_length=2000)
    ipfs_hash: str = Field(..., alias="ipfsHash", min_length=1)
    payment_model: str = Field(..., alias="paymentModel", min_length=1)

    @field_validator("title", "artist")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    def signed_fields(self) -> dict[str, object]:
        return {
            "id": self.id,
            "artistAddress": self.artist_address,
            "ipfsHash": self.ipfs_hash,
            "paymentModel": self.payment_model,
        }


class PlayCreate(SignatureEnvelope):
    """Schema for manually logging a play."""

    listener_address: str | None = Field(None, alias="listenerAddress", pattern=ADDRESS_REGEX)
    amount: int | float | str | None = Field(None, description="Amount paid for the play")
    payment_type: str = Field("stream", alias="paymentType")

    @field_validator("payment_type")
    @classmethod
    def _known_payment_type(cls, v: str) -> str:
        if v not in PAYMENT_TYPES:
            raise ValueError(f"paymentType must be one of {', '.join(PAYMENT_TYPES)}")
        return v

    @field_validator("amount")
    @classmethod
    def _non_negative_amount(cls, v: int | float | str | None) -> int | float | str | None:
        if v is None:
            return v
        if isinstance(v, str) and not re.fullmatch(r"\d+(\.\d+)?", v.strip()):
            raise ValueError("amount must be a non-negative number")
        if not isinstance(v, str) and v < 0:
            raise ValueError("amount cannot be negative")
        return v

    @property
    def amount_value(self) -> float:
        return float(self.amount or 0)

    def signed_fields(self, song_id: str) -> dict[str, object]:
        return {
            "songId": song_id,
            "listener": self.listener_address,
            "amount": self.amount,
            "paymentType": self.payment_type,
        }


class ClaimCreate(SignatureEnvelope):
    """Schema for creating a knowledge-graph claim about a song."""

    song_id: str = Field(..., alias="songId", min_length=1, max_length=256)
    title: str = Field(..., min_length=1, max_length=256)
    artist: str = Field(..., min_length=1, max_length=256)
    ipfs_hash: str = Field(..., alias="ipfsHash", min_length=1)
    artist_address: str = Field(..., alias="artistAddress", pattern=ADDRESS_REGEX)
    epistemic_tier: int | None = Field(None, alias="epistemicTier")
    network_tier: int | None = Field(None, alias="networkTier")
    memory_tier: int | None = Field(None, alias="memoryTier")

    def signed_fields(self) -> dict[str, object]:
        return {
            "songId": self.song_id,
            "artistAddress": self.artist_address,
            "ipfsHash": self.ipfs_hash,
            "title": self.title,
        }


class SongResponse(BaseModel):
    """Song record returned by the API."""

    id: str
    title: str
    artist: str
    artist_address: str = Field(..., serialization_alias="artistAddress")
    genre: str
    description: str
    ipfs_hash: str = Field(..., serialization_alias="ipfsHash")
    payment_model: str = Field(..., serialization_alias="paymentModel")
    plays: int = 0
    earnings: float = 0.0
    registered_by: str | None = Field(None, serialization_alias="registeredBy")

    model_config = ConfigDict(from_attributes=True)


class PlayResponse(BaseModel):
    success: bool = True


class ClaimResponse(BaseModel):
    """Claim creation acknowledgement."""

    stream_id: str = Field(..., serialization_alias="streamId")
    song_id: str = Field(..., serialization_alias="songId")
    epistemic_tier: int | None = Field(None, serialization_alias="epistemicTier")
    network_tier: int | None = Field(None, serialization_alias="networkTier")
    memory_tier: int | None = Field(None, serialization_alias="memoryTier")
    timestamp: str
