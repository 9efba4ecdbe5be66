"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .auth import AuthConfigResponse, RejectionResponse, UploadResponse
from .songs import (
    ClaimCreate,
    ClaimResponse,
    PlayCreate,
    PlayResponse,
    SongCreate,
    SongResponse,
)

__all__ = [
    "AuthConfigResponse", "RejectionResponse", "UploadResponse",
    "ClaimCreate", "ClaimResponse",
    "PlayCreate", "PlayResponse",
    "SongCreate", "SongResponse",
]
