# src/mycelix_auth/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    auth_router,
    claims_router,
    songs_router,
    uploads_router,
)

__all__ = [
    "auth_router",
    "claims_router",
    "songs_router",
    "uploads_router",
]
