# src/mycelix_auth/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .auth_config import router as auth_router
from .claims import router as claims_router
from .songs import router as songs_router
from .uploads import router as uploads_router

__all__ = [
    "auth_router",
    "claims_router",
    "songs_router",
    "uploads_router",
]
