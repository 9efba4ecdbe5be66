"""Business logic services for the Mycelix authorization service."""

from .capability import CapabilityGate
from .catalog import SongCatalog
from .crypto import SignatureVerifier
from .guard import AuthorizationGuard
from .replay import InMemoryReplayStore, RedisReplayStore, ReplayGuard

__all__ = [
    "AuthorizationGuard",
    "CapabilityGate",
    "InMemoryReplayStore",
    "RedisReplayStore",
    "ReplayGuard",
    "SignatureVerifier",
    "SongCatalog",
]
