"""Replay protection services for signed requests."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from threading import Lock
from typing import Any, Final, Protocol

import redis

from mycelix_auth.core.settings import Settings, settings

logger = logging.getLogger(__name__)

_SWEEP_EVERY: Final[int] = 256


class ReplayStoreUnavailable(RuntimeError):
    """Raised when the backing replay store cannot be reached."""


class ReplayStatus(str, Enum):
    ACCEPTED = "accepted"
    ALREADY_USED = "already_used"


@dataclass(frozen=True)
class ReplayRecord:
    """A signature fingerprint held by the store until its TTL lapses."""

    fingerprint: str
    key: str
    ttl_ms: int


class ReplayStore(Protocol):
    """Key-value store with an atomic "set if not exists with TTL" primitive."""

    def add_if_absent(self, key: str, ttl_ms: int) -> bool:
        """Record `key` for `ttl_ms` and return True, or return False if present."""
        ...

    def ping(self) -> bool:
        """Return True if the store is reachable."""
        ...


class InMemoryReplayStore:
    """Process-local replay store guarded by a lock.

    Expiry uses a monotonic clock so wall-clock adjustments cannot resurrect or
    prematurely drop records. Expired entries are swept lazily on insert.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, float] = {}
        self._lock = Lock()
        self._inserts_since_sweep = 0

    def add_if_absent(self, key: str, ttl_ms: int) -> bool:
        now = self._clock()
        with self._lock:
            expiry = self._entries.get(key)
            if expiry is not None and expiry > now:
                return False
            self._entries[key] = now + ttl_ms / 1000
            self._inserts_since_sweep += 1
            if self._inserts_since_sweep >= _SWEEP_EVERY:
                self._sweep(now)
            return True

    def ping(self) -> bool:
        return True

    def _sweep(self, now: float) -> None:
        expired = [key for key, expiry in self._entries.items() if expiry <= now]
        for key in expired:
            del self._entries[key]
        self._inserts_since_sweep = 0

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._inserts_since_sweep = 0

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for expiry in self._entries.values() if expiry > self._clock())


class RedisReplayStore:
    """Replay store delegating atomicity to Redis ``SET NX PX``."""

    def __init__(self, client: Any) -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> RedisReplayStore:
        return cls(redis.from_url(url))  # type: ignore[no-untyped-call]

    def add_if_absent(self, key: str, ttl_ms: int) -> bool:
        try:
            return bool(self._redis.set(key, "1", nx=True, px=int(ttl_ms)))
        except redis.RedisError as err:
            raise ReplayStoreUnavailable(f"Replay store write failed: {err}") from err

    def ping(self) -> bool:
        try:
            return bool(self._redis.ping())
        except redis.RedisError:
            return False


class ReplayGuard:
    """Reject any signature fingerprint that has already been admitted."""

    def __init__(self, store: ReplayStore, ttl_ms: int, key_prefix: str = "replay") -> None:
        if ttl_ms <= 0:
            raise ValueError("Replay TTL must be positive")
        self.store = store
        self.ttl_ms = ttl_ms
        self.key_prefix = key_prefix

    def key_for(self, fingerprint: str) -> str:
        return f"{self.key_prefix}:sig:{fingerprint}"

    def record_for(self, fingerprint: str) -> ReplayRecord:
        return ReplayRecord(fingerprint=fingerprint, key=self.key_for(fingerprint), ttl_ms=self.ttl_ms)

    def check_and_record(self, fingerprint: str) -> ReplayStatus:
        """Atomically record `fingerprint`, reporting whether it was already present.

        Raises:
            ReplayStoreUnavailable: If the backing store cannot be reached.
        """
        record = self.record_for(fingerprint)
        if self.store.add_if_absent(record.key, record.ttl_ms):
            return ReplayStatus.ACCEPTED
        return ReplayStatus.ALREADY_USED


def build_replay_store(config: Settings) -> ReplayStore:
    """Select the replay store backing for the given configuration."""
    if config.redis_url:
        logger.info("Using Redis replay store")
        return RedisReplayStore.from_url(config.redis_url)
    logger.warning("REDIS_URL not set; replay protection is process-local")
    return InMemoryReplayStore()


@lru_cache(maxsize=1)
def get_replay_store() -> ReplayStore:
    """Return the process-wide replay store."""
    return build_replay_store(settings)
