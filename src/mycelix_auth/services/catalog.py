"""In-process song catalog standing in for the persistent index.

Only the interface the routes need is modeled: register a song, look it up,
list songs and log plays against it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import lru_cache
from threading import Lock


class SongExistsError(ValueError):
    """Raised when registering a song id that is already indexed."""


class SongNotFoundError(KeyError):
    """Raised when logging a play for an unknown song."""


@dataclass
class SongRecord:
    id: str
    title: str
    artist: str
    artist_address: str
    genre: str
    description: str
    ipfs_hash: str
    payment_model: str
    registered_by: str | None = None
    plays: int = 0
    earnings: float = 0.0
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class PlayRecord:
    song_id: str
    listener_address: str
    amount: float
    payment_type: str
    logged_at: datetime


class SongCatalog:
    """Thread-safe in-memory song index."""

    def __init__(self) -> None:
        self._songs: dict[str, SongRecord] = {}
        self._plays: dict[str, list[PlayRecord]] = {}
        self._lock = Lock()

    def register(self, record: SongRecord) -> SongRecord:
        with self._lock:
            if record.id in self._songs:
                raise SongExistsError(record.id)
            self._songs[record.id] = record
            self._plays[record.id] = []
            return record

    def get(self, song_id: str) -> SongRecord | None:
        with self._lock:
            return self._songs.get(song_id)

    def list(self) -> list[SongRecord]:
        with self._lock:
            return sorted(self._songs.values(), key=lambda song: song.created_at, reverse=True)

    def record_play(
        self,
        song_id: str,
        *,
        listener_address: str | None,
        amount: float,
        payment_type: str,
    ) -> PlayRecord:
        with self._lock:
            song = self._songs.get(song_id)
            if song is None:
                raise SongNotFoundError(song_id)
            play = PlayRecord(
                song_id=song_id,
                listener_address=listener_address or "anonymous",
                amount=amount,
                payment_type=payment_type,
                logged_at=datetime.now(UTC),
            )
            self._plays[song_id].append(play)
            song.plays += 1
            song.earnings += amount
            return play

    def plays_for(self, song_id: str) -> list[PlayRecord]:
        with self._lock:
            return list(reversed(self._plays.get(song_id, [])))

    def clear(self) -> None:
        with self._lock:
            self._songs.clear()
            self._plays.clear()


@lru_cache(maxsize=1)
def get_song_catalog() -> SongCatalog:
    """Return the process-wide song catalog."""
    return SongCatalog()
