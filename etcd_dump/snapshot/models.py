"""Data models for the snapshot pipeline."""

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


class KeyValueSource(Protocol):
    """Read access to the store, as used by snapshot tasks."""

    async def list_keys(self, prefix: str) -> list[str]: ...

    async def get(self, key: str) -> bytes | None: ...


class ValueDecoder(Protocol):
    """Decode access to the decoder, as used by snapshot tasks."""

    async def decode(self, payload: bytes) -> bytes: ...


@dataclass(frozen=True)
class StoreEntry:
    """A key and its raw stored value."""

    key: str
    value: bytes


@dataclass(frozen=True)
class SnapshotTask:
    """One unit of per-key work: fetch, decode, write."""

    key: str
    store: KeyValueSource
    decoder: ValueDecoder
    output_root: Path


@dataclass
class SnapshotStats:
    """Outcome counts of a successful snapshot run."""

    keys_listed: int = 0
    files_written: int = 0
    keys_skipped: int = 0
