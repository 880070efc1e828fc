"""Snapshot pipeline driver.

Lists every key under the root prefix, then runs one task per key that
fetches the value, decodes it and writes it to the output tree. All tasks are
launched at once; the open-file limit raised at startup is the only bound on
how many run together.
"""

import asyncio
import time
from pathlib import Path

from etcd_dump.core.exceptions import KeySnapshotError
from etcd_dump.core.logging import get_key_logger, get_logger
from etcd_dump.snapshot import materializer
from etcd_dump.snapshot.models import (
    KeyValueSource,
    SnapshotStats,
    SnapshotTask,
    StoreEntry,
    ValueDecoder,
)

logger = get_logger(module="orchestrator")

ROOT_PREFIX = "/"


async def fetch_entry(store: KeyValueSource, key: str) -> StoreEntry | None:
    """Fetch a key, returning None if it was deleted after listing."""
    value = await store.get(key)
    if value is None:
        return None
    return StoreEntry(key=key, value=value)


async def snapshot_key(task: SnapshotTask) -> bool:
    """Fetch, decode and write a single key.

    Returns:
        True if a file was written, False if the key no longer exists

    Raises:
        KeySnapshotError: If any step fails
    """
    key_logger = get_key_logger(task.key)
    try:
        entry = await fetch_entry(task.store, task.key)
        if entry is None:
            key_logger.debug("key_vanished")
            return False

        decoded = await task.decoder.decode(entry.value)
        path = await materializer.write(task.output_root, entry.key, decoded)
    except Exception as e:
        key_logger.error("key_failed", error=str(e), error_type=type(e).__name__)
        raise KeySnapshotError(task.key, e) from e

    key_logger.debug("key_written", path=str(path), size=len(decoded))
    return True


async def run(
    store: KeyValueSource,
    decoder: ValueDecoder,
    output_root: Path,
    prefix: str = ROOT_PREFIX,
) -> SnapshotStats:
    """Dump every key under ``prefix`` into ``output_root``.

    The decoder must already be running; starting and stopping it is the
    caller's job.

    Args:
        store: Store to read from
        decoder: Running decoder
        output_root: Existing directory to write into
        prefix: Key prefix to dump

    Returns:
        Counts of listed, written and skipped keys

    Raises:
        StoreUnavailable, StoreOperationError: If listing fails
        KeySnapshotError: For the first per-key failure observed. Other
            tasks are not cancelled and files they already wrote remain.
    """
    started = time.monotonic()
    keys = await store.list_keys(prefix)
    logger.info("keys_listed", prefix=prefix, count=len(keys))

    tasks = [
        asyncio.create_task(
            snapshot_key(
                SnapshotTask(
                    key=key, store=store, decoder=decoder, output_root=output_root
                )
            ),
            name=f"snapshot:{key}",
        )
        for key in keys
    ]

    # gather raises the first exception to arrive and leaves the rest running
    results = await asyncio.gather(*tasks)

    written = sum(1 for result in results if result)
    stats = SnapshotStats(
        keys_listed=len(keys),
        files_written=written,
        keys_skipped=len(keys) - written,
    )
    logger.info(
        "snapshot_complete",
        keys_listed=stats.keys_listed,
        files_written=stats.files_written,
        keys_skipped=stats.keys_skipped,
        duration=round(time.monotonic() - started, 3),
    )
    return stats
