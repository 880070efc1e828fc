"""Writes decoded values to the output directory tree."""

import asyncio
from pathlib import Path

from etcd_dump.core.exceptions import FilesystemError

KEY_SEPARATOR = "/"


def output_path(output_root: Path, key: str) -> Path:
    """Map a store key to its file under the output root.

    Exactly one leading separator is stripped, so ``/a/b`` becomes
    ``<output_root>/a/b``.

    Raises:
        FilesystemError: If the key maps to no file or escapes the root
    """
    relative = key[1:] if key.startswith(KEY_SEPARATOR) else key
    if not relative or relative.endswith(KEY_SEPARATOR):
        raise FilesystemError(f"key {key!r} does not name a file", key=key)

    parts = relative.split(KEY_SEPARATOR)
    if any(part in ("", ".", "..") for part in parts) or "\x00" in relative:
        raise FilesystemError(f"key {key!r} has an invalid path component", key=key)

    return output_root.joinpath(*parts)


def _write_file(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


async def write(output_root: Path, key: str, content: bytes) -> Path:
    """Write decoded content for a key, replacing any existing file.

    Missing parent directories are created. The write is not atomic; an
    interrupted run can leave a partial file behind.

    Args:
        output_root: Root of the dump directory
        key: Store key the content belongs to
        content: Decoded bytes to write

    Returns:
        Path of the written file

    Raises:
        FilesystemError: If the path is invalid or the write fails
    """
    path = output_path(output_root, key)
    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(None, _write_file, path, content)
    except OSError as e:
        raise FilesystemError(f"writing {path}: {e}", key=key) from e
    return path
