"""Tests for the snapshot pipeline driver."""

import asyncio
from pathlib import Path

import pytest

from etcd_dump.core.exceptions import (
    DecodeServiceError,
    FilesystemError,
    KeySnapshotError,
    StoreUnavailable,
)
from etcd_dump.decoder.process import DecoderProcessManager
from etcd_dump.snapshot import orchestrator
from etcd_dump.snapshot.models import SnapshotStats, SnapshotTask
from tests.fixtures.snapshot import FakeDecoder, FakeStore


def _files(root: Path) -> dict[str, bytes]:
    return {
        str(path.relative_to(root)): path.read_bytes()
        for path in root.rglob("*")
        if path.is_file()
    }


class TestRun:
    """Test cases for orchestrator.run."""

    @pytest.mark.asyncio
    async def test_dumps_every_key(self, output_root: Path) -> None:
        """Each key becomes one file holding its decoded value."""
        store = FakeStore({"/a/b": b"X", "/c": b"Y"})
        decoder = FakeDecoder({b"X": b"decoded-X", b"Y": b"decoded-Y"})

        stats = await orchestrator.run(store, decoder, output_root)

        assert _files(output_root) == {"a/b": b"decoded-X", "c": b"decoded-Y"}
        assert stats == SnapshotStats(keys_listed=2, files_written=2, keys_skipped=0)

    @pytest.mark.asyncio
    async def test_empty_store_writes_nothing(self, output_root: Path) -> None:
        stats = await orchestrator.run(FakeStore({}), FakeDecoder({}), output_root)

        assert _files(output_root) == {}
        assert stats == SnapshotStats()

    @pytest.mark.asyncio
    async def test_vanished_key_is_skipped(self, output_root: Path) -> None:
        """A key deleted between listing and fetching is not an error."""
        store = FakeStore({"/a": b"X", "/gone": b"Y"}, vanished=["/gone"])
        decoder = FakeDecoder({b"X": b"decoded-X"})

        stats = await orchestrator.run(store, decoder, output_root)

        assert _files(output_root) == {"a": b"decoded-X"}
        assert stats.keys_skipped == 1
        assert decoder.calls == [b"X"]

    @pytest.mark.asyncio
    async def test_only_prefix_is_dumped(self, output_root: Path) -> None:
        store = FakeStore({"/registry/a": b"X", "/other/b": b"Y"})
        decoder = FakeDecoder({b"X": b"decoded-X", b"Y": b"decoded-Y"})

        await orchestrator.run(store, decoder, output_root, prefix="/registry/")

        assert _files(output_root) == {"registry/a": b"decoded-X"}

    @pytest.mark.asyncio
    async def test_decode_failure_fails_run(self, output_root: Path) -> None:
        """A non-success decode fails the run and writes nothing for that key."""
        store = FakeStore({"/ok": b"X", "/bad": b"BAD"})
        decoder = FakeDecoder({b"X": b"decoded-X"}, failing=[b"BAD"])

        with pytest.raises(KeySnapshotError) as exc_info:
            await orchestrator.run(store, decoder, output_root)

        error = exc_info.value
        assert error.key == "/bad"
        assert isinstance(error.cause, DecodeServiceError)
        assert "dump of key /bad (decode)" == error.stage
        assert not (output_root / "bad").exists()

    @pytest.mark.asyncio
    async def test_invalid_key_path_fails_run(self, output_root: Path) -> None:
        store = FakeStore({"/../escape": b"X"})
        decoder = FakeDecoder({b"X": b"decoded-X"})

        with pytest.raises(KeySnapshotError) as exc_info:
            await orchestrator.run(store, decoder, output_root)

        assert isinstance(exc_info.value.cause, FilesystemError)
        assert not (output_root.parent / "escape").exists()

    @pytest.mark.asyncio
    async def test_listing_failure_propagates(self, output_root: Path) -> None:
        class DownStore(FakeStore):
            async def list_keys(self, prefix: str) -> list[str]:
                raise StoreUnavailable("etcd went away")

        with pytest.raises(StoreUnavailable):
            await orchestrator.run(DownStore({}), FakeDecoder({}), output_root)

    @pytest.mark.asyncio
    async def test_siblings_are_not_cancelled(self, output_root: Path) -> None:
        """Tasks still running when one fails keep going and write their file."""
        release = asyncio.Event()

        class SlowDecoder(FakeDecoder):
            async def decode(self, payload: bytes) -> bytes:
                if payload == b"SLOW":
                    await release.wait()
                return await super().decode(payload)

        store = FakeStore({"/slow": b"SLOW", "/bad": b"BAD"})
        decoder = SlowDecoder({b"SLOW": b"decoded-SLOW"}, failing=[b"BAD"])

        with pytest.raises(KeySnapshotError):
            await orchestrator.run(store, decoder, output_root)

        slow_tasks = [t for t in asyncio.all_tasks() if t.get_name() == "snapshot:/slow"]
        assert len(slow_tasks) == 1
        assert not slow_tasks[0].done()

        release.set()
        assert await slow_tasks[0] is True
        assert (output_root / "slow").read_bytes() == b"decoded-SLOW"


class TestSnapshotKey:
    """Test cases for a single key task."""

    @pytest.mark.asyncio
    async def test_runs_fetch_decode_write_in_order(self, output_root: Path) -> None:
        store = FakeStore({"/k": b"raw"})
        decoder = FakeDecoder({b"raw": b"readable"})
        task = SnapshotTask(
            key="/k", store=store, decoder=decoder, output_root=output_root
        )

        assert await orchestrator.snapshot_key(task) is True
        assert store.get_calls == ["/k"]
        assert decoder.calls == [b"raw"]
        assert (output_root / "k").read_bytes() == b"readable"

    @pytest.mark.asyncio
    async def test_fetch_entry_returns_none_for_missing_key(self) -> None:
        assert await orchestrator.fetch_entry(FakeStore({}), "/missing") is None


@pytest.mark.integration
@pytest.mark.asyncio
async def test_run_against_decoder_subprocess(
    fake_decoder_manager: DecoderProcessManager, output_root: Path
) -> None:
    """The pipeline decodes through a real decoder process."""
    store = FakeStore({"/a/b": b"X", "/c": b"Y"})

    async with fake_decoder_manager as decoder:
        stats = await orchestrator.run(store, decoder, output_root)

    assert _files(output_root) == {"a/b": b"decoded-X", "c": b"decoded-Y"}
    assert stats.files_written == 2


@pytest.mark.integration
@pytest.mark.asyncio
async def test_run_empty_store_against_decoder_subprocess(
    fake_decoder_manager: DecoderProcessManager, output_root: Path
) -> None:
    """An empty key space writes nothing and the decoder still shuts down."""
    store = FakeStore({})

    async with fake_decoder_manager as decoder:
        stats = await orchestrator.run(store, decoder, output_root)
        handle = decoder.handle

    assert stats == SnapshotStats(keys_listed=0, files_written=0, keys_skipped=0)
    assert _files(output_root) == {}
    assert handle is not None
    assert handle.exited
