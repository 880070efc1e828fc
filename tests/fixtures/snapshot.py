"""Snapshot pipeline fixtures for tests."""

import socket
import sys
from collections.abc import Iterable
from pathlib import Path

import pytest

from etcd_dump.core.exceptions import DecodeServiceError
from etcd_dump.decoder.process import DecoderProcessManager

FAKE_DECODER_SCRIPT = Path(__file__).with_name("fake_decoder.py")


class FakeStore:
    """In-memory store with the StoreClient read interface."""

    def __init__(
        self, data: dict[str, bytes], vanished: Iterable[str] = ()
    ) -> None:
        self.data = dict(data)
        self.vanished = set(vanished)
        self.get_calls: list[str] = []
        self.closed = False

    async def list_keys(self, prefix: str) -> list[str]:
        return [key for key in self.data if key.startswith(prefix)]

    async def get(self, key: str) -> bytes | None:
        self.get_calls.append(key)
        if key in self.vanished:
            return None
        return self.data.get(key)

    def close(self) -> None:
        self.closed = True


class FakeDecoder:
    """Decoder double mapping raw values to decoded values."""

    def __init__(
        self, mapping: dict[bytes, bytes], failing: Iterable[bytes] = ()
    ) -> None:
        self.mapping = mapping
        self.failing = set(failing)
        self.calls: list[bytes] = []

    async def decode(self, payload: bytes) -> bytes:
        self.calls.append(payload)
        if payload in self.failing:
            raise DecodeServiceError(
                "decoder decode returned status 500", status_code=500
            )
        return self.mapping[payload]


@pytest.fixture
def output_root(tmp_path: Path) -> Path:
    """Provide an empty output directory."""
    root = tmp_path / "out"
    root.mkdir()
    return root


@pytest.fixture
def free_port() -> int:
    """Find a loopback port nothing is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


@pytest.fixture
def fake_decoder_manager(free_port: int) -> DecoderProcessManager:
    """Manager that runs the stand-in decoder script."""
    return DecoderProcessManager(
        executable=sys.executable,
        port=free_port,
        args=[str(FAKE_DECODER_SCRIPT)],
        startup_timeout=15.0,
        stop_timeout=5.0,
    )
