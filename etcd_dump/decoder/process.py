"""Lifecycle management for the decoder (ouger) subprocess."""

import asyncio
import time
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from types import TracebackType

from etcd_dump.core.exceptions import DecoderLaunchError
from etcd_dump.core.logging import get_logger
from etcd_dump.decoder.client import DecoderClient

logger = get_logger(module="decoder_process")

# Delay between readiness probes while the decoder boots
READINESS_POLL_INTERVAL = 0.1


class DecoderState(str, Enum):
    """Lifecycle states of the decoder subprocess."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class DecoderProcessHandle:
    """The running decoder subprocess."""

    process: asyncio.subprocess.Process
    port: int

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def exited(self) -> bool:
        return self.process.returncode is not None


class DecoderProcessManager:
    """Launches, supervises and terminates the decoder subprocess.

    Use it as an async context manager so the subprocess is reaped however
    the enclosing block exits:

        async with DecoderProcessManager("ouger_server", 9998) as decoder:
            value = await decoder.decode(raw)
    """

    def __init__(
        self,
        executable: str,
        port: int,
        args: Sequence[str] = (),
        startup_timeout: float = 10.0,
        stop_timeout: float = 5.0,
        request_timeout: float | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            executable: Decoder program to run
            port: Loopback port the decoder is told to bind
            args: Extra arguments placed before ``--port``
            startup_timeout: Seconds to wait for the decoder to answer
            stop_timeout: Seconds to wait after terminate before killing
            request_timeout: Per-request timeout for decode calls
        """
        self.executable = executable
        self.port = port
        self.args = list(args)
        self.startup_timeout = startup_timeout
        self.stop_timeout = stop_timeout
        self.request_timeout = request_timeout
        self.state = DecoderState.NOT_STARTED
        self.handle: DecoderProcessHandle | None = None
        self._client: DecoderClient | None = None

    @property
    def command(self) -> list[str]:
        return [self.executable, *self.args, "--port", str(self.port)]

    async def start(self) -> DecoderProcessHandle:
        """Launch the decoder and wait until it answers on its port.

        Returns:
            Handle for the running subprocess

        Raises:
            DecoderLaunchError: If the port is taken, the executable is
                missing, or the decoder exits or stalls before it is ready
            RuntimeError: If the manager was already started
        """
        if self.state is not DecoderState.NOT_STARTED:
            raise RuntimeError(f"decoder cannot be started from state {self.state.value}")

        client = DecoderClient(self.port, timeout=self.request_timeout)
        try:
            if await client.is_listening():
                raise DecoderLaunchError(
                    f"port {self.port} is already in use by another process"
                )

            try:
                process = await asyncio.create_subprocess_exec(  # noqa: S603
                    *self.command
                )
            except OSError as e:
                raise DecoderLaunchError(
                    f"failed to launch {self.executable}: {e}"
                ) from e

            handle = DecoderProcessHandle(process=process, port=self.port)
            try:
                await self._wait_until_ready(client, handle)
            except BaseException:
                await self._reap(handle)
                raise
        except BaseException:
            await client.aclose()
            raise

        self.handle = handle
        self._client = client
        self.state = DecoderState.RUNNING
        logger.info("decoder_started", pid=handle.pid, port=self.port)
        return handle

    async def _wait_until_ready(
        self, client: DecoderClient, handle: DecoderProcessHandle
    ) -> None:
        deadline = time.monotonic() + self.startup_timeout
        while True:
            if handle.exited:
                raise DecoderLaunchError(
                    f"{self.executable} exited with code "
                    f"{handle.process.returncode} before becoming ready"
                )
            if await client.is_listening():
                return
            if time.monotonic() >= deadline:
                raise DecoderLaunchError(
                    f"{self.executable} did not answer on port {self.port} "
                    f"within {self.startup_timeout}s"
                )
            await asyncio.sleep(READINESS_POLL_INTERVAL)

    def _running_client(self) -> DecoderClient:
        if self.state is not DecoderState.RUNNING or self._client is None:
            raise RuntimeError(
                f"decoder is not running (state: {self.state.value})"
            )
        return self._client

    async def decode(self, payload: bytes) -> bytes:
        """Decode a stored value through the running decoder.

        Raises:
            DecoderCallError: If the request fails
            RuntimeError: If the decoder is not running
        """
        return await self._running_client().decode(payload)

    async def encode(self, payload: bytes) -> bytes:
        """Encode a readable value through the running decoder."""
        return await self._running_client().encode(payload)

    async def stop(self) -> None:
        """Terminate the decoder subprocess.

        Safe to call more than once. A subprocess that already exited is
        logged and otherwise ignored.
        """
        if self.state is DecoderState.STOPPED:
            return

        client, handle = self._client, self.handle
        self._client = None
        self.state = DecoderState.STOPPED

        if client is not None:
            await client.aclose()
        if handle is not None:
            await self._reap(handle)

    async def _reap(self, handle: DecoderProcessHandle) -> None:
        process = handle.process
        if handle.exited:
            logger.warning(
                "decoder_already_exited", pid=handle.pid, returncode=process.returncode
            )
            return

        try:
            process.terminate()
        except ProcessLookupError:
            logger.warning("decoder_already_exited", pid=handle.pid)
            await process.wait()
            return

        try:
            await asyncio.wait_for(process.wait(), timeout=self.stop_timeout)
        except asyncio.TimeoutError:
            logger.warning("decoder_kill", pid=handle.pid, timeout=self.stop_timeout)
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

        logger.info("decoder_stopped", pid=handle.pid, returncode=process.returncode)

    async def __aenter__(self) -> "DecoderProcessManager":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()
