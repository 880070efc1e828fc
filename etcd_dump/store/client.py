"""Typed wrapper around the etcd client."""

import asyncio
from collections.abc import Callable
from functools import partial
from typing import Any, TypeVar
from urllib.parse import urlsplit

import etcd3
import grpc
from etcd3.exceptions import (
    ConnectionFailedError,
    ConnectionTimeoutError,
    Etcd3Exception,
)

from etcd_dump.core.exceptions import (
    KeyDecodeError,
    StoreConnectionError,
    StoreOperationError,
    StoreUnavailable,
)
from etcd_dump.core.logging import get_logger

T = TypeVar("T")

logger = get_logger(module="store_client")

DEFAULT_ETCD_PORT = 2379

_CONNECTION_ERRORS = (ConnectionFailedError, ConnectionTimeoutError)

# etcd3 passes through gRPC codes it does not map, such as RESOURCE_EXHAUSTED
# on an oversized range response or UNAUTHENTICATED
_OPERATION_ERRORS = (Etcd3Exception, grpc.RpcError)


def parse_endpoint(endpoint: str, default_port: int = DEFAULT_ETCD_PORT) -> tuple[str, int]:
    """Split an etcd endpoint into host and port.

    Accepts ``host``, ``host:port`` and ``http(s)://host:port``.

    Raises:
        StoreConnectionError: If the endpoint cannot be parsed
    """
    raw = endpoint.strip()
    if "://" not in raw:
        raw = f"//{raw}"
    try:
        parts = urlsplit(raw)
        host = parts.hostname
        port = parts.port or default_port
    except ValueError as e:
        raise StoreConnectionError(f"invalid etcd endpoint {endpoint!r}: {e}") from e
    if not host:
        raise StoreConnectionError(f"invalid etcd endpoint {endpoint!r}: no host")
    return host, port


class StoreClient:
    """Read-only access to an etcd key space.

    The etcd3 client is blocking, so every call runs on the event loop's
    default executor. The underlying gRPC channel is safe to share between
    the concurrent snapshot tasks.
    """

    def __init__(self, client: Any, endpoint: str = "") -> None:
        """Initialize the wrapper.

        Args:
            client: A connected ``etcd3.Etcd3Client`` (or compatible object)
            endpoint: Endpoint the client points at, for diagnostics
        """
        self._client = client
        self.endpoint = endpoint

    @classmethod
    async def connect(
        cls, endpoint: str, default_port: int = DEFAULT_ETCD_PORT
    ) -> "StoreClient":
        """Connect to etcd and check that it answers.

        Raises:
            StoreConnectionError: If etcd cannot be reached
        """
        host, port = parse_endpoint(endpoint, default_port)
        client = etcd3.client(host=host, port=port)
        store = cls(client, endpoint=f"{host}:{port}")
        try:
            status = await store._run(client.status)
        except _OPERATION_ERRORS as e:
            store.close()
            raise StoreConnectionError(
                f"connecting to etcd at {host}:{port}: {e!r}"
            ) from e
        logger.info("store_connected", endpoint=store.endpoint, version=status.version)
        return store

    async def _run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        # Run in a separate thread to not block the event loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    def _scan_keys(self, prefix: str) -> list[bytes]:
        # get_prefix is lazy, so the whole range is drained inside the worker
        return [
            metadata.key
            for _, metadata in self._client.get_prefix(prefix, keys_only=True)
        ]

    async def list_keys(self, prefix: str) -> list[str]:
        """List every key under a prefix, without values.

        Args:
            prefix: Key prefix to scan

        Returns:
            Key names in store order

        Raises:
            KeyDecodeError: If a key is not valid UTF-8
            StoreUnavailable: If the connection to etcd fails
            StoreOperationError: If etcd rejects the request
        """
        try:
            raw_keys = await self._run(self._scan_keys, prefix)
        except _CONNECTION_ERRORS as e:
            raise StoreUnavailable(f"listing keys under {prefix!r}: {e!r}") from e
        except _OPERATION_ERRORS as e:
            raise StoreOperationError(f"listing keys under {prefix!r}: {e!r}") from e

        keys: list[str] = []
        for raw_key in raw_keys:
            try:
                keys.append(raw_key.decode("utf-8"))
            except UnicodeDecodeError as e:
                raise KeyDecodeError(
                    f"key {raw_key!r} is not valid UTF-8", raw_key=raw_key
                ) from e
        return keys

    async def get(self, key: str) -> bytes | None:
        """Fetch the current value of a key.

        Returns:
            The raw value, or None if the key no longer exists

        Raises:
            StoreUnavailable: If the connection to etcd fails
            StoreOperationError: If etcd rejects the request
        """
        try:
            value, _ = await self._run(self._client.get, key)
        except _CONNECTION_ERRORS as e:
            raise StoreUnavailable(f"getting {key!r}: {e!r}") from e
        except _OPERATION_ERRORS as e:
            raise StoreOperationError(f"getting {key!r}: {e!r}") from e
        return value

    def close(self) -> None:
        """Close the gRPC channel."""
        self._client.close()
