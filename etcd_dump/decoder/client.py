"""Loopback HTTP client for the decoder service."""

from dataclasses import dataclass
from enum import Enum

import httpx

from etcd_dump.core.exceptions import (
    DecodeProtocolError,
    DecodeServiceError,
    DecodeServiceUnavailable,
)

DECODER_HOST = "localhost"


class DecodeOperation(str, Enum):
    """Operations exposed by the decoder."""

    DECODE = "decode"
    ENCODE = "encode"


@dataclass(frozen=True)
class DecodeRequest:
    """A single stateless request to the decoder."""

    operation: DecodeOperation
    payload: bytes


@dataclass(frozen=True)
class DecodeResponse:
    """The transformed payload returned by the decoder."""

    payload: bytes


def decoder_url(port: int, operation: DecodeOperation) -> str:
    """Build the loopback URL for an operation."""
    return f"http://{DECODER_HOST}:{port}/{operation.value}"


class DecoderClient:
    """Sends payloads to a running decoder over loopback HTTP.

    The client holds no per-request state, so a single instance is shared by
    every snapshot task. Requests are never retried.
    """

    def __init__(
        self,
        port: int,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            port: Loopback port the decoder listens on
            timeout: Request timeout in seconds (None keeps the httpx default)
            transport: Optional transport override
        """
        self.port = port
        client_kwargs: dict[str, object] = {}
        if timeout is not None:
            client_kwargs["timeout"] = httpx.Timeout(timeout)
        if transport is not None:
            client_kwargs["transport"] = transport
        self._http = httpx.AsyncClient(**client_kwargs)  # type: ignore[arg-type]

    async def call(self, request: DecodeRequest) -> DecodeResponse:
        """Send one request to the decoder.

        Args:
            request: Operation and payload to send

        Returns:
            DecodeResponse with the transformed bytes

        Raises:
            DecodeServiceUnavailable: If the decoder cannot be reached
            DecodeServiceError: If the decoder reports a failure status
            DecodeProtocolError: If the response has no content length
        """
        url = decoder_url(self.port, request.operation)
        try:
            response = await self._http.post(url, content=request.payload)
        except httpx.TransportError as e:
            raise DecodeServiceUnavailable(
                f"decoder unreachable at {url}: {e!r}"
            ) from e

        if not response.is_success:
            raise DecodeServiceError(
                f"decoder {request.operation.value} returned status "
                f"{response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        if "content-length" not in response.headers:
            raise DecodeProtocolError(
                f"decoder {request.operation.value} response has no content length"
            )

        return DecodeResponse(payload=response.content)

    async def decode(self, payload: bytes) -> bytes:
        """Decode a raw stored value."""
        response = await self.call(DecodeRequest(DecodeOperation.DECODE, payload))
        return response.payload

    async def encode(self, payload: bytes) -> bytes:
        """Encode a readable value back into its stored form."""
        response = await self.call(DecodeRequest(DecodeOperation.ENCODE, payload))
        return response.payload

    async def is_listening(self) -> bool:
        """Check whether anything answers HTTP on the decoder port."""
        try:
            await self._http.get(f"http://{DECODER_HOST}:{self.port}/")
        except httpx.TransportError:
            return False
        return True

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._http.aclose()
