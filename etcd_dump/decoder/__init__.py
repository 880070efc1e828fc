"""Decoder subprocess management and loopback client."""

from etcd_dump.decoder.client import (
    DecodeOperation,
    DecodeRequest,
    DecodeResponse,
    DecoderClient,
)
from etcd_dump.decoder.process import (
    DecoderProcessHandle,
    DecoderProcessManager,
    DecoderState,
)

__all__ = [
    "DecodeOperation",
    "DecodeRequest",
    "DecodeResponse",
    "DecoderClient",
    "DecoderProcessHandle",
    "DecoderProcessManager",
    "DecoderState",
]
