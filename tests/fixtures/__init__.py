"""Test fixture package for etcd-dump.

Contains fixtures for:
- In-memory store and decoder doubles
- A stand-in decoder server run as a real subprocess
"""

from .snapshot import fake_decoder_manager, free_port, output_root

__all__ = [
    "fake_decoder_manager",
    "free_port",
    "output_root",
]
