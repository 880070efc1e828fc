"""Dump an etcd key space to a directory tree, decoding each value."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("etcd-dump")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["__version__"]
