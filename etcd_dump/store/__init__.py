"""etcd access."""

from etcd_dump.store.client import StoreClient, parse_endpoint

__all__ = ["StoreClient", "parse_endpoint"]
