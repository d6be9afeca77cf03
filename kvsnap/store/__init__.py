"""Store module for KV-Snapshot."""

from .actor import StoreActor

__all__ = ["StoreActor"]
